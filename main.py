from pathlib import Path
from urllib.parse import quote, urlparse

from fastapi import FastAPI, Request, Depends, Form, HTTPException
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from starlette.middleware.sessions import SessionMiddleware

from settings import settings
from composer import DraftInvalid, JournalEntryComposer, JournalEntryDraft, parse_amount
from forms import (
    account_payload,
    ad_budget_payload,
    capital_investor_payload,
    expense_category_payload,
    fiscal_period_payload,
    operational_expense_payload,
    validate_account,
    validate_ad_budget,
    validate_ad_budget_spent,
    validate_capital_investor,
    validate_expense_category,
    validate_fiscal_period,
    validate_operational_expense,
    validate_return_paid,
    month_start,
)
from ledger_client import LedgerAPIError, LedgerClient
from logging_config import configure_logging, get_logger
from models import (
    AccountType,
    Action,
    AdPlatform,
    ExpenseStatus,
    FiscalPeriodState,
    InvestmentType,
    InvestorStatus,
    JournalEntryStatus,
    UserRole,
)
from utils import (
    first_day_of_current_month,
    format_currency,
    format_date,
    format_datetime,
    format_number,
    last_day_of_current_month,
    today_formatted,
)
from workflow import (
    EXPENSE_WORKFLOW,
    FISCAL_PERIOD_WORKFLOW,
    JOURNAL_ENTRY_WORKFLOW,
    ActionNotAllowed,
    AuthContext,
    Workflow,
    can_change_investor_status,
    can_manage_master_data,
)

logger = get_logger("main")

# ---------------------- App & Middleware ----------------------
app = FastAPI(title=settings.APP_NAME)

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    same_site="lax",
    https_only=settings.SESSION_HTTPS_ONLY,
)

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
templates.env.filters["currency"] = format_currency
templates.env.filters["number"] = format_number
templates.env.filters["date"] = format_date
templates.env.filters["datetime"] = format_datetime

# ---------------------- Helpers ----------------------
def _is_safe_next(next_url: str) -> bool:
    try:
        u = urlparse(next_url)
        return (not u.netloc) and next_url.startswith("/")
    except ValueError:
        return False

def _to_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0

def _redirect(path: str, error: str | None = None) -> RedirectResponse:
    if error:
        sep = "&" if "?" in path else "?"
        path = f"{path}{sep}error={quote(error)}"
    return RedirectResponse(path, status_code=303)

def _filters(**kwargs) -> dict:
    """Active list filters, carried over into the pagination links."""
    return {k: v for k, v in kwargs.items() if v not in (None, "", 0)}

def _log_transition(kind: str, label: str, workflow: Workflow, state, action: Action, auth: AuthContext) -> None:
    if action is Action.DELETE:
        logger.info("%s %s deleted by user %s", kind, label, auth.user_id)
        return
    logger.info(
        "%s %s: %s -> %s by user %s",
        kind, label, state.value, workflow.next_state(state, action).value, auth.user_id,
    )

def require_auth(request: Request) -> AuthContext:
    """Authorization context for this request, taken from the session."""
    data = request.session.get("auth")
    if data:
        try:
            return AuthContext(
                user_id=int(data["user_id"]),
                role=UserRole(data["role"]),
                access_token=data.get("access_token"),
            )
        except (KeyError, TypeError, ValueError):
            request.session.clear()
    raise HTTPException(
        status_code=303,
        headers={"Location": f"{settings.LOGIN_URL}?next={quote(request.url.path)}"},
    )

# ---------------------- Ledger Client ----------------------
def get_ledger(auth: AuthContext = Depends(require_auth)):
    ledger = LedgerClient(settings.LEDGER_API_BASE_URL, token=auth.access_token)
    try:
        yield ledger
    finally:
        ledger.close()

# ---------------------- Startup ----------------------
@app.on_event("startup")
def startup():
    configure_logging()
    logger.info("%s started against %s", settings.APP_NAME, settings.LEDGER_API_BASE_URL)

@app.get("/health")
def health():
    return {"status": "healthy"}

# ---------------------- Session ----------------------
@app.post("/session")
def open_session(
    request: Request,
    access_token: str = Form(...),
    role: str = Form(...),
    user_id: int = Form(...),
    next: str = Form("/"),
):
    """Adopt a token issued by the external auth service."""
    try:
        role = UserRole(role).value
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {role}")
    request.session["auth"] = {"access_token": access_token, "role": role, "user_id": user_id}
    if not _is_safe_next(next):
        next = "/"
    return RedirectResponse(next, status_code=303)

@app.get("/logout")
def logout(request: Request):
    request.session.clear()
    return RedirectResponse(settings.LOGIN_URL, status_code=303)

@app.get("/")
def index(auth: AuthContext = Depends(require_auth)):
    return RedirectResponse("/journal-entries", status_code=303)

# ---------------------- Journal Entries ----------------------
def _fiscal_periods(ledger: LedgerClient) -> list:
    try:
        return ledger.fiscal_periods.all()
    except LedgerAPIError as exc:
        logger.warning("Could not load fiscal periods: %s", exc.message)
        return []

def _entry_form_options(ledger: LedgerClient):
    try:
        periods = ledger.fiscal_periods.all()
        accounts = [acc for acc in ledger.accounts.all() if acc.is_active]
    except LedgerAPIError as exc:
        logger.warning("Could not load dropdown data: %s", exc.message)
        return [], []
    return periods, accounts

def _render_entry_form(request: Request, composer: JournalEntryComposer, ledger: LedgerClient, status_code: int = 200):
    periods, accounts = _entry_form_options(ledger)
    return templates.TemplateResponse(
        request,
        "journal_entry_form.html",
        {
            "composer": composer,
            "draft": composer.draft,
            "totals": composer.compute_totals(),
            "fiscal_periods": periods,
            "accounts": accounts,
            "error": composer.error,
        },
        status_code=status_code,
    )

def _composer_from_form(entry_id, entry_date, fiscal_period_id, description, reference_number,
                        account_ids, line_descriptions, debits, credits, line_sides) -> JournalEntryComposer:
    draft = JournalEntryDraft(
        entry_date=entry_date,
        fiscal_period_id=_to_int(fiscal_period_id),
        description=description,
        reference_number=reference_number,
        lines=[],
    )
    composer = JournalEntryComposer(draft, entry_id=entry_id)
    sides = list(line_sides) + [""] * (len(account_ids) - len(line_sides))
    for index, (acc, desc, dr, cr, side) in enumerate(zip(account_ids, line_descriptions, debits, credits, sides)):
        composer.add_line()
        composer.set_line_account(index, _to_int(acc))
        composer.set_line_description(index, desc or "")
        # The side the user typed into last is applied last, so it wins;
        # without that marker the debit wins.
        if side == "credit":
            composer.set_line_debit(index, dr)
            composer.set_line_credit(index, cr)
        else:
            composer.set_line_credit(index, cr)
            composer.set_line_debit(index, dr)
    return composer

def _handle_entry_form(request: Request, ledger: LedgerClient, composer: JournalEntryComposer, action: str):
    if action == "add_line":
        composer.add_line()
        return _render_entry_form(request, composer, ledger)
    if action.startswith("remove_line:"):
        raw = action.split(":", 1)[1]
        try:
            composer.remove_line(int(raw))
        except (ValueError, IndexError):
            composer.error = f"Line {raw} cannot be removed"
        return _render_entry_form(request, composer, ledger)

    try:
        composer.submit(ledger)
    except DraftInvalid:
        return _render_entry_form(request, composer, ledger, status_code=422)
    except LedgerAPIError as exc:
        logger.warning("Saving journal entry failed: %s", exc.message)
        return _render_entry_form(request, composer, ledger, status_code=422)
    return _redirect("/journal-entries")

@app.get("/journal-entries", response_class=HTMLResponse)
def list_journal_entries(
    request: Request,
    page: int = 1,
    limit: int = settings.PAGE_SIZE,
    search: str = "",
    status: str = "",
    fiscal_period_id: int = 0,
    error: str | None = None,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    entries, total_pages, total_results = [], 1, 0
    try:
        result = ledger.journal_entries.list(
            page=page, limit=limit, search=search, status=status, fiscal_period_id=fiscal_period_id
        )
        entries, total_pages, total_results = result.results, result.total_pages, result.total_results
    except LedgerAPIError as exc:
        error = exc.message

    return templates.TemplateResponse(
        request,
        "journal_entries.html",
        {
            "entries": entries,
            "actions": {e.id: JOURNAL_ENTRY_WORKFLOW.available(e.status, auth) for e in entries},
            "fiscal_periods": _fiscal_periods(ledger),
            "statuses": list(JournalEntryStatus),
            "page": page,
            "total_pages": total_pages,
            "total_results": total_results,
            "filters": _filters(limit=limit, search=search, status=status, fiscal_period_id=fiscal_period_id),
            "search": search,
            "status": status,
            "fiscal_period_id": fiscal_period_id,
            "error": error,
        },
    )

@app.get("/journal-entries/new", response_class=HTMLResponse)
def new_journal_entry(request: Request, ledger: LedgerClient = Depends(get_ledger)):
    periods = _fiscal_periods(ledger)
    composer = JournalEntryComposer.blank(
        entry_date=today_formatted(),
        fiscal_period_id=periods[0].id if periods else 0,
    )
    return _render_entry_form(request, composer, ledger)

@app.get("/journal-entries/{entry_id}/edit", response_class=HTMLResponse)
def edit_journal_entry(
    request: Request,
    entry_id: int,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    try:
        entry = ledger.journal_entries.get(entry_id)
        JOURNAL_ENTRY_WORKFLOW.require(entry.status, Action.EDIT, auth)
    except (LedgerAPIError, ActionNotAllowed) as exc:
        return _redirect("/journal-entries", exc.message)
    return _render_entry_form(request, JournalEntryComposer.from_entry(entry), ledger)

@app.post("/journal-entries")
def create_journal_entry(
    request: Request,
    entry_date: str = Form(""),
    fiscal_period_id: str = Form("0"),
    description: str = Form(""),
    reference_number: str = Form(""),
    account_ids: list[str] = Form([]),
    line_descriptions: list[str] = Form([]),
    debits: list[str] = Form([]),
    credits: list[str] = Form([]),
    line_sides: list[str] = Form([]),
    action: str = Form("save"),
    ledger: LedgerClient = Depends(get_ledger),
):
    composer = _composer_from_form(None, entry_date, fiscal_period_id, description, reference_number,
                                   account_ids, line_descriptions, debits, credits, line_sides)
    return _handle_entry_form(request, ledger, composer, action)

@app.post("/journal-entries/{entry_id}")
def update_journal_entry(
    request: Request,
    entry_id: int,
    entry_date: str = Form(""),
    fiscal_period_id: str = Form("0"),
    description: str = Form(""),
    reference_number: str = Form(""),
    account_ids: list[str] = Form([]),
    line_descriptions: list[str] = Form([]),
    debits: list[str] = Form([]),
    credits: list[str] = Form([]),
    line_sides: list[str] = Form([]),
    action: str = Form("save"),
    ledger: LedgerClient = Depends(get_ledger),
):
    composer = _composer_from_form(entry_id, entry_date, fiscal_period_id, description, reference_number,
                                   account_ids, line_descriptions, debits, credits, line_sides)
    return _handle_entry_form(request, ledger, composer, action)

@app.post("/journal-entries/{entry_id}/{action}")
def journal_entry_action(
    entry_id: int,
    action: Action,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    calls = {
        Action.APPROVE: ledger.journal_entries.approve,
        Action.REJECT: ledger.journal_entries.reject,
        Action.POST: ledger.journal_entries.post,
        Action.DELETE: ledger.journal_entries.delete,
    }
    if action not in calls:
        raise HTTPException(status_code=404, detail="Unknown action")
    try:
        entry = ledger.journal_entries.get(entry_id)
        JOURNAL_ENTRY_WORKFLOW.require(entry.status, action, auth)
        calls[action](entry_id)
    except (LedgerAPIError, ActionNotAllowed) as exc:
        return _redirect("/journal-entries", exc.message)
    _log_transition("Journal entry", entry.entry_number, JOURNAL_ENTRY_WORKFLOW, entry.status, action, auth)
    return _redirect("/journal-entries")

# ---------------------- Fiscal Periods ----------------------
@app.get("/fiscal-periods", response_class=HTMLResponse)
def list_fiscal_periods(
    request: Request,
    page: int = 1,
    limit: int = settings.PAGE_SIZE,
    search: str = "",
    edit: int = 0,
    error: str | None = None,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    editing = None
    if edit:
        try:
            editing = ledger.fiscal_periods.get(edit)
            FISCAL_PERIOD_WORKFLOW.require(FiscalPeriodState.of(editing.is_closed), Action.EDIT, auth)
        except (LedgerAPIError, ActionNotAllowed) as exc:
            return _redirect("/fiscal-periods", exc.message)

    periods, total_pages = [], 1
    try:
        result = ledger.fiscal_periods.list(page=page, limit=limit, search=search)
        periods, total_pages = result.results, result.total_pages
    except LedgerAPIError as exc:
        error = exc.message
    return templates.TemplateResponse(
        request,
        "fiscal_periods.html",
        {
            "periods": periods,
            "actions": {
                p.id: FISCAL_PERIOD_WORKFLOW.available(FiscalPeriodState.of(p.is_closed), auth)
                for p in periods
            },
            "can_create": can_manage_master_data(auth),
            "editing": editing,
            "default_start": first_day_of_current_month(),
            "default_end": last_day_of_current_month(),
            "page": page,
            "total_pages": total_pages,
            "filters": _filters(limit=limit, search=search),
            "search": search,
            "error": error,
        },
    )

@app.post("/fiscal-periods")
def create_fiscal_period(
    period_name: str = Form(""),
    period_start: str = Form(""),
    period_end: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_manage_master_data(auth):
        return _redirect("/fiscal-periods", "You do not have permission to create fiscal periods")
    problem = validate_fiscal_period(period_name, period_start, period_end)
    if problem:
        return _redirect("/fiscal-periods", problem)
    try:
        ledger.fiscal_periods.create(fiscal_period_payload(period_name, period_start, period_end))
    except LedgerAPIError as exc:
        return _redirect("/fiscal-periods", exc.message)
    return _redirect("/fiscal-periods")

@app.post("/fiscal-periods/{period_id}")
def update_fiscal_period(
    period_id: int,
    period_name: str = Form(""),
    period_start: str = Form(""),
    period_end: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    problem = validate_fiscal_period(period_name, period_start, period_end)
    if problem:
        return _redirect(f"/fiscal-periods?edit={period_id}", problem)
    try:
        period = ledger.fiscal_periods.get(period_id)
        FISCAL_PERIOD_WORKFLOW.require(FiscalPeriodState.of(period.is_closed), Action.EDIT, auth)
        ledger.fiscal_periods.update(period_id, fiscal_period_payload(period_name, period_start, period_end))
    except (LedgerAPIError, ActionNotAllowed) as exc:
        return _redirect("/fiscal-periods", exc.message)
    return _redirect("/fiscal-periods")

@app.post("/fiscal-periods/{period_id}/{action}")
def fiscal_period_action(
    period_id: int,
    action: Action,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    calls = {
        Action.CLOSE: ledger.fiscal_periods.close,
        Action.REOPEN: ledger.fiscal_periods.reopen,
        Action.DELETE: ledger.fiscal_periods.delete,
    }
    if action not in calls:
        raise HTTPException(status_code=404, detail="Unknown action")
    try:
        period = ledger.fiscal_periods.get(period_id)
        state = FiscalPeriodState.of(period.is_closed)
        FISCAL_PERIOD_WORKFLOW.require(state, action, auth)
        calls[action](period_id)
    except (LedgerAPIError, ActionNotAllowed) as exc:
        return _redirect("/fiscal-periods", exc.message)
    _log_transition("Fiscal period", period.period_name, FISCAL_PERIOD_WORKFLOW, state, action, auth)
    return _redirect("/fiscal-periods")

# ---------------------- Accounts ----------------------
@app.get("/accounts", response_class=HTMLResponse)
def list_accounts(
    request: Request,
    page: int = 1,
    limit: int = settings.PAGE_SIZE,
    search: str = "",
    account_type: str = "",
    edit: int = 0,
    error: str | None = None,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    editing = None
    if edit and can_manage_master_data(auth):
        try:
            editing = ledger.accounts.get(edit)
        except LedgerAPIError as exc:
            return _redirect("/accounts", exc.message)

    accounts, total_pages = [], 1
    try:
        result = ledger.accounts.list(page=page, limit=limit, search=search, account_type=account_type)
        accounts, total_pages = result.results, result.total_pages
    except LedgerAPIError as exc:
        error = exc.message
    return templates.TemplateResponse(
        request,
        "accounts.html",
        {
            "accounts": accounts,
            "account_types": list(AccountType),
            "can_create": can_manage_master_data(auth),
            "editing": editing,
            "page": page,
            "total_pages": total_pages,
            "filters": _filters(limit=limit, search=search, account_type=account_type),
            "search": search,
            "account_type": account_type,
            "error": error,
        },
    )

@app.post("/accounts")
def create_account(
    account_code: str = Form(""),
    account_name: str = Form(""),
    account_type: AccountType = Form(AccountType.ASSET),
    parent_account_id: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_manage_master_data(auth):
        return _redirect("/accounts", "You do not have permission to create accounts")
    problem = validate_account(account_code, account_name)
    if problem:
        return _redirect("/accounts", problem)
    try:
        ledger.accounts.create(
            account_payload(account_code, account_name, account_type, _to_int(parent_account_id))
        )
    except LedgerAPIError as exc:
        return _redirect("/accounts", exc.message)
    return _redirect("/accounts")

@app.post("/accounts/{account_id}")
def update_account(
    account_id: int,
    account_code: str = Form(""),
    account_name: str = Form(""),
    account_type: AccountType = Form(AccountType.ASSET),
    parent_account_id: str = Form(""),
    is_active: bool = Form(False),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_manage_master_data(auth):
        return _redirect("/accounts", "You do not have permission to update accounts")
    problem = validate_account(account_code, account_name)
    if problem:
        return _redirect(f"/accounts?edit={account_id}", problem)
    try:
        ledger.accounts.update(
            account_id,
            account_payload(account_code, account_name, account_type, _to_int(parent_account_id), is_active),
        )
    except LedgerAPIError as exc:
        return _redirect("/accounts", exc.message)
    return _redirect("/accounts")

# ---------------------- Expense Categories ----------------------
@app.get("/expense-categories", response_class=HTMLResponse)
def list_expense_categories(
    request: Request,
    page: int = 1,
    limit: int = settings.PAGE_SIZE,
    search: str = "",
    edit: int = 0,
    error: str | None = None,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    editing = None
    if edit and can_manage_master_data(auth):
        try:
            editing = ledger.expense_categories.get(edit)
        except LedgerAPIError as exc:
            return _redirect("/expense-categories", exc.message)

    categories, total_pages = [], 1
    try:
        result = ledger.expense_categories.list(page=page, limit=limit, search=search)
        categories, total_pages = result.results, result.total_pages
    except LedgerAPIError as exc:
        error = exc.message
    return templates.TemplateResponse(
        request,
        "expense_categories.html",
        {
            "categories": categories,
            "can_create": can_manage_master_data(auth),
            "editing": editing,
            "page": page,
            "total_pages": total_pages,
            "filters": _filters(limit=limit, search=search),
            "search": search,
            "error": error,
        },
    )

@app.post("/expense-categories")
def create_expense_category(
    category_name: str = Form(""),
    description: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_manage_master_data(auth):
        return _redirect("/expense-categories", "You do not have permission to create expense categories")
    problem = validate_expense_category(category_name)
    if problem:
        return _redirect("/expense-categories", problem)
    try:
        ledger.expense_categories.create(expense_category_payload(category_name, description))
    except LedgerAPIError as exc:
        return _redirect("/expense-categories", exc.message)
    return _redirect("/expense-categories")

@app.post("/expense-categories/{category_id}")
def update_expense_category(
    category_id: int,
    category_name: str = Form(""),
    description: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_manage_master_data(auth):
        return _redirect("/expense-categories", "You do not have permission to update expense categories")
    problem = validate_expense_category(category_name)
    if problem:
        return _redirect(f"/expense-categories?edit={category_id}", problem)
    try:
        ledger.expense_categories.update(category_id, expense_category_payload(category_name, description))
    except LedgerAPIError as exc:
        return _redirect("/expense-categories", exc.message)
    return _redirect("/expense-categories")

# ---------------------- Operational Expenses ----------------------
@app.get("/operational-expenses", response_class=HTMLResponse)
def list_operational_expenses(
    request: Request,
    page: int = 1,
    limit: int = settings.PAGE_SIZE,
    search: str = "",
    status: str = "",
    category_id: int = 0,
    edit: int = 0,
    error: str | None = None,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    editing = None
    if edit:
        try:
            editing = ledger.operational_expenses.get(edit)
            EXPENSE_WORKFLOW.require(editing.status, Action.EDIT, auth, owner_id=editing.created_by)
        except (LedgerAPIError, ActionNotAllowed) as exc:
            return _redirect("/operational-expenses", exc.message)

    expenses, total_pages = [], 1
    categories, accounts = [], []
    try:
        result = ledger.operational_expenses.list(
            page=page, limit=limit, search=search, status=status, category_id=category_id
        )
        expenses, total_pages = result.results, result.total_pages
        categories = ledger.expense_categories.all()
        accounts = [acc for acc in ledger.accounts.all() if acc.is_active]
    except LedgerAPIError as exc:
        error = exc.message
    return templates.TemplateResponse(
        request,
        "operational_expenses.html",
        {
            "expenses": expenses,
            "actions": {
                e.id: EXPENSE_WORKFLOW.available(e.status, auth, owner_id=e.created_by) for e in expenses
            },
            "categories": categories,
            "accounts": accounts,
            "statuses": list(ExpenseStatus),
            "editing": editing,
            "today": today_formatted(),
            "page": page,
            "total_pages": total_pages,
            "filters": _filters(limit=limit, search=search, status=status, category_id=category_id),
            "search": search,
            "status": status,
            "category_id": category_id,
            "error": error,
        },
    )

@app.post("/operational-expenses")
def create_operational_expense(
    expense_date: str = Form(""),
    expense_category_id: str = Form("0"),
    account_id: str = Form("0"),
    amount: str = Form(""),
    description: str = Form(""),
    receipt_image_url: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
):
    category, account, value = _to_int(expense_category_id), _to_int(account_id), parse_amount(amount)
    problem = validate_operational_expense(expense_date, category, account, value)
    if problem:
        return _redirect("/operational-expenses", problem)
    try:
        ledger.operational_expenses.create(
            operational_expense_payload(expense_date, category, account, value, description, receipt_image_url)
        )
    except LedgerAPIError as exc:
        return _redirect("/operational-expenses", exc.message)
    return _redirect("/operational-expenses")

@app.post("/operational-expenses/{expense_id}")
def update_operational_expense(
    expense_id: int,
    expense_date: str = Form(""),
    expense_category_id: str = Form("0"),
    account_id: str = Form("0"),
    amount: str = Form(""),
    description: str = Form(""),
    receipt_image_url: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    category, account, value = _to_int(expense_category_id), _to_int(account_id), parse_amount(amount)
    problem = validate_operational_expense(expense_date, category, account, value)
    if problem:
        return _redirect(f"/operational-expenses?edit={expense_id}", problem)
    try:
        expense = ledger.operational_expenses.get(expense_id)
        EXPENSE_WORKFLOW.require(expense.status, Action.EDIT, auth, owner_id=expense.created_by)
        ledger.operational_expenses.update(
            expense_id,
            operational_expense_payload(expense_date, category, account, value, description, receipt_image_url),
        )
    except (LedgerAPIError, ActionNotAllowed) as exc:
        return _redirect("/operational-expenses", exc.message)
    return _redirect("/operational-expenses")

@app.post("/operational-expenses/{expense_id}/{action}")
def operational_expense_action(
    expense_id: int,
    action: Action,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    calls = {
        Action.APPROVE: ledger.operational_expenses.approve,
        Action.REJECT: ledger.operational_expenses.reject,
        Action.PAY: ledger.operational_expenses.pay,
        Action.DELETE: ledger.operational_expenses.delete,
    }
    if action not in calls:
        raise HTTPException(status_code=404, detail="Unknown action")
    try:
        expense = ledger.operational_expenses.get(expense_id)
        EXPENSE_WORKFLOW.require(expense.status, action, auth, owner_id=expense.created_by)
        calls[action](expense_id)
    except (LedgerAPIError, ActionNotAllowed) as exc:
        return _redirect("/operational-expenses", exc.message)
    _log_transition("Expense", expense.expense_number, EXPENSE_WORKFLOW, expense.status, action, auth)
    return _redirect("/operational-expenses")

# ---------------------- Ad Budgets ----------------------
@app.get("/ad-budgets", response_class=HTMLResponse)
def list_ad_budgets(
    request: Request,
    page: int = 1,
    limit: int = settings.PAGE_SIZE,
    search: str = "",
    platform: str = "",
    month_year: str = "",
    edit: int = 0,
    error: str | None = None,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    editing = None
    if edit and can_manage_master_data(auth):
        try:
            editing = ledger.ad_budgets.get(edit)
        except LedgerAPIError as exc:
            return _redirect("/ad-budgets", exc.message)

    month_year = month_start(month_year) if month_year else ""
    budgets, total_pages, month_budgets = [], 1, []
    try:
        result = ledger.ad_budgets.list(page=page, limit=limit, search=search, platform=platform,
                                        month_year=month_year)
        budgets, total_pages = result.results, result.total_pages
        if month_year:
            month_budgets = ledger.ad_budgets.by_month(month_year)
    except LedgerAPIError as exc:
        error = exc.message
    return templates.TemplateResponse(
        request,
        "ad_budgets.html",
        {
            "budgets": budgets,
            "platforms": list(AdPlatform),
            "can_manage": can_manage_master_data(auth),
            "editing": editing,
            "default_month": first_day_of_current_month()[:7],
            "month_total_budget": sum(b.budget_amount for b in month_budgets),
            "month_total_spent": sum(b.spent_amount for b in month_budgets),
            "page": page,
            "total_pages": total_pages,
            "filters": _filters(limit=limit, search=search, platform=platform, month_year=month_year),
            "search": search,
            "platform": platform,
            "month_year": month_year,
            "error": error,
        },
    )

def _save_ad_budget(ledger: LedgerClient, auth: AuthContext, budget_id: int | None, platform: str,
                    month_year: str, budget_amount: str, spent_amount: str, notes: str):
    back = f"/ad-budgets?edit={budget_id}" if budget_id else "/ad-budgets"
    if not can_manage_master_data(auth):
        return _redirect("/ad-budgets", "You do not have permission to manage ad budgets")
    budget, spent = parse_amount(budget_amount), parse_amount(spent_amount)
    problem = validate_ad_budget(platform, month_year, budget, spent)
    if problem:
        return _redirect(back, problem)
    try:
        payload = ad_budget_payload(platform, month_year, budget, spent, notes)
    except ValueError:
        return _redirect(back, "Platform is required")
    try:
        if budget_id:
            ledger.ad_budgets.update(budget_id, payload)
        else:
            ledger.ad_budgets.create(payload)
    except LedgerAPIError as exc:
        return _redirect("/ad-budgets", exc.message)
    return _redirect("/ad-budgets")

@app.post("/ad-budgets")
def create_ad_budget(
    platform: str = Form(""),
    month_year: str = Form(""),
    budget_amount: str = Form(""),
    spent_amount: str = Form(""),
    notes: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    return _save_ad_budget(ledger, auth, None, platform, month_year, budget_amount, spent_amount, notes)

@app.post("/ad-budgets/{budget_id}")
def update_ad_budget(
    budget_id: int,
    platform: str = Form(""),
    month_year: str = Form(""),
    budget_amount: str = Form(""),
    spent_amount: str = Form(""),
    notes: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    return _save_ad_budget(ledger, auth, budget_id, platform, month_year, budget_amount, spent_amount, notes)

@app.post("/ad-budgets/{budget_id}/spent")
def update_ad_budget_spent(
    budget_id: int,
    spent_amount: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_manage_master_data(auth):
        return _redirect("/ad-budgets", "You do not have permission to manage ad budgets")
    try:
        budget = ledger.ad_budgets.get(budget_id)
        spent = parse_amount(spent_amount)
        problem = validate_ad_budget_spent(spent, budget.budget_amount)
        if problem:
            return _redirect("/ad-budgets", problem)
        ledger.ad_budgets.update_spent(budget_id, spent)
    except LedgerAPIError as exc:
        return _redirect("/ad-budgets", exc.message)
    return _redirect("/ad-budgets")

@app.post("/ad-budgets/{budget_id}/delete")
def delete_ad_budget(
    budget_id: int,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_manage_master_data(auth):
        return _redirect("/ad-budgets", "You do not have permission to manage ad budgets")
    try:
        ledger.ad_budgets.delete(budget_id)
    except LedgerAPIError as exc:
        return _redirect("/ad-budgets", exc.message)
    logger.info("Ad budget %s deleted by user %s", budget_id, auth.user_id)
    return _redirect("/ad-budgets")

# ---------------------- Capital Investors ----------------------
@app.get("/capital-investors", response_class=HTMLResponse)
def list_capital_investors(
    request: Request,
    page: int = 1,
    limit: int = settings.PAGE_SIZE,
    search: str = "",
    edit: int = 0,
    error: str | None = None,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    editing = None
    if edit and can_manage_master_data(auth):
        try:
            editing = ledger.capital_investors.get(edit)
        except LedgerAPIError as exc:
            return _redirect("/capital-investors", exc.message)

    investors, total_pages = [], 1
    try:
        result = ledger.capital_investors.list(page=page, limit=limit, search=search)
        investors, total_pages = result.results, result.total_pages
    except LedgerAPIError as exc:
        error = exc.message
    try:
        total = ledger.capital_investors.total()
    except LedgerAPIError as exc:
        logger.warning("Could not load total investment: %s", exc.message)
        total = None
    return templates.TemplateResponse(
        request,
        "capital_investors.html",
        {
            "investors": investors,
            "total": total,
            "investment_types": list(InvestmentType),
            "investor_statuses": list(InvestorStatus),
            "can_manage": can_manage_master_data(auth),
            "can_change_status": can_change_investor_status(auth),
            "editing": editing,
            "today": today_formatted(),
            "page": page,
            "total_pages": total_pages,
            "filters": _filters(limit=limit, search=search),
            "search": search,
            "error": error,
        },
    )

def _save_capital_investor(ledger: LedgerClient, auth: AuthContext, investor_id: int | None,
                           investor_name: str, investment_type: InvestmentType, amount: str,
                           investment_date: str, return_percentage: str, maturity_date: str,
                           contract_document_url: str, notes: str):
    back = f"/capital-investors?edit={investor_id}" if investor_id else "/capital-investors"
    if not can_manage_master_data(auth):
        return _redirect("/capital-investors", "You do not have permission to manage capital investors")
    value = parse_amount(amount)
    problem = validate_capital_investor(investor_name, value, investment_date, maturity_date)
    if problem:
        return _redirect(back, problem)
    try:
        percentage = float(return_percentage) if return_percentage.strip() else None
    except ValueError:
        return _redirect(back, "Return percentage must be a number")
    payload = capital_investor_payload(investor_name, investment_type, value, investment_date,
                                       percentage, maturity_date, contract_document_url, notes)
    try:
        if investor_id:
            ledger.capital_investors.update(investor_id, payload)
        else:
            ledger.capital_investors.create(payload)
    except LedgerAPIError as exc:
        return _redirect("/capital-investors", exc.message)
    return _redirect("/capital-investors")

@app.post("/capital-investors")
def create_capital_investor(
    investor_name: str = Form(""),
    investment_type: InvestmentType = Form(InvestmentType.EQUITY),
    amount: str = Form(""),
    investment_date: str = Form(""),
    return_percentage: str = Form(""),
    maturity_date: str = Form(""),
    contract_document_url: str = Form(""),
    notes: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    return _save_capital_investor(ledger, auth, None, investor_name, investment_type, amount, investment_date,
                                  return_percentage, maturity_date, contract_document_url, notes)

@app.post("/capital-investors/{investor_id}")
def update_capital_investor(
    investor_id: int,
    investor_name: str = Form(""),
    investment_type: InvestmentType = Form(InvestmentType.EQUITY),
    amount: str = Form(""),
    investment_date: str = Form(""),
    return_percentage: str = Form(""),
    maturity_date: str = Form(""),
    contract_document_url: str = Form(""),
    notes: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    return _save_capital_investor(ledger, auth, investor_id, investor_name, investment_type, amount,
                                  investment_date, return_percentage, maturity_date, contract_document_url,
                                  notes)

@app.post("/capital-investors/{investor_id}/return-paid")
def update_capital_investor_return_paid(
    investor_id: int,
    return_paid: str = Form(""),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_manage_master_data(auth):
        return _redirect("/capital-investors", "You do not have permission to manage capital investors")
    raw = return_paid.strip()
    value = -parse_amount(raw[1:]) if raw.startswith("-") else parse_amount(raw)
    problem = validate_return_paid(value)
    if problem:
        return _redirect("/capital-investors", problem)
    try:
        ledger.capital_investors.update_return_paid(investor_id, value)
    except LedgerAPIError as exc:
        return _redirect("/capital-investors", exc.message)
    return _redirect("/capital-investors")

@app.post("/capital-investors/{investor_id}/status")
def update_capital_investor_status(
    investor_id: int,
    status: InvestorStatus = Form(...),
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_change_investor_status(auth):
        return _redirect("/capital-investors", "You do not have permission to change investor status")
    try:
        investor = ledger.capital_investors.update_status(investor_id, status)
    except LedgerAPIError as exc:
        return _redirect("/capital-investors", exc.message)
    logger.info("Capital investor %s: status %s by user %s", investor.investor_name, status.value, auth.user_id)
    return _redirect("/capital-investors")

@app.post("/capital-investors/{investor_id}/delete")
def delete_capital_investor(
    investor_id: int,
    ledger: LedgerClient = Depends(get_ledger),
    auth: AuthContext = Depends(require_auth),
):
    if not can_manage_master_data(auth):
        return _redirect("/capital-investors", "You do not have permission to manage capital investors")
    try:
        ledger.capital_investors.delete(investor_id)
    except LedgerAPIError as exc:
        return _redirect("/capital-investors", exc.message)
    logger.info("Capital investor %s deleted by user %s", investor_id, auth.user_id)
    return _redirect("/capital-investors")
