"""
Ledger API client

Thin httpx wrapper over the external Ledger REST backend. The backend owns
every piece of accounting state: it numbers entries, recomputes balances,
re-validates journal entries and enforces workflow transitions. This client
only moves JSON back and forth and turns failures into ``LedgerAPIError``
with a message that can be shown to the user as-is.

Every response is wrapped in ``{"status", "code", "message", "data"}``;
callers only ever see ``data``.
"""
import re
from typing import Any, Dict, List, Optional, Type

import httpx
from pydantic import BaseModel

from logging_config import get_logger
from schemas import (
    AccountOut,
    AdBudgetOut,
    CapitalInvestorOut,
    CreateAccount,
    CreateAdBudget,
    CreateCapitalInvestor,
    CreateExpenseCategory,
    CreateFiscalPeriod,
    CreateJournalEntry,
    CreateOperationalExpense,
    ExpenseCategoryOut,
    FiscalPeriodOut,
    JournalEntryOut,
    OperationalExpenseOut,
    Page,
    TotalInvestment,
    UpdateAdBudgetSpent,
    UpdateInvestorStatus,
    UpdateReturnPaid,
)
from settings import settings

logger = get_logger("ledger_client")


class LedgerAPIError(Exception):
    """Any failure talking to the Ledger API, network errors included (status 0)."""

    def __init__(self, message: str, status_code: int = 0, data: Any = None):
        self.message = message
        self.status_code = status_code
        self.data = data
        super().__init__(message)


def error_message(status_code: int, data: Any) -> str:
    """User-facing message for a failed response."""
    server_message = data.get("message") if isinstance(data, dict) else None

    if status_code >= 500:
        return (
            f"Server error: {server_message or 'Something went wrong on our end'}. "
            "Please try again later or contact admin if the problem persists."
        )
    if status_code == 404:
        return f"Resource not found: {server_message or 'The requested item does not exist'}"
    if status_code == 401:
        return "Unauthorized. Please login again."
    if status_code == 403:
        return "Access denied. You do not have permission to perform this action."
    if status_code == 400:
        return f"Invalid request: {server_message or 'Please check your input'}"
    return server_message or f"HTTP error! status: {status_code}"


def clean_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    token = re.sub(r"^bearer(\s+|$)", "", token.strip(), flags=re.IGNORECASE)
    return token or None


def _params(**kwargs) -> Dict[str, Any]:
    # Falsy filters are left out of the query string entirely
    return {k: v for k, v in kwargs.items() if v not in (None, "", 0) or k in ("page", "limit")}


class LedgerClient:
    """Synchronous client; one instance per request/session."""

    API_VERSION = "/api/v1"

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {
            "accept": "application/json",
            "Content-Type": "application/json",
        }
        token = clean_token(token)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._http = httpx.Client(
            base_url=(base_url or settings.LEDGER_API_BASE_URL) + self.API_VERSION,
            headers=headers,
            timeout=timeout or settings.LEDGER_API_TIMEOUT,
            transport=transport,
        )

        self.journal_entries = JournalEntriesAPI(self)
        self.fiscal_periods = FiscalPeriodsAPI(self)
        self.accounts = AccountsAPI(self)
        self.expense_categories = ExpenseCategoriesAPI(self)
        self.operational_expenses = OperationalExpensesAPI(self)
        self.ad_budgets = AdBudgetsAPI(self)
        self.capital_investors = CapitalInvestorsAPI(self)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "LedgerClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                json: Any = None) -> Any:
        logger.debug("%s %s params=%s", method, path, params)
        try:
            response = self._http.request(method, path, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.warning("Ledger API unreachable: %s %s: %s", method, path, exc)
            raise LedgerAPIError(f"Could not reach the ledger service: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            message = error_message(response.status_code, body)
            logger.warning("Ledger API %s %s failed (%s): %s", method, path, response.status_code, message)
            raise LedgerAPIError(message, response.status_code, body)

        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json if json is not None else {})

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)


def _dump(payload: Any) -> Any:
    if isinstance(payload, BaseModel):
        return payload.model_dump(mode="json", exclude_none=True)
    return payload


class _Resource:
    path: str = ""
    model: Type[BaseModel] = BaseModel

    def __init__(self, client: LedgerClient):
        self.client = client

    def _one(self, data: Any):
        return self.model.model_validate(data)

    def _many(self, data: Any) -> list:
        return [self.model.model_validate(item) for item in (data or [])]

    def _page(self, data: Any) -> Page:
        return Page[self.model].model_validate(data)

    def list(self, page: int = 1, limit: int = 10, search: Optional[str] = None) -> Page:
        return self._page(self.client.get(self.path, params=_params(page=page, limit=limit, search=search)))

    def get(self, item_id: int):
        return self._one(self.client.get(f"{self.path}/{item_id}"))

    def create(self, payload):
        return self._one(self.client.post(self.path, json=_dump(payload)))

    def update(self, item_id: int, payload):
        return self._one(self.client.put(f"{self.path}/{item_id}", json=_dump(payload)))

    def delete(self, item_id: int) -> Any:
        return self.client.delete(f"{self.path}/{item_id}")

    def _action(self, item_id: int, action: str):
        return self._one(self.client.post(f"{self.path}/{item_id}/{action}"))


class JournalEntriesAPI(_Resource):
    path = "/journal-entries"
    model = JournalEntryOut

    def list(self, page: int = 1, limit: int = 10, search: Optional[str] = None,
             status: Optional[str] = None, fiscal_period_id: Optional[int] = None) -> Page:
        params = _params(page=page, limit=limit, search=search, status=status,
                         fiscal_period_id=fiscal_period_id)
        return self._page(self.client.get(self.path, params=params))

    def create(self, payload: CreateJournalEntry) -> JournalEntryOut:
        return super().create(payload)

    def update(self, item_id: int, payload: CreateJournalEntry) -> JournalEntryOut:
        return super().update(item_id, payload)

    def approve(self, item_id: int) -> JournalEntryOut:
        return self._action(item_id, "approve")

    def reject(self, item_id: int) -> JournalEntryOut:
        return self._action(item_id, "reject")

    def post(self, item_id: int) -> JournalEntryOut:
        return self._action(item_id, "post")


class FiscalPeriodsAPI(_Resource):
    path = "/fiscal-periods"
    model = FiscalPeriodOut

    def all(self) -> List[FiscalPeriodOut]:
        return self._many(self.client.get(f"{self.path}/no_page"))

    def create(self, payload: CreateFiscalPeriod) -> FiscalPeriodOut:
        return super().create(payload)

    def close(self, item_id: int) -> FiscalPeriodOut:
        return self._action(item_id, "close")

    def reopen(self, item_id: int) -> FiscalPeriodOut:
        return self._action(item_id, "reopen")


class AccountsAPI(_Resource):
    path = "/accounts"
    model = AccountOut

    def list(self, page: int = 1, limit: int = 10, search: Optional[str] = None,
             account_type: Optional[str] = None) -> Page:
        params = _params(page=page, limit=limit, search=search, account_type=account_type)
        return self._page(self.client.get(self.path, params=params))

    def all(self) -> List[AccountOut]:
        return self._many(self.client.get(f"{self.path}/no_page"))

    def create(self, payload: CreateAccount) -> AccountOut:
        return super().create(payload)


class ExpenseCategoriesAPI(_Resource):
    path = "/expense-categories"
    model = ExpenseCategoryOut

    def all(self) -> List[ExpenseCategoryOut]:
        return self._many(self.client.get(f"{self.path}/no_page"))

    def create(self, payload: CreateExpenseCategory) -> ExpenseCategoryOut:
        return super().create(payload)


class OperationalExpensesAPI(_Resource):
    path = "/operational-expenses"
    model = OperationalExpenseOut

    def list(self, page: int = 1, limit: int = 10, search: Optional[str] = None,
             status: Optional[str] = None, category_id: Optional[int] = None) -> Page:
        params = _params(page=page, limit=limit, search=search, status=status, category_id=category_id)
        return self._page(self.client.get(self.path, params=params))

    def create(self, payload: CreateOperationalExpense) -> OperationalExpenseOut:
        return super().create(payload)

    def approve(self, item_id: int) -> OperationalExpenseOut:
        return self._action(item_id, "approve")

    def reject(self, item_id: int) -> OperationalExpenseOut:
        return self._action(item_id, "reject")

    def pay(self, item_id: int) -> OperationalExpenseOut:
        return self._action(item_id, "pay")


class AdBudgetsAPI(_Resource):
    path = "/ad-budgets"
    model = AdBudgetOut

    def list(self, page: int = 1, limit: int = 10, search: Optional[str] = None,
             platform: Optional[str] = None, month_year: Optional[str] = None) -> Page:
        params = _params(page=page, limit=limit, search=search, platform=platform, month_year=month_year)
        return self._page(self.client.get(self.path, params=params))

    def by_month(self, month_year: str) -> List[AdBudgetOut]:
        return self._many(self.client.get(f"{self.path}/month/{month_year}"))

    def create(self, payload: CreateAdBudget) -> AdBudgetOut:
        return super().create(payload)

    def update_spent(self, item_id: int, spent_amount: int) -> AdBudgetOut:
        payload = UpdateAdBudgetSpent(spent_amount=spent_amount)
        return self._one(self.client.patch(f"{self.path}/{item_id}/spent", json=_dump(payload)))


class CapitalInvestorsAPI(_Resource):
    path = "/capital-investors"
    model = CapitalInvestorOut

    def all(self) -> List[CapitalInvestorOut]:
        return self._many(self.client.get(f"{self.path}/no_page"))

    def total(self) -> TotalInvestment:
        return TotalInvestment.from_api(self.client.get(f"{self.path}/total"))

    def create(self, payload: CreateCapitalInvestor) -> CapitalInvestorOut:
        return super().create(payload)

    def update_return_paid(self, item_id: int, return_paid: int) -> CapitalInvestorOut:
        payload = UpdateReturnPaid(return_paid=return_paid)
        return self._one(self.client.patch(f"{self.path}/{item_id}/return-paid", json=_dump(payload)))

    def update_status(self, item_id: int, status: str) -> CapitalInvestorOut:
        payload = UpdateInvestorStatus(status=status)
        return self._one(self.client.patch(f"{self.path}/{item_id}/status", json=_dump(payload)))
