"""
Validation for the plain CRUD forms.

Each validator returns the first problem as a display string, or ``None``.
The matching builder trims input and drops blank optional fields before the
payload goes to the Ledger API.
"""
from datetime import date
from typing import Optional

from models import AccountType, AdPlatform, InvestmentType
from schemas import (
    CreateAccount,
    CreateAdBudget,
    CreateCapitalInvestor,
    CreateExpenseCategory,
    CreateFiscalPeriod,
    CreateOperationalExpense,
)
from utils import format_date_for_api, is_valid_date

MIN_NAME_LENGTH = 3


# ---------------------- Fiscal Periods ----------------------
def validate_fiscal_period(period_name: str, period_start: str, period_end: str) -> Optional[str]:
    name = (period_name or "").strip()
    if not name:
        return "Period name is required"
    if len(name) < MIN_NAME_LENGTH:
        return "Period name must be at least 3 characters"
    if not period_start or not period_end:
        return "Start and end dates are required"
    if not is_valid_date(period_start):
        return "Start date is invalid. Please select a valid date."
    if not is_valid_date(period_end):
        return "End date is invalid. Please select a valid date."
    if date.fromisoformat(period_end) <= date.fromisoformat(period_start):
        return "End date must be after start date"
    return None


def fiscal_period_payload(period_name: str, period_start: str, period_end: str) -> CreateFiscalPeriod:
    return CreateFiscalPeriod(
        period_name=period_name.strip(),
        period_start=period_start,
        period_end=period_end,
    )


# ---------------------- Accounts ----------------------
def validate_account(account_code: str, account_name: str) -> Optional[str]:
    if not (account_code or "").strip():
        return "Account code is required"
    name = (account_name or "").strip()
    if not name:
        return "Account name is required"
    if len(name) < MIN_NAME_LENGTH:
        return "Account name must be at least 3 characters"
    return None


def account_payload(account_code: str, account_name: str, account_type: str,
                    parent_account_id: Optional[int] = None, is_active: bool = True) -> CreateAccount:
    return CreateAccount(
        account_code=account_code.strip(),
        account_name=account_name.strip(),
        account_type=AccountType(account_type),
        parent_account_id=parent_account_id or None,
        is_active=is_active,
    )


# ---------------------- Expense Categories ----------------------
def validate_expense_category(category_name: str) -> Optional[str]:
    name = (category_name or "").strip()
    if not name:
        return "Category name is required"
    if len(name) < MIN_NAME_LENGTH:
        return "Category name must be at least 3 characters"
    return None


def expense_category_payload(category_name: str, description: str = "") -> CreateExpenseCategory:
    return CreateExpenseCategory(
        category_name=category_name.strip(),
        description=(description or "").strip() or None,
    )


# ---------------------- Operational Expenses ----------------------
def validate_operational_expense(expense_date: str, expense_category_id: int,
                                 account_id: int, amount: int) -> Optional[str]:
    if not expense_date:
        return "Expense date is required"
    if not expense_category_id:
        return "Expense category is required"
    if not account_id:
        return "Account is required"
    if not amount or amount <= 0:
        return "Amount must be greater than 0"
    return None


def operational_expense_payload(expense_date: str, expense_category_id: int, account_id: int,
                                amount: int, description: str = "",
                                receipt_image_url: str = "") -> CreateOperationalExpense:
    return CreateOperationalExpense(
        expense_date=expense_date,
        expense_category_id=expense_category_id,
        account_id=account_id,
        amount=amount,
        description=(description or "").strip() or None,
        receipt_image_url=(receipt_image_url or "").strip() or None,
    )


# ---------------------- Ad Budgets ----------------------
def validate_ad_budget(platform: str, month_year: str, budget_amount: int, spent_amount: int) -> Optional[str]:
    if not (platform or "").strip():
        return "Platform is required"
    if not month_year:
        return "Month is required"
    if not budget_amount or budget_amount <= 0:
        return "Budget amount must be greater than 0"
    if spent_amount > budget_amount:
        return "Spent amount cannot exceed budget amount"
    return None


def validate_ad_budget_spent(spent_amount: int, budget_amount: int) -> Optional[str]:
    if spent_amount < 0:
        return "Spent amount cannot be negative"
    if spent_amount > budget_amount:
        return "Spent amount cannot exceed budget amount"
    return None


def month_start(month_year: str) -> str:
    """``2025-01`` (a month input) or any date in the month -> ``2025-01-01``."""
    return f"{month_year[:7]}-01"


def ad_budget_payload(platform: str, month_year: str, budget_amount: int,
                      spent_amount: int = 0, notes: str = "") -> CreateAdBudget:
    return CreateAdBudget(
        platform=AdPlatform(platform.strip()),
        month_year=month_start(month_year),
        budget_amount=budget_amount,
        spent_amount=spent_amount or 0,
        notes=(notes or "").strip() or None,
    )


# ---------------------- Capital Investors ----------------------
def _is_api_date(value: str) -> bool:
    try:
        format_date_for_api(value)
    except ValueError:
        return False
    return True


def validate_capital_investor(investor_name: str, amount: int, investment_date: str,
                              maturity_date: str = "") -> Optional[str]:
    if not (investor_name or "").strip():
        return "Investor name is required"
    if not amount or amount <= 0:
        return "Amount must be greater than 0"
    if not investment_date:
        return "Investment date is required"
    if not _is_api_date(investment_date):
        return "Investment date is invalid. Please select a valid date."
    if maturity_date and not _is_api_date(maturity_date):
        return "Maturity date is invalid. Please select a valid date."
    return None


def validate_return_paid(return_paid: int) -> Optional[str]:
    if return_paid < 0:
        return "Return paid cannot be negative"
    return None


def capital_investor_payload(investor_name: str, investment_type: str, amount: int, investment_date: str,
                             return_percentage: Optional[float] = None, maturity_date: str = "",
                             contract_document_url: str = "", notes: str = "") -> CreateCapitalInvestor:
    # Date pickers may hand over ISO datetimes; the API only takes YYYY-MM-DD
    return CreateCapitalInvestor(
        investor_name=investor_name.strip(),
        investment_type=InvestmentType(investment_type),
        amount=amount,
        investment_date=format_date_for_api(investment_date),
        return_percentage=return_percentage or None,
        maturity_date=format_date_for_api(maturity_date) if maturity_date else None,
        contract_document_url=(contract_document_url or "").strip() or None,
        notes=(notes or "").strip() or None,
    )
