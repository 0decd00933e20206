from pydantic import BaseModel, Field
from typing import Any, Generic, List, Optional, TypeVar

from models import AccountType, AdPlatform, ExpenseStatus, InvestmentType, InvestorStatus, JournalEntryStatus

T = TypeVar("T")

# ---------------------- Envelope & Pagination ----------------------
class Page(BaseModel, Generic[T]):
    page: int = 1
    limit: int = 10
    total_results: int = 0
    total_pages: int = 1
    results: List[T] = Field(default_factory=list)

# ---------------------- Accounts ----------------------
class CreateAccount(BaseModel):
    account_code: str
    account_name: str
    account_type: AccountType
    parent_account_id: Optional[int] = None
    is_active: bool = True

class AccountOut(BaseModel):
    id: int
    account_code: str
    account_name: str
    account_type: AccountType
    parent_account_id: Optional[int] = None
    is_active: bool = True

    class Config:
        from_attributes = True

    @property
    def label(self) -> str:
        return f"{self.account_code} - {self.account_name}"

# ---------------------- Fiscal Periods ----------------------
class CreateFiscalPeriod(BaseModel):
    period_name: str
    period_start: str
    period_end: str

class FiscalPeriodOut(BaseModel):
    id: int
    period_name: str
    period_start: str
    period_end: str
    is_closed: bool = False
    closed_at: Optional[str] = None
    closed_by: Optional[int] = None

    class Config:
        from_attributes = True

# ---------------------- Expense Categories ----------------------
class CreateExpenseCategory(BaseModel):
    category_name: str
    description: Optional[str] = None

class ExpenseCategoryOut(BaseModel):
    id: int
    category_name: str
    description: Optional[str] = None

    class Config:
        from_attributes = True

# ---------------------- Operational Expenses ----------------------
class CreateOperationalExpense(BaseModel):
    expense_date: str
    expense_category_id: int
    account_id: int
    amount: int
    description: Optional[str] = None
    receipt_image_url: Optional[str] = None

class OperationalExpenseOut(BaseModel):
    id: int
    expense_number: str
    expense_date: str
    expense_category_id: int
    account_id: int
    amount: int
    description: Optional[str] = None
    receipt_image_url: Optional[str] = None
    status: ExpenseStatus
    approved_at: Optional[str] = None
    paid_at: Optional[str] = None
    created_by: Optional[int] = None

    class Config:
        from_attributes = True

# ---------------------- Journal Entries ----------------------
class CreateJournalLine(BaseModel):
    account_id: int
    description: str
    debit: int = 0
    credit: int = 0

class CreateJournalEntry(BaseModel):
    entry_date: str
    fiscal_period_id: int
    description: str
    reference_number: Optional[str] = None
    lines: List[CreateJournalLine]

class JournalLineOut(BaseModel):
    id: Optional[int] = None
    account_id: int
    description: str = ""
    debit: int = 0
    credit: int = 0
    account: Optional[AccountOut] = None

class JournalEntryOut(BaseModel):
    id: int
    entry_number: str
    entry_date: str
    fiscal_period_id: int
    fiscal_period: Optional[FiscalPeriodOut] = None
    description: str = ""
    reference_number: Optional[str] = None
    status: JournalEntryStatus
    total_debit: int = 0
    total_credit: int = 0
    lines: List[JournalLineOut] = Field(default_factory=list)
    approved_at: Optional[str] = None
    posted_at: Optional[str] = None
    created_at: Optional[str] = None

    class Config:
        from_attributes = True

# ---------------------- Ad Budgets ----------------------
class CreateAdBudget(BaseModel):
    platform: AdPlatform
    month_year: str
    budget_amount: int
    spent_amount: int = 0
    notes: Optional[str] = None

class UpdateAdBudgetSpent(BaseModel):
    spent_amount: int

class AdBudgetOut(BaseModel):
    id: int
    platform: AdPlatform
    month_year: str
    budget_amount: int
    spent_amount: int = 0
    notes: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def remaining(self) -> int:
        return self.budget_amount - self.spent_amount

    @property
    def usage_percent(self) -> float:
        if self.budget_amount == 0:
            return 0.0
        return min(self.spent_amount / self.budget_amount * 100, 100.0)

    @property
    def is_over_budget(self) -> bool:
        return self.spent_amount > self.budget_amount

# ---------------------- Capital Investors ----------------------
class CreateCapitalInvestor(BaseModel):
    investor_name: str
    investment_type: InvestmentType
    amount: int
    investment_date: str
    return_percentage: Optional[float] = None
    maturity_date: Optional[str] = None
    contract_document_url: Optional[str] = None
    notes: Optional[str] = None

class UpdateReturnPaid(BaseModel):
    return_paid: int

class UpdateInvestorStatus(BaseModel):
    status: InvestorStatus

class CapitalInvestorOut(BaseModel):
    id: int
    investor_name: str
    investment_type: InvestmentType
    amount: int
    investment_date: str
    return_percentage: Optional[float] = None
    maturity_date: Optional[str] = None
    return_paid: int = 0
    status: InvestorStatus = InvestorStatus.ACTIVE
    contract_document_url: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def remaining(self) -> int:
        return self.amount - self.return_paid

class TotalInvestment(BaseModel):
    total_amount: int = 0
    total_return_paid: int = 0
    total_remaining: int = 0

    @classmethod
    def from_api(cls, data: Any) -> "TotalInvestment":
        """The total endpoint answers either a bare number or a summary object."""
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return cls(total_amount=int(data), total_remaining=int(data))
        if not isinstance(data, dict):
            return cls()
        amount = int(data.get("total_amount") or 0)
        paid = int(data.get("total_return_paid") or 0)
        return cls(
            total_amount=amount,
            total_return_paid=paid,
            total_remaining=int(data.get("total_remaining") or amount - paid),
        )
