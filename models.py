import enum

# ----------------------
# Chart of Accounts
# ----------------------
class AccountType(str, enum.Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    CONTRA_ASSET = "contra_asset"
    CONTRA_LIABILITY = "contra_liability"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

# ----------------------
# Workflow states (as reported by the Ledger API)
# ----------------------
class JournalEntryStatus(str, enum.Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    REJECTED = "rejected"
    POSTED = "posted"

class ExpenseStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"

class FiscalPeriodState(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"

    @classmethod
    def of(cls, is_closed: bool) -> "FiscalPeriodState":
        return cls.CLOSED if is_closed else cls.OPEN

# ----------------------
# Users & Actions
# ----------------------
class UserRole(str, enum.Enum):
    STAFF = "staff"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

_ROLE_RANK = {UserRole.STAFF: 0, UserRole.ADMIN: 1, UserRole.SUPERADMIN: 2}

class Action(str, enum.Enum):
    EDIT = "edit"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    POST = "post"
    PAY = "pay"
    CLOSE = "close"
    REOPEN = "reopen"

# ----------------------
# Ad Budgets & Capital Investors
# ----------------------
class AdPlatform(str, enum.Enum):
    META_ADS = "meta_ads"
    GOOGLE_ADS = "google_ads"
    TIKTOK_ADS = "tiktok_ads"
    SHOPEE_ADS = "shopee_ads"
    LAZADA_ADS = "lazada_ads"
    BLIBLI_ADS = "blibli_ads"

    @property
    def label(self) -> str:
        return _PLATFORM_LABELS[self]

_PLATFORM_LABELS = {
    AdPlatform.META_ADS: "Meta Ads",
    AdPlatform.GOOGLE_ADS: "Google Ads",
    AdPlatform.TIKTOK_ADS: "TikTok Ads",
    AdPlatform.SHOPEE_ADS: "Shopee Ads",
    AdPlatform.LAZADA_ADS: "Lazada Ads",
    AdPlatform.BLIBLI_ADS: "Blibli Ads",
}

class InvestmentType(str, enum.Enum):
    EQUITY = "equity"
    DEBT = "debt"
    CONVERTIBLE_NOTE = "convertible_note"
    GRANT = "grant"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

class InvestorStatus(str, enum.Enum):
    ACTIVE = "active"
    FULLY_PAID = "fully_paid"
    DEFAULTED = "defaulted"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()
