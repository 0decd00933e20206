from ledger_client import LedgerClient
from logging_config import configure_logging, get_logger
from models import AccountType
from schemas import CreateAccount
from settings import settings

logger = get_logger("seed")

# Basic chart for an Indonesian e-commerce operator (IDR)
DEFAULT_ACCOUNTS = [
    ("1000", "Cash on Hand", AccountType.ASSET),
    ("1010", "Bank - Operating Account", AccountType.ASSET),
    ("1100", "Marketplace Receivables", AccountType.ASSET),
    ("1200", "Inventory", AccountType.ASSET),
    ("1500", "Prepaid Ad Spend", AccountType.ASSET),
    ("1590", "Accumulated Depreciation", AccountType.CONTRA_ASSET),
    ("2000", "Accounts Payable", AccountType.LIABILITY),
    ("2100", "Taxes Payable (PPN)", AccountType.LIABILITY),
    ("2500", "Investor Loans", AccountType.LIABILITY),
    ("3000", "Owner's Capital", AccountType.EQUITY),
    ("3100", "Retained Earnings", AccountType.EQUITY),
    ("4000", "Sales Revenue", AccountType.REVENUE),
    ("4010", "Sales Returns", AccountType.REVENUE),
    ("5000", "Cost of Goods Sold", AccountType.EXPENSE),
    ("5100", "Shipping & Courier Expense", AccountType.EXPENSE),
    ("5200", "Advertising & Marketing", AccountType.EXPENSE),
    ("5300", "Marketplace Fees", AccountType.EXPENSE),
    ("5400", "Rent Expense", AccountType.EXPENSE),
    ("5500", "Bank Charges", AccountType.EXPENSE),
]

def seed_accounts(ledger: LedgerClient) -> list:
    """Create whichever default accounts the ledger does not have yet."""
    existing = {acc.account_code for acc in ledger.accounts.all()}
    created = []
    for code, name, typ in DEFAULT_ACCOUNTS:
        if code in existing:
            continue
        created.append(ledger.accounts.create(
            CreateAccount(account_code=code, account_name=name, account_type=typ)
        ))
        logger.info("Seeded account %s %s", code, name)
    return created

def main(token: str | None = None):
    configure_logging()
    with LedgerClient(settings.LEDGER_API_BASE_URL, token=token) as ledger:
        created = seed_accounts(ledger)
    logger.info("Seeded %d account(s)", len(created))

if __name__ == "__main__":
    import os
    main(os.getenv("LEDGER_API_TOKEN"))
