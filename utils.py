import calendar
import re
from datetime import date, datetime
from typing import Optional, Union

# Rupiah has no subunit in practice: amounts are whole numbers, "." groups thousands
THOUSANDS_SEP = "."
_DIGITS = re.compile(r"^\d+$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def format_number(value: Union[int, str]) -> str:
    """Group digits with dots: ``"1500000"`` -> ``"1.500.000"``.

    Non-digit characters in string input are ignored, so re-formatting an
    already formatted value is stable. Returns ``""`` when there are no digits.
    """
    digits = re.sub(r"\D", "", str(value))
    if not digits:
        return ""
    return f"{int(digits):,}".replace(",", THOUSANDS_SEP)


def parse_formatted_number(value: Optional[str]) -> int:
    """Inverse of :func:`format_number`. Anything unparseable is 0."""
    if not value:
        return 0
    cleaned = value.strip()
    if cleaned[:2].lower() == "rp":
        cleaned = cleaned[2:]
    cleaned = cleaned.replace(THOUSANDS_SEP, "").replace(" ", "").replace("\u00a0", "")
    if not _DIGITS.match(cleaned):
        return 0
    return int(cleaned)


def format_currency(amount: int) -> str:
    """Format an IDR amount for display, e.g. ``Rp 500.000``."""
    sign = "-" if amount < 0 else ""
    return f"{sign}Rp {format_number(abs(int(amount))) or '0'}"


def is_valid_date(value: Optional[str]) -> bool:
    if not value or not _ISO_DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def format_date_for_api(value: Union[date, datetime, str]) -> str:
    """Normalise to ``YYYY-MM-DD``; ISO datetimes keep only their date part."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if "T" in value:
        value = value.split("T", 1)[0]
    return date.fromisoformat(value).isoformat()


def format_date(value: Optional[str]) -> str:
    """``2025-12-28`` -> ``28 Dec 2025``; empty input renders as ``-``."""
    if not value:
        return "-"
    return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%d %b %Y")


def format_datetime(value: Optional[str]) -> str:
    if not value:
        return "-"
    return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%d %b %Y, %H:%M")


def today_formatted() -> str:
    return date.today().isoformat()


def first_day_of_current_month(today: Optional[date] = None) -> str:
    today = today or date.today()
    return today.replace(day=1).isoformat()


def last_day_of_current_month(today: Optional[date] = None) -> str:
    today = today or date.today()
    last = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=last).isoformat()
