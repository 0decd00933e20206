"""
Journal entry composer.

Builds a double-entry journal entry before it is handed to the Ledger API.
A draft is a set of lines, each carrying either a debit or a credit (never
both), and it is only submittable once total debits equal total credits.
The check is advisory: the Ledger API re-validates every entry it receives.

Amounts are whole rupiah (``int``). Totals are recomputed on every call.
"""
import math
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Union

from ledger_client import LedgerAPIError, LedgerClient
from logging_config import get_logger
from schemas import CreateJournalEntry, CreateJournalLine, JournalEntryOut
from utils import format_currency, parse_formatted_number

logger = get_logger("composer")

MIN_LINES = 2
MIN_LINES_MESSAGE = "Journal entry must have at least 2 lines"


@dataclass
class JournalLineDraft:
    account_id: int = 0
    description: str = ""
    debit: int = 0
    credit: int = 0


def _blank_lines() -> List[JournalLineDraft]:
    return [JournalLineDraft() for _ in range(MIN_LINES)]


@dataclass
class JournalEntryDraft:
    entry_date: str = ""
    fiscal_period_id: int = 0
    description: str = ""
    reference_number: str = ""
    lines: List[JournalLineDraft] = field(default_factory=_blank_lines)


class Totals(NamedTuple):
    total_debit: int
    total_credit: int
    is_balanced: bool


@dataclass(frozen=True)
class DraftError:
    """The first rule a draft breaks. ``line`` is 0-based when the error is line-scoped."""
    field: str
    message: str
    line: Optional[int] = None

    def __str__(self) -> str:
        return self.message


class DraftInvalid(Exception):
    def __init__(self, error: DraftError):
        self.error = error
        super().__init__(error.message)


# ---------------------- Pure helpers ----------------------
def parse_amount(raw: Union[int, float, str, None]) -> int:
    """User input -> non-negative whole amount; empty or invalid input is 0."""
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw) or raw < 0:
            return 0
        return int(raw)
    return parse_formatted_number(raw)


def compute_totals(lines: List[JournalLineDraft]) -> Totals:
    total_debit = sum(line.debit or 0 for line in lines)
    total_credit = sum(line.credit or 0 for line in lines)
    return Totals(total_debit, total_credit, total_debit == total_credit)


def validate(draft: JournalEntryDraft) -> Optional[DraftError]:
    """Return the first failing rule, or ``None`` when the draft can be submitted."""
    if not draft.entry_date:
        return DraftError("entry_date", "Entry date is required")
    if not draft.fiscal_period_id:
        return DraftError("fiscal_period_id", "Fiscal period is required")
    if not draft.description.strip():
        return DraftError("description", "Description is required")
    if len(draft.lines) < MIN_LINES:
        return DraftError("lines", MIN_LINES_MESSAGE)

    for i, line in enumerate(draft.lines):
        n = i + 1
        if not line.account_id:
            return DraftError("account_id", f"Line {n}: Account is required", i)
        if not line.description.strip():
            return DraftError("description", f"Line {n}: Description is required", i)
        if line.debit == 0 and line.credit == 0:
            return DraftError("amount", f"Line {n}: Either debit or credit must be greater than 0", i)
        # The setters already keep debit and credit exclusive; drafts built
        # directly (or seeded from the API) can still carry both.
        if line.debit > 0 and line.credit > 0:
            return DraftError("amount", f"Line {n}: Cannot have both debit and credit", i)

    totals = compute_totals(draft.lines)
    if not totals.is_balanced:
        return DraftError(
            "lines",
            f"Total debit ({format_currency(totals.total_debit)}) must equal "
            f"total credit ({format_currency(totals.total_credit)})",
        )
    return None


def to_submission_payload(draft: JournalEntryDraft) -> CreateJournalEntry:
    return CreateJournalEntry(
        entry_date=draft.entry_date,
        fiscal_period_id=draft.fiscal_period_id,
        description=draft.description.strip(),
        reference_number=draft.reference_number.strip() or None,
        lines=[
            CreateJournalLine(
                account_id=line.account_id,
                description=line.description.strip(),
                debit=line.debit or 0,
                credit=line.credit or 0,
            )
            for line in draft.lines
        ],
    )


# ---------------------- Composer ----------------------
class JournalEntryComposer:
    """One open create/edit session for a journal entry.

    ``error`` holds the single message currently shown to the user; any
    successful edit clears it.
    """

    def __init__(self, draft: Optional[JournalEntryDraft] = None, entry_id: Optional[int] = None):
        self.draft = draft if draft is not None else JournalEntryDraft()
        self.entry_id = entry_id
        self.error: Optional[str] = None

    @classmethod
    def blank(cls, entry_date: str = "", fiscal_period_id: int = 0) -> "JournalEntryComposer":
        return cls(JournalEntryDraft(entry_date=entry_date, fiscal_period_id=fiscal_period_id))

    @classmethod
    def from_entry(cls, entry: JournalEntryOut) -> "JournalEntryComposer":
        """Seed an edit session from an entry fetched from the Ledger API."""
        lines = [
            JournalLineDraft(
                account_id=line.account_id,
                description=line.description,
                debit=line.debit,
                credit=line.credit,
            )
            for line in entry.lines
        ] or _blank_lines()
        draft = JournalEntryDraft(
            entry_date=entry.entry_date,
            fiscal_period_id=entry.fiscal_period_id,
            description=entry.description,
            reference_number=entry.reference_number or "",
            lines=lines,
        )
        return cls(draft, entry_id=entry.id)

    @property
    def lines(self) -> List[JournalLineDraft]:
        return self.draft.lines

    @property
    def is_edit(self) -> bool:
        return self.entry_id is not None

    def _line(self, index: int) -> JournalLineDraft:
        if not 0 <= index < len(self.draft.lines):
            raise IndexError(f"line {index} out of range")
        return self.draft.lines[index]

    # ---------------------- Line mutations ----------------------
    def add_line(self) -> None:
        self.draft.lines.append(JournalLineDraft())
        self.error = None

    def remove_line(self, index: int) -> Optional[str]:
        """Drop a line; refused (and reported) when only two remain."""
        if len(self.draft.lines) <= MIN_LINES:
            self.error = MIN_LINES_MESSAGE
            return self.error
        self._line(index)
        del self.draft.lines[index]
        self.error = None
        return None

    def set_line_account(self, index: int, account_id: int) -> None:
        self._line(index).account_id = account_id or 0
        self.error = None

    def set_line_description(self, index: int, description: str) -> None:
        self._line(index).description = description or ""
        self.error = None

    def set_line_debit(self, index: int, raw) -> int:
        line = self._line(index)
        amount = parse_amount(raw)
        line.debit = amount
        if amount > 0:
            line.credit = 0
        self.error = None
        return amount

    def set_line_credit(self, index: int, raw) -> int:
        line = self._line(index)
        amount = parse_amount(raw)
        line.credit = amount
        if amount > 0:
            line.debit = 0
        self.error = None
        return amount

    # ---------------------- Derived state ----------------------
    def compute_totals(self) -> Totals:
        return compute_totals(self.draft.lines)

    def validate(self) -> Optional[DraftError]:
        return validate(self.draft)

    def to_submission_payload(self) -> CreateJournalEntry:
        return to_submission_payload(self.draft)

    # ---------------------- Submission ----------------------
    def submit(self, ledger: LedgerClient) -> JournalEntryOut:
        """Validate, then create or update the entry on the Ledger API.

        Remote failures are kept verbatim in ``error`` and re-raised with the
        draft intact. Only a successful submission discards the draft.
        """
        problem = self.validate()
        if problem is not None:
            self.error = problem.message
            raise DraftInvalid(problem)

        payload = self.to_submission_payload()
        try:
            if self.is_edit:
                entry = ledger.journal_entries.update(self.entry_id, payload)
            else:
                entry = ledger.journal_entries.create(payload)
        except LedgerAPIError as exc:
            self.error = exc.message
            raise

        logger.info("Journal entry %s saved (%s lines)", entry.entry_number, len(payload.lines))
        self.draft = JournalEntryDraft()
        self.entry_id = None
        self.error = None
        return entry
