"""
Tests for the workflow transition tables and permission decisions.
"""
import pytest

from models import Action, ExpenseStatus, FiscalPeriodState, JournalEntryStatus, UserRole
from workflow import (
    EXPENSE_WORKFLOW,
    FISCAL_PERIOD_WORKFLOW,
    JOURNAL_ENTRY_WORKFLOW,
    ActionNotAllowed,
    AuthContext,
    can_change_investor_status,
    can_manage_master_data,
)

STAFF = AuthContext(user_id=7, role=UserRole.STAFF)
ADMIN = AuthContext(user_id=1, role=UserRole.ADMIN)
SUPERADMIN = AuthContext(user_id=2, role=UserRole.SUPERADMIN)


class TestAuthContext:

    def test_role_ranks(self):
        assert not STAFF.is_admin
        assert ADMIN.is_admin and not ADMIN.is_superadmin
        assert SUPERADMIN.is_admin and SUPERADMIN.is_superadmin

    def test_master_data_is_admin_only(self):
        assert not can_manage_master_data(STAFF)
        assert can_manage_master_data(ADMIN)

    def test_investor_status_needs_superadmin(self):
        assert not can_change_investor_status(ADMIN)
        assert can_change_investor_status(SUPERADMIN)


class TestJournalEntryWorkflow:

    def test_draft_actions_for_admin(self):
        assert JOURNAL_ENTRY_WORKFLOW.available(JournalEntryStatus.DRAFT, ADMIN) == [
            Action.EDIT, Action.DELETE, Action.APPROVE, Action.REJECT,
        ]

    def test_draft_actions_for_staff(self):
        assert JOURNAL_ENTRY_WORKFLOW.available(JournalEntryStatus.DRAFT, STAFF) == [Action.EDIT, Action.DELETE]

    def test_only_approved_entries_can_be_posted(self):
        assert JOURNAL_ENTRY_WORKFLOW.available(JournalEntryStatus.APPROVED, ADMIN) == [Action.POST]
        assert JOURNAL_ENTRY_WORKFLOW.available(JournalEntryStatus.APPROVED, STAFF) == []

    @pytest.mark.parametrize("status", [JournalEntryStatus.POSTED, JournalEntryStatus.REJECTED])
    def test_terminal_states(self, status):
        assert JOURNAL_ENTRY_WORKFLOW.available(status, SUPERADMIN) == []

    def test_next_state(self):
        assert JOURNAL_ENTRY_WORKFLOW.next_state(JournalEntryStatus.DRAFT, Action.APPROVE) is JournalEntryStatus.APPROVED
        assert JOURNAL_ENTRY_WORKFLOW.next_state(JournalEntryStatus.APPROVED, Action.POST) is JournalEntryStatus.POSTED
        assert JOURNAL_ENTRY_WORKFLOW.next_state(JournalEntryStatus.POSTED, Action.POST) is None

    def test_require_wrong_state(self):
        with pytest.raises(ActionNotAllowed) as exc_info:
            JOURNAL_ENTRY_WORKFLOW.require(JournalEntryStatus.APPROVED, Action.EDIT, ADMIN)
        assert exc_info.value.message == "Can only edit journal entries with draft status"

    def test_require_missing_role(self):
        with pytest.raises(ActionNotAllowed) as exc_info:
            JOURNAL_ENTRY_WORKFLOW.require(JournalEntryStatus.DRAFT, Action.APPROVE, STAFF)
        assert exc_info.value.message == "You do not have permission to approve this journal entry"
        assert exc_info.value.action is Action.APPROVE

    def test_require_passes(self):
        JOURNAL_ENTRY_WORKFLOW.require(JournalEntryStatus.APPROVED, Action.POST, ADMIN)


class TestExpenseWorkflow:

    def test_owner_can_edit_own_pending_expense(self):
        assert EXPENSE_WORKFLOW.allowed(ExpenseStatus.PENDING, Action.EDIT, STAFF, owner_id=7)
        assert EXPENSE_WORKFLOW.allowed(ExpenseStatus.PENDING, Action.DELETE, STAFF, owner_id=7)

    def test_staff_cannot_touch_others_expense(self):
        assert EXPENSE_WORKFLOW.available(ExpenseStatus.PENDING, STAFF, owner_id=99) == []

    def test_owner_cannot_approve(self):
        assert not EXPENSE_WORKFLOW.allowed(ExpenseStatus.PENDING, Action.APPROVE, STAFF, owner_id=7)

    def test_admin_pays_approved_expense(self):
        assert EXPENSE_WORKFLOW.available(ExpenseStatus.APPROVED, ADMIN) == [Action.PAY]
        assert EXPENSE_WORKFLOW.next_state(ExpenseStatus.APPROVED, Action.PAY) is ExpenseStatus.PAID

    def test_paid_expense_is_final(self):
        with pytest.raises(ActionNotAllowed) as exc_info:
            EXPENSE_WORKFLOW.require(ExpenseStatus.PAID, Action.DELETE, ADMIN)
        assert exc_info.value.message == "Can only delete expenses with pending status"


class TestFiscalPeriodWorkflow:

    def test_state_from_flag(self):
        assert FiscalPeriodState.of(True) is FiscalPeriodState.CLOSED
        assert FiscalPeriodState.of(False) is FiscalPeriodState.OPEN

    def test_admin_closes_open_period(self):
        assert FISCAL_PERIOD_WORKFLOW.available(FiscalPeriodState.OPEN, ADMIN) == [
            Action.EDIT, Action.DELETE, Action.CLOSE,
        ]

    def test_reopen_needs_superadmin(self):
        assert not FISCAL_PERIOD_WORKFLOW.allowed(FiscalPeriodState.CLOSED, Action.REOPEN, ADMIN)
        assert FISCAL_PERIOD_WORKFLOW.allowed(FiscalPeriodState.CLOSED, Action.REOPEN, SUPERADMIN)

    def test_closed_period_cannot_be_edited(self):
        with pytest.raises(ActionNotAllowed) as exc_info:
            FISCAL_PERIOD_WORKFLOW.require(FiscalPeriodState.CLOSED, Action.EDIT, SUPERADMIN)
        assert exc_info.value.message == "Can only edit fiscal periods with open status"

    def test_staff_sees_nothing(self):
        assert FISCAL_PERIOD_WORKFLOW.available(FiscalPeriodState.OPEN, STAFF) == []

    def test_next_state(self):
        assert FISCAL_PERIOD_WORKFLOW.next_state(FiscalPeriodState.OPEN, Action.CLOSE) is FiscalPeriodState.CLOSED
        assert FISCAL_PERIOD_WORKFLOW.next_state(FiscalPeriodState.CLOSED, Action.CLOSE) is None
