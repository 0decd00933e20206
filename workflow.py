"""
Workflow transitions and permission decisions.

The Ledger API enforces every transition; the tables here only decide which
actions the back-office offers and which requests it bothers to send. Each
decision takes an explicit ``AuthContext`` built from the request session.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from models import Action, ExpenseStatus, FiscalPeriodState, JournalEntryStatus, UserRole


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    role: UserRole
    access_token: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role.rank >= UserRole.ADMIN.rank

    @property
    def is_superadmin(self) -> bool:
        return self.role is UserRole.SUPERADMIN

    def has_role(self, minimum: UserRole) -> bool:
        return self.role.rank >= minimum.rank


class ActionNotAllowed(Exception):
    def __init__(self, message: str, action: Action):
        self.message = message
        self.action = action
        super().__init__(message)


@dataclass(frozen=True)
class Workflow:
    """(state, action) -> next state, plus the minimum role per action."""
    name: str
    singular: str
    transitions: Dict[Tuple[str, Action], str]
    min_role: Dict[Action, UserRole]
    # Actions that staff may also take on records they created themselves
    owner_actions: frozenset = frozenset()

    def next_state(self, state, action: Action):
        return self.transitions.get((state, action))

    def state_allows(self, state, action: Action) -> bool:
        return (state, action) in self.transitions

    def allowed(self, state, action: Action, ctx: AuthContext, owner_id: Optional[int] = None) -> bool:
        if not self.state_allows(state, action):
            return False
        if ctx.has_role(self.min_role.get(action, UserRole.STAFF)):
            return True
        return action in self.owner_actions and owner_id is not None and owner_id == ctx.user_id

    def available(self, state, ctx: AuthContext, owner_id: Optional[int] = None) -> list:
        return [action for action in Action if self.allowed(state, action, ctx, owner_id)]

    def require(self, state, action: Action, ctx: AuthContext, owner_id: Optional[int] = None) -> None:
        if not self.state_allows(state, action):
            allowed_from = sorted(s.value for s, a in self.transitions if a is action)
            raise ActionNotAllowed(
                f"Can only {action.value} {self.name} with {' or '.join(allowed_from)} status", action
            )
        if not self.allowed(state, action, ctx, owner_id):
            raise ActionNotAllowed(
                f"You do not have permission to {action.value} this {self.singular}", action
            )


# Edit/delete leave the state unchanged (delete is terminal on the server)
JOURNAL_ENTRY_WORKFLOW = Workflow(
    name="journal entries",
    singular="journal entry",
    transitions={
        (JournalEntryStatus.DRAFT, Action.EDIT): JournalEntryStatus.DRAFT,
        (JournalEntryStatus.DRAFT, Action.DELETE): JournalEntryStatus.DRAFT,
        (JournalEntryStatus.DRAFT, Action.APPROVE): JournalEntryStatus.APPROVED,
        (JournalEntryStatus.DRAFT, Action.REJECT): JournalEntryStatus.REJECTED,
        (JournalEntryStatus.APPROVED, Action.POST): JournalEntryStatus.POSTED,
    },
    min_role={
        Action.APPROVE: UserRole.ADMIN,
        Action.REJECT: UserRole.ADMIN,
        Action.POST: UserRole.ADMIN,
    },
)

EXPENSE_WORKFLOW = Workflow(
    name="expenses",
    singular="expense",
    transitions={
        (ExpenseStatus.PENDING, Action.EDIT): ExpenseStatus.PENDING,
        (ExpenseStatus.PENDING, Action.DELETE): ExpenseStatus.PENDING,
        (ExpenseStatus.PENDING, Action.APPROVE): ExpenseStatus.APPROVED,
        (ExpenseStatus.PENDING, Action.REJECT): ExpenseStatus.REJECTED,
        (ExpenseStatus.APPROVED, Action.PAY): ExpenseStatus.PAID,
    },
    min_role={
        Action.EDIT: UserRole.ADMIN,
        Action.DELETE: UserRole.ADMIN,
        Action.APPROVE: UserRole.ADMIN,
        Action.REJECT: UserRole.ADMIN,
        Action.PAY: UserRole.ADMIN,
    },
    owner_actions=frozenset({Action.EDIT, Action.DELETE}),
)

FISCAL_PERIOD_WORKFLOW = Workflow(
    name="fiscal periods",
    singular="fiscal period",
    transitions={
        (FiscalPeriodState.OPEN, Action.EDIT): FiscalPeriodState.OPEN,
        (FiscalPeriodState.OPEN, Action.DELETE): FiscalPeriodState.OPEN,
        (FiscalPeriodState.OPEN, Action.CLOSE): FiscalPeriodState.CLOSED,
        (FiscalPeriodState.CLOSED, Action.REOPEN): FiscalPeriodState.OPEN,
    },
    min_role={
        Action.EDIT: UserRole.ADMIN,
        Action.DELETE: UserRole.ADMIN,
        Action.CLOSE: UserRole.ADMIN,
        Action.REOPEN: UserRole.SUPERADMIN,
    },
)


def can_manage_master_data(ctx: AuthContext) -> bool:
    """Creating accounts, categories and fiscal periods is admin work."""
    return ctx.is_admin


def can_change_investor_status(ctx: AuthContext) -> bool:
    """Marking an investment defaulted, cancelled or fully paid is superadmin work."""
    return ctx.is_superadmin
