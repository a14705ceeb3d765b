# accounting/errors.py
"""
Error values for ledger operations.

Validation, posting and the other commands report failures as values
(Result.fail(LedgerError(...))) rather than raising, so batch callers
can collect per-item failures and keep going.

Exceptions are kept for the two cases that are not caller mistakes:
- EntryLockedError: a store-level guard caught a write to a posted
  entry that slipped past the command layer
- LedgerIntegrityError: a validated ledger no longer balances
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    STRUCTURAL = "structural"
    CONSISTENCY = "consistency"
    STATE = "state"
    AUTHORIZATION = "authorization"
    LOOKUP = "lookup"


class ErrorKind(str, Enum):
    # Structural: caller's fault, reject with field context
    EMPTY_ENTRY = "empty_entry"
    UNKNOWN_OR_INACTIVE_ACCOUNT = "unknown_or_inactive_account"
    INVALID_LINE_AMOUNT = "invalid_line_amount"
    INVALID_ACCOUNT_TYPE = "invalid_account_type"
    INVALID_INPUT = "invalid_input"

    # Consistency: carry the discrepancy
    UNBALANCED_ENTRY = "unbalanced_entry"
    TOTAL_MISMATCH = "total_mismatch"

    # State: workflow or concurrency violation
    ENTRY_LOCKED = "entry_locked"
    ENTRY_ALREADY_POSTED = "entry_already_posted"
    ALREADY_REVERSED = "already_reversed"
    ACCOUNT_TYPE_LOCKED = "account_type_locked"
    DELETION_REFUSED = "deletion_refused"

    # Authorization
    PERMISSION_DENIED = "permission_denied"

    # Lookup
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]


_CATEGORIES = {
    ErrorKind.EMPTY_ENTRY: ErrorCategory.STRUCTURAL,
    ErrorKind.UNKNOWN_OR_INACTIVE_ACCOUNT: ErrorCategory.STRUCTURAL,
    ErrorKind.INVALID_LINE_AMOUNT: ErrorCategory.STRUCTURAL,
    ErrorKind.INVALID_ACCOUNT_TYPE: ErrorCategory.STRUCTURAL,
    ErrorKind.INVALID_INPUT: ErrorCategory.STRUCTURAL,
    ErrorKind.UNBALANCED_ENTRY: ErrorCategory.CONSISTENCY,
    ErrorKind.TOTAL_MISMATCH: ErrorCategory.CONSISTENCY,
    ErrorKind.ENTRY_LOCKED: ErrorCategory.STATE,
    ErrorKind.ENTRY_ALREADY_POSTED: ErrorCategory.STATE,
    ErrorKind.ALREADY_REVERSED: ErrorCategory.STATE,
    ErrorKind.ACCOUNT_TYPE_LOCKED: ErrorCategory.STATE,
    ErrorKind.DELETION_REFUSED: ErrorCategory.STATE,
    ErrorKind.PERMISSION_DENIED: ErrorCategory.AUTHORIZATION,
    ErrorKind.NOT_FOUND: ErrorCategory.LOOKUP,
    ErrorKind.DUPLICATE: ErrorCategory.LOOKUP,
}


@dataclass(frozen=True)
class LedgerError:
    """
    A single failure reported by the validator or a command.

    Attributes:
        kind: What went wrong
        message: Human-readable message for the end user
        field: Offending field name, when there is one
        line_no: 1-based line number for line-level errors
        difference: Discrepancy amount for consistency errors
    """
    kind: ErrorKind
    message: str
    field: Optional[str] = None
    line_no: Optional[int] = None
    difference: Optional[Decimal] = None

    @property
    def category(self) -> ErrorCategory:
        return self.kind.category

    def to_dict(self) -> dict:
        data = {
            "kind": self.kind.value,
            "category": self.category.value,
            "detail": self.message,
        }
        if self.field is not None:
            data["field"] = self.field
        if self.line_no is not None:
            data["line_no"] = self.line_no
        if self.difference is not None:
            data["difference"] = str(self.difference)
        return data

    def __str__(self):
        return self.message


class Result:
    """
    Outcome of a validation or command.

    Usage:
        result = post_journal_entry(actor, entry_id)
        if result.success:
            entry = result.data
        else:
            error = result.error   # LedgerError
    """

    def __init__(self, success: bool, data: Any = None, error: LedgerError = None):
        self.success = success
        self.data = data
        self.error = error

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str, **details):
        return cls(success=False, error=LedgerError(kind=kind, message=message, **details))

    @classmethod
    def from_error(cls, error: LedgerError):
        return cls(success=False, error=error)

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    def __bool__(self):
        return self.success

    def __eq__(self, other):
        if not isinstance(other, Result):
            return NotImplemented
        return (self.success, self.data, self.error) == (other.success, other.data, other.error)

    def __repr__(self):
        if self.success:
            return f"Result.ok({self.data!r})"
        return f"Result.fail({self.error.kind.value}: {self.error.message})"


@dataclass
class BatchResult:
    """Per-item results of a batch operation, in input order."""
    results: list = field(default_factory=list)

    @property
    def succeeded(self) -> list:
        return [r.data for r in self.results if r.success]

    @property
    def failed(self) -> list:
        return [(index, r.error) for index, r in enumerate(self.results) if not r.success]

    @property
    def all_ok(self) -> bool:
        return all(r.success for r in self.results)


class EntryLockedError(Exception):
    """Raised by model guards when a posted entry or its lines are written."""


class LedgerIntegrityError(Exception):
    """Raised when a ledger that passed validation no longer balances."""
