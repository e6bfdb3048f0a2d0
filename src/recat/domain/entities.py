"""Domain model entities for recat.

These are pure data classes representing business concepts, independent of
database schema. Rule predicates are plain tagged data (a tree of condition
groups and leaf conditions) rather than a class per rule kind.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, Union

from recat.domain.errors import ValidationError

# Category provenance values stored on transactions and audit entries
SOURCE_MANUAL = "manual"
SOURCE_RULE = "rule"
SOURCE_UNDO = "undo"


@dataclass(frozen=True)
class Account:
    """Bank account domain entity."""

    id: int
    name: str
    bank_name: str
    created_at: datetime


@dataclass(frozen=True)
class Category:
    """Category domain entity with hierarchical structure."""

    id: int
    name: str
    parent_id: Optional[int]
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """Transaction domain entity.

    Only the category fields are ever changed by the rule engine. The
    (category_source, category_batch_id) pair records why the transaction has
    its current category: set manually, or set by exactly one batch.
    """

    id: int
    unique_id: str
    account_id: int
    date: date
    amount: Decimal
    description: Optional[str]
    category_id: Optional[int]
    notes: Optional[str]
    imported_at: datetime
    category_source: Optional[str] = None
    category_batch_id: Optional[int] = None
    category_locked: bool = False


@dataclass(frozen=True)
class Condition:
    """Leaf comparison of one transaction field against a value."""

    field: str
    op: str
    value: Union[str, int, Decimal]


@dataclass(frozen=True)
class ConditionGroup:
    """Logical combination of conditions.

    ``operator`` is "all" (AND) or "any" (OR).
    """

    operator: str
    conditions: tuple["Predicate", ...] = ()


Predicate = Union[Condition, ConditionGroup]


@dataclass(frozen=True)
class Rule:
    """Categorization rule: a predicate plus the category it assigns."""

    id: int
    name: str
    predicate: Predicate
    category_id: int
    is_active: bool
    created_at: datetime


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range. Either bound may be open."""

    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self):
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValidationError(
                f"Invalid date range: start {self.start} is after end {self.end}"
            )


@dataclass(frozen=True)
class BatchChange:
    """One transaction's before/after category pair within a batch."""

    id: int
    batch_id: int
    transaction_id: int
    previous_category_id: Optional[int]
    new_category_id: Optional[int]
    previous_category_source: Optional[str] = None
    previous_batch_id: Optional[int] = None


@dataclass(frozen=True)
class BatchChangeDraft:
    """A change computed by the applier, before its batch row exists."""

    transaction_id: int
    previous_category_id: Optional[int]
    new_category_id: Optional[int]
    previous_category_source: Optional[str]
    previous_batch_id: Optional[int]


@dataclass(frozen=True)
class Batch:
    """Audit record of one rule application and every change it made."""

    id: int
    rule_id: Optional[int]
    created_at: datetime
    created_by: str
    is_undone: bool
    undone_at: Optional[datetime]
    date_range_start: Optional[date] = None
    date_range_end: Optional[date] = None
    description: Optional[str] = None
    changes: tuple[BatchChange, ...] = ()

    @property
    def transaction_count(self) -> int:
        return len(self.changes)


@dataclass(frozen=True)
class BatchSummary:
    """Registry view of a batch, without its change rows."""

    id: int
    rule_id: Optional[int]
    rule_name: Optional[str]
    created_at: datetime
    created_by: str
    transaction_count: int
    is_undone: bool
    undone_at: Optional[datetime]
    date_range_start: Optional[date] = None
    date_range_end: Optional[date] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class PreviewEntry:
    """A transaction the rule matches, with the change it would make."""

    transaction: Transaction
    previous_category_id: Optional[int]
    new_category_id: int
    is_noop: bool
    is_locked: bool

    @property
    def would_change(self) -> bool:
        return not self.is_noop and not self.is_locked


@dataclass(frozen=True)
class PreviewResult:
    """Read-only report of what applying a rule would do."""

    rule_id: int
    rule_name: str
    entries: tuple[PreviewEntry, ...] = ()

    @property
    def total_matching(self) -> int:
        return len(self.entries)

    @property
    def would_change(self) -> int:
        return sum(1 for entry in self.entries if entry.would_change)

    @property
    def would_skip_locked(self) -> int:
        return sum(1 for entry in self.entries if entry.is_locked)

    @property
    def noop_count(self) -> int:
        return sum(1 for entry in self.entries if entry.is_noop and not entry.is_locked)

    @property
    def changed_transaction_ids(self) -> list[int]:
        return [entry.transaction.id for entry in self.entries if entry.would_change]


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of applying a rule. ``batch`` is None when nothing changed."""

    batch: Optional[Batch]
    applied_count: int
    skipped_locked: int
    skipped_noop: int


@dataclass(frozen=True)
class UndoResult:
    """Outcome of undoing a batch."""

    batch_id: int
    success: bool
    transactions_reverted: int
    overwritten_transaction_ids: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class AuditEntry:
    """One recorded category change on a transaction."""

    id: int
    transaction_id: int
    previous_category_id: Optional[int]
    new_category_id: Optional[int]
    source: str
    rule_id: Optional[int]
    batch_id: Optional[int]
    notes: Optional[str]
    created_at: datetime
