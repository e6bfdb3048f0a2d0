"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, Any
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from recat.domain.entities import (
    Account,
    AuditEntry,
    Batch,
    BatchChangeDraft,
    BatchSummary,
    Category,
    Predicate,
    Rule,
    Transaction,
)


class Database(ABC):
    """Abstract database interface for recat.

    Write methods commit immediately unless they run inside ``atomic()``, in
    which case everything commits together when the outermost scope exits
    and rolls back together if it raises.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Return a context manager that groups writes into one transaction.

        Nested scopes join the outermost one. A failed commit raises
        ConflictError after rolling back.
        """
        pass

    # Account operations
    @abstractmethod
    def create_account(self, name: str, bank_name: str) -> int:
        """Create a new account. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def list_accounts(self) -> list[Account]:
        """List all accounts."""
        pass

    # Category operations
    @abstractmethod
    def create_category(self, name: str, parent_id: Optional[int] = None) -> int:
        """Create a category. Returns category ID."""
        pass

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get category by ID."""
        pass

    @abstractmethod
    def get_category_by_path(self, path: str) -> Optional[Category]:
        """Get category by path (e.g., 'Food & Dining > Groceries')."""
        pass

    @abstractmethod
    def list_categories(self, parent_id: Optional[int] = None) -> list[Category]:
        """List categories, optionally filtered by parent."""
        pass

    @abstractmethod
    def get_category_tree(self) -> list[dict[str, Any]]:
        """Get full category tree with hierarchy.

        Returns a list of dictionaries with category data and nested 'children' lists.
        """
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(
        self,
        unique_id: str,
        account_id: int,
        date: date,
        amount: Decimal,
        description: Optional[str] = None,
        category_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Create a transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int, for_update: bool = False) -> Optional[Transaction]:
        """Get transaction by ID.

        Args:
            for_update: Lock the row until the surrounding atomic scope ends
                (on backends that support row locks)
        """
        pass

    @abstractmethod
    def transaction_exists(self, account_id: int, unique_id: str) -> bool:
        """Check if a transaction with given unique_id exists for account."""
        pass

    @abstractmethod
    def update_transaction_category(
        self,
        transaction_id: int,
        category_id: Optional[int],
        source: Optional[str],
        batch_id: Optional[int] = None,
    ) -> None:
        """Set transaction category together with its provenance."""
        pass

    @abstractmethod
    def set_transaction_locked(self, transaction_id: int, locked: bool) -> None:
        """Lock or unlock a transaction's category against rule changes."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_id: Optional[int] = None,
        account_id: Optional[int] = None,
        uncategorized: bool = False,
    ) -> list[Transaction]:
        """List transactions with optional filters.

        Args:
            start_date: Optional start date filter (inclusive)
            end_date: Optional end date filter (inclusive)
            category_id: Optional category ID filter
            account_id: Optional account ID filter
            uncategorized: If True, only return transactions without a category
        """
        pass

    # Rule operations
    @abstractmethod
    def create_rule(
        self, name: str, predicate: Predicate, category_id: int, is_active: bool = True
    ) -> int:
        """Create a categorization rule. Returns rule ID."""
        pass

    @abstractmethod
    def get_rule(self, rule_id: int, for_update: bool = False) -> Optional[Rule]:
        """Get rule by ID."""
        pass

    @abstractmethod
    def list_rules(self, active_only: bool = False) -> list[Rule]:
        """List rules, optionally only active ones."""
        pass

    @abstractmethod
    def set_rule_active(self, rule_id: int, is_active: bool) -> None:
        """Enable or disable a rule."""
        pass

    # Batch operations
    @abstractmethod
    def create_batch(
        self,
        rule_id: Optional[int],
        changes: list[BatchChangeDraft],
        created_by: str,
        date_range_start: Optional[date] = None,
        date_range_end: Optional[date] = None,
        description: Optional[str] = None,
    ) -> int:
        """Create a batch together with all its change rows. Returns batch ID."""
        pass

    @abstractmethod
    def get_batch(self, batch_id: int, for_update: bool = False) -> Optional[Batch]:
        """Get batch by ID, including its changes in recorded order."""
        pass

    @abstractmethod
    def mark_batch_undone(self, batch_id: int, undone_at: datetime) -> None:
        """Mark a batch as undone."""
        pass

    @abstractmethod
    def list_batches(
        self,
        rule_id: Optional[int] = None,
        include_undone: bool = False,
        limit: Optional[int] = None,
    ) -> list[BatchSummary]:
        """List batch summaries, newest first."""
        pass

    # Audit log operations
    @abstractmethod
    def add_audit_entry(
        self,
        transaction_id: int,
        previous_category_id: Optional[int],
        new_category_id: Optional[int],
        source: str,
        rule_id: Optional[int] = None,
        batch_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Record a category change. Returns audit entry ID."""
        pass

    @abstractmethod
    def list_audit_entries(self, transaction_id: int) -> list[AuditEntry]:
        """List category changes for a transaction, newest first."""
        pass
