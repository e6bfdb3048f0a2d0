"""Transaction domain service."""

import logging
from typing import Optional
from datetime import date
from decimal import Decimal
from recat.database.base import Database
from recat.domain.entities import (
    SOURCE_MANUAL,
    AuditEntry,
    Transaction as TransactionEntity,
)
from recat.domain.errors import (
    ConflictError,
    NotFoundError,
    account_not_found,
    category_not_found,
    category_path_not_found,
    duplicate_transaction_unique_id,
    transaction_not_found,
)

logger = logging.getLogger(__name__)


class TransactionService:
    """Service for managing transactions."""

    def __init__(self, db: Database):
        """Initialize transaction service.

        Args:
            db: Database instance
        """
        self.db = db

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
        """Create a transaction.

        Args:
            unique_id: Unique transaction ID within the account
            account_id: Account ID
            date: Transaction date
            amount: Transaction amount
            description: Optional description (merchant text)
            category_id: Optional category ID, recorded as a manual choice
            notes: Optional notes

        Returns:
            Transaction ID

        Raises:
            NotFoundError: If account or category doesn't exist
            ConflictError: If the transaction already exists
        """
        # Verify account exists
        account = self.db.get_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))

        # Check for duplicate
        if self.db.transaction_exists(account_id, unique_id):
            raise ConflictError(duplicate_transaction_unique_id(unique_id, account_id))

        # Verify category if provided
        if category_id is not None:
            category = self.db.get_category(category_id)
            if category is None:
                raise NotFoundError(category_not_found(category_id))

        return self.db.create_transaction(
            unique_id=unique_id,
            account_id=account_id,
            date=date,
            amount=amount,
            description=description,
            category_id=category_id,
            notes=notes,
        )

    def get_transaction(self, transaction_id: int) -> Optional[TransactionEntity]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get_transaction(transaction_id)

    def update_category(
        self, transaction_id: int, category_path: Optional[str], lock: bool = True
    ) -> None:
        """Set a transaction's category by hand.

        The category becomes a manual choice: any batch provenance is cleared
        and the change is written to the audit log. Unless ``lock`` is False,
        the transaction is also locked so later rule runs leave it alone.
        Clearing the category never changes the lock.

        Args:
            transaction_id: Transaction ID
            category_path: Category path (e.g., "Food & Dining > Groceries") or None
            lock: Lock the transaction against rules when setting a category

        Raises:
            NotFoundError: If transaction or category doesn't exist
        """
        category_id = None
        if category_path is not None:
            category = self.db.get_category_by_path(category_path)
            if category is None:
                raise NotFoundError(category_path_not_found(category_path))
            category_id = category.id

        with self.db.atomic():
            txn = self.db.get_transaction(transaction_id, for_update=True)
            if txn is None:
                raise NotFoundError(transaction_not_found(transaction_id))

            self.db.update_transaction_category(
                transaction_id, category_id, source=SOURCE_MANUAL if category_id is not None else None
            )
            self.db.add_audit_entry(
                transaction_id=transaction_id,
                previous_category_id=txn.category_id,
                new_category_id=category_id,
                source=SOURCE_MANUAL,
            )
            if category_id is not None and lock:
                self.db.set_transaction_locked(transaction_id, True)
        logger.debug(
            "Transaction %s category set manually: %s -> %s",
            transaction_id,
            txn.category_id,
            category_id,
        )

    def set_locked(self, transaction_id: int, locked: bool) -> None:
        """Lock or unlock a transaction's category.

        Rules never change a locked transaction.

        Raises:
            NotFoundError: If transaction doesn't exist
        """
        self.db.set_transaction_locked(transaction_id, locked)

    def get_history(self, transaction_id: int) -> list[AuditEntry]:
        """Get the category change history of a transaction, newest first.

        Raises:
            NotFoundError: If transaction doesn't exist
        """
        if self.db.get_transaction(transaction_id) is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        return self.db.list_audit_entries(transaction_id)

    def list_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category_path: Optional[str] = None,
        account_id: Optional[int] = None,
    ) -> list[TransactionEntity]:
        """List transactions with filters.

        Args:
            start_date: Optional start date filter
            end_date: Optional end date filter
            category_path: Optional category path filter (empty string for uncategorized)
            account_id: Optional account ID filter

        Returns:
            List of transaction entities
        """
        category_id = None
        uncategorized = False
        if category_path is not None:
            if category_path == "":
                # Empty string means uncategorized
                uncategorized = True
            else:
                category = self.db.get_category_by_path(category_path)
                if category is None:
                    # Category doesn't exist, return empty list
                    return []
                category_id = category.id

        return self.db.list_transactions(
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
            account_id=account_id,
            uncategorized=uncategorized,
        )
