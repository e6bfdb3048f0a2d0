"""Account domain service."""

from typing import Optional
from recat.database.base import Database
from recat.domain.entities import Account as AccountEntity
from recat.domain.errors import ConflictError, ValidationError


class AccountService:
    """Creates and looks up the accounts transactions belong to."""

    def __init__(self, db: Database):
        self.db = db

    def create_account(self, name: str, bank_name: str) -> int:
        """Create an account and return its ID.

        Names are unique, compared without case or surrounding whitespace.

        Raises:
            ValidationError: If the name is empty
            ConflictError: If another account already uses the name
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Account name is required")

        taken = {acc.name.casefold() for acc in self.db.list_accounts()}
        if name.casefold() in taken:
            raise ConflictError(f"Account with name '{name}' already exists")

        return self.db.create_account(name=name, bank_name=(bank_name or name).strip())

    def get_account(self, account_id: int) -> Optional[AccountEntity]:
        """Return the account, or None for an unknown ID."""
        return self.db.get_account(account_id)

    def list_accounts(self) -> list[AccountEntity]:
        return self.db.list_accounts()
