"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling. ``kind`` is a stable,
    machine-checkable name for the category.
    """

    kind = "domain_error"


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""

    kind = "invalid_input"


class NotFoundError(DomainError):
    """Requested domain entity or path does not exist."""

    kind = "not_found"


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations or a failed atomic commit."""

    kind = "conflict"


class AlreadyUndoneError(ConflictError):
    """Undo requested on a batch that has already been undone."""

    kind = "already_undone"


class PreviewMismatchError(ConflictError):
    """The transactions a rule would change differ from what the caller previewed."""

    kind = "preview_mismatch"


def account_not_found(account_id: int) -> str:
    """Return message for missing account."""
    return f"Account {account_id} not found"


def category_not_found(category_id: int) -> str:
    """Return message for missing category by ID."""
    return f"Category {category_id} not found"


def category_path_not_found(path: str) -> str:
    """Return message for missing category by path."""
    return f"Category '{path}' not found"


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def rule_not_found(rule_id: int) -> str:
    """Return message for missing rule."""
    return f"Rule {rule_id} not found"


def batch_not_found(batch_id: int) -> str:
    """Return message for missing batch."""
    return f"Batch {batch_id} not found"


def batch_already_undone(batch_id: int) -> str:
    """Return message for a batch that cannot be undone again."""
    return f"Batch {batch_id} has already been undone"


def duplicate_transaction_unique_id(unique_id: str, account_id: int) -> str:
    """Return message for duplicate transaction unique ID."""
    return f"Transaction with unique_id '{unique_id}' already exists for account {account_id}"


def selection_no_longer_matches(rule_id: int, transaction_ids: list[int]) -> str:
    """Return message when selected transactions no longer match a rule."""
    ids = ", ".join(str(txn_id) for txn_id in transaction_ids)
    return (
        f"Rule {rule_id} no longer matches transaction{'s' if len(transaction_ids) != 1 else ''} "
        f"{ids}. Preview the rule again before applying."
    )


def selection_no_longer_changes(rule_id: int, transaction_ids: list[int]) -> str:
    """Return message when selected transactions are now locked or already categorized."""
    ids = ", ".join(str(txn_id) for txn_id in transaction_ids)
    return (
        f"Rule {rule_id} would no longer change transaction{'s' if len(transaction_ids) != 1 else ''} "
        f"{ids}; locked or already categorized. Preview the rule again before applying."
    )
