"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, making it easy to change when
the database schema changes.
"""

from recat.domain import entities as domain
from recat.domain.predicates import loads_predicate
from recat.database.models import (
    Account as ORMAccount,
    Category as ORMCategory,
    Transaction as ORMTransaction,
    CategorizationRule as ORMRule,
    RuleApplicationBatch as ORMBatch,
    BatchChange as ORMBatchChange,
    CategoryAuditLog as ORMAuditLog,
)


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        name=orm_account.name,
        bank_name=orm_account.bank_name,
        created_at=orm_account.created_at,
    )


def category_to_domain(orm_category: ORMCategory) -> domain.Category:
    """Convert SQLAlchemy Category model to domain Category entity."""
    return domain.Category(
        id=orm_category.id,
        name=orm_category.name,
        parent_id=orm_category.parent_id,
        created_at=orm_category.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        unique_id=orm_transaction.unique_id,
        account_id=orm_transaction.account_id,
        date=orm_transaction.date,
        amount=orm_transaction.amount,
        description=orm_transaction.description,
        category_id=orm_transaction.category_id,
        notes=orm_transaction.notes,
        imported_at=orm_transaction.imported_at,
        category_source=orm_transaction.category_source,
        category_batch_id=orm_transaction.category_batch_id,
        category_locked=bool(orm_transaction.category_locked),
    )


def rule_to_domain(orm_rule: ORMRule) -> domain.Rule:
    """Convert SQLAlchemy CategorizationRule model to domain Rule entity."""
    return domain.Rule(
        id=orm_rule.id,
        name=orm_rule.name,
        predicate=loads_predicate(orm_rule.predicate_json),
        category_id=orm_rule.category_id,
        is_active=orm_rule.is_active,
        created_at=orm_rule.created_at,
    )


def batch_change_to_domain(orm_change: ORMBatchChange) -> domain.BatchChange:
    """Convert SQLAlchemy BatchChange model to domain BatchChange entity."""
    return domain.BatchChange(
        id=orm_change.id,
        batch_id=orm_change.batch_id,
        transaction_id=orm_change.transaction_id,
        previous_category_id=orm_change.previous_category_id,
        new_category_id=orm_change.new_category_id,
        previous_category_source=orm_change.previous_category_source,
        previous_batch_id=orm_change.previous_batch_id,
    )


def batch_to_domain(orm_batch: ORMBatch) -> domain.Batch:
    """Convert SQLAlchemy RuleApplicationBatch model to domain Batch with its changes."""
    return domain.Batch(
        id=orm_batch.id,
        rule_id=orm_batch.rule_id,
        created_at=orm_batch.created_at,
        created_by=orm_batch.created_by,
        is_undone=orm_batch.is_undone,
        undone_at=orm_batch.undone_at,
        date_range_start=orm_batch.date_range_start,
        date_range_end=orm_batch.date_range_end,
        description=orm_batch.description,
        changes=tuple(batch_change_to_domain(c) for c in orm_batch.changes),
    )


def batch_to_summary(orm_batch: ORMBatch) -> domain.BatchSummary:
    """Convert SQLAlchemy RuleApplicationBatch model to a registry summary."""
    return domain.BatchSummary(
        id=orm_batch.id,
        rule_id=orm_batch.rule_id,
        rule_name=orm_batch.rule.name if orm_batch.rule is not None else None,
        created_at=orm_batch.created_at,
        created_by=orm_batch.created_by,
        transaction_count=orm_batch.transaction_count,
        is_undone=orm_batch.is_undone,
        undone_at=orm_batch.undone_at,
        date_range_start=orm_batch.date_range_start,
        date_range_end=orm_batch.date_range_end,
        description=orm_batch.description,
    )


def audit_entry_to_domain(orm_entry: ORMAuditLog) -> domain.AuditEntry:
    """Convert SQLAlchemy CategoryAuditLog model to domain AuditEntry entity."""
    return domain.AuditEntry(
        id=orm_entry.id,
        transaction_id=orm_entry.transaction_id,
        previous_category_id=orm_entry.previous_category_id,
        new_category_id=orm_entry.new_category_id,
        source=orm_entry.source,
        rule_id=orm_entry.rule_id,
        batch_id=orm_entry.batch_id,
        notes=orm_entry.notes,
        created_at=orm_entry.created_at,
    )
