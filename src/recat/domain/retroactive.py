"""Retroactive rule application with preview and undo.

A rule can be run against historical transactions in three steps:

1. ``preview`` reports every matching transaction and the category change
   the rule would make, without writing anything.
2. ``apply`` makes those changes as one batch. The batch records, for every
   transaction it changed, the exact category (and its provenance) the
   transaction held right before the change. Everything is written in a
   single atomic scope: either the whole batch exists or none of it does.
3. ``undo`` puts every transaction of a batch back to its recorded snapshot
   and marks the batch undone. Undo is terminal; a batch cannot be undone
   twice.

Undo restores the snapshot even if something else changed the transaction
after the batch ran (a later batch or a manual edit). Those overwrites are
logged as warnings, noted in the audit log and reported back to the caller.
"""

import logging
from datetime import datetime, UTC
from typing import Iterable, Optional

from recat.database.base import Database
from recat.domain.entities import (
    SOURCE_RULE,
    SOURCE_UNDO,
    ApplyResult,
    Batch,
    BatchChangeDraft,
    BatchSummary,
    DateRange,
    PreviewEntry,
    PreviewResult,
    Rule,
    Transaction,
    UndoResult,
)
from recat.domain.errors import (
    AlreadyUndoneError,
    ConflictError,
    NotFoundError,
    PreviewMismatchError,
    ValidationError,
    batch_already_undone,
    batch_not_found,
    rule_not_found,
    selection_no_longer_changes,
    selection_no_longer_matches,
)
from recat.domain.matcher import matches

logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 50
MAX_BATCH_LIMIT = 500


def normalize_batch_limit(limit: Optional[int]) -> int:
    """Return a usable batch list limit.

    None means the default. Limits above MAX_BATCH_LIMIT are clamped.

    Raises:
        ValidationError: If the limit is not a positive integer
    """
    if limit is None:
        return DEFAULT_BATCH_LIMIT
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError(f"Limit must be an integer, got {limit!r}")
    if limit <= 0:
        raise ValidationError(f"Limit must be positive, got {limit}")
    return min(limit, MAX_BATCH_LIMIT)


class RetroactiveRuleService:
    """Preview, apply and undo rules against existing transactions."""

    def __init__(self, db: Database):
        """Initialize retroactive rule service.

        Args:
            db: Database instance
        """
        self.db = db

    def preview(self, rule_id: int, date_range: Optional[DateRange] = None) -> PreviewResult:
        """Report what applying a rule would change. Writes nothing.

        Transactions that already have the rule's category are reported as
        no-op matches; locked transactions are reported but would be skipped.

        Args:
            rule_id: Rule ID
            date_range: Optional inclusive date range of transactions to consider

        Returns:
            Preview with entries ordered by transaction date, then ID

        Raises:
            ValidationError: If rule_id is missing
            NotFoundError: If the rule doesn't exist
        """
        rule = self._load_rule(rule_id)
        entries = self._match_entries(rule, date_range)
        result = PreviewResult(rule_id=rule.id, rule_name=rule.name, entries=tuple(entries))
        logger.debug(
            "Preview of rule %s: %d matching, %d would change, %d locked",
            rule.id,
            result.total_matching,
            result.would_change,
            result.would_skip_locked,
        )
        return result

    def apply(
        self,
        rule_id: int,
        date_range: Optional[DateRange] = None,
        transaction_ids: Optional[Iterable[int]] = None,
        created_by: str = "user",
        description: Optional[str] = None,
    ) -> ApplyResult:
        """Apply a rule to matching transactions as one undoable batch.

        Args:
            rule_id: Rule ID
            date_range: Optional inclusive date range of transactions to consider
            transaction_ids: Optional selection (usually taken from a preview)
                to restrict the batch to. Every selected ID must still match
                the rule and still be a change: not locked and not already in
                the rule's category.
            created_by: Who triggered the batch
            description: Optional free-text note stored with the batch

        Returns:
            ApplyResult. Its batch is None when no transaction needed to change.

        Raises:
            ValidationError: If an argument is malformed
            NotFoundError: If the rule doesn't exist
            PreviewMismatchError: If the selection or a re-read transaction no
                longer matches what the rule would change
            ConflictError: If the database write fails (nothing is kept)
        """
        if not created_by:
            raise ValidationError("created_by is required")
        selection = None
        if transaction_ids is not None:
            selection = list(dict.fromkeys(transaction_ids))
            if not selection:
                raise ValidationError("transaction_ids must not be empty when given")

        with self.db.atomic():
            rule = self._load_rule(rule_id, for_update=True)
            entries = self._match_entries(rule, date_range)

            if selection is not None:
                matched_ids = {entry.transaction.id for entry in entries}
                missing = [txn_id for txn_id in selection if txn_id not in matched_ids]
                if missing:
                    raise PreviewMismatchError(selection_no_longer_matches(rule.id, missing))
                selected = set(selection)
                entries = [entry for entry in entries if entry.transaction.id in selected]
                # A selected transaction that is now locked or already categorized
                # no longer changes the way the caller previewed
                stale = [entry.transaction.id for entry in entries if not entry.would_change]
                if stale:
                    raise PreviewMismatchError(selection_no_longer_changes(rule.id, stale))

            skipped_locked = sum(1 for entry in entries if entry.is_locked)
            skipped_noop = sum(1 for entry in entries if entry.is_noop and not entry.is_locked)

            drafts = []
            for entry in entries:
                if not entry.would_change:
                    continue
                # Snapshot under a row lock so the recorded previous category
                # is the value this batch actually overwrites
                current = self.db.get_transaction(entry.transaction.id, for_update=True)
                if not self._still_changes(rule, current):
                    raise PreviewMismatchError(
                        selection_no_longer_matches(rule.id, [entry.transaction.id])
                    )
                drafts.append(
                    BatchChangeDraft(
                        transaction_id=current.id,
                        previous_category_id=current.category_id,
                        new_category_id=rule.category_id,
                        previous_category_source=current.category_source,
                        previous_batch_id=current.category_batch_id,
                    )
                )

            if not drafts:
                logger.info(
                    "Rule %s matched %d transaction(s); nothing to change", rule.id, len(entries)
                )
                return ApplyResult(
                    batch=None, applied_count=0, skipped_locked=skipped_locked, skipped_noop=skipped_noop
                )

            batch_id = self.db.create_batch(
                rule_id=rule.id,
                changes=drafts,
                created_by=created_by,
                date_range_start=date_range.start if date_range else None,
                date_range_end=date_range.end if date_range else None,
                description=description,
            )
            for draft in drafts:
                self.db.update_transaction_category(
                    draft.transaction_id, rule.category_id, source=SOURCE_RULE, batch_id=batch_id
                )
                self.db.add_audit_entry(
                    transaction_id=draft.transaction_id,
                    previous_category_id=draft.previous_category_id,
                    new_category_id=rule.category_id,
                    source=SOURCE_RULE,
                    rule_id=rule.id,
                    batch_id=batch_id,
                )
            batch = self.db.get_batch(batch_id)

        logger.info(
            "Applied rule %s as batch %s: %d changed, %d locked skipped, %d already categorized",
            rule.id,
            batch_id,
            len(drafts),
            skipped_locked,
            skipped_noop,
        )
        return ApplyResult(
            batch=batch,
            applied_count=len(drafts),
            skipped_locked=skipped_locked,
            skipped_noop=skipped_noop,
        )

    def undo(self, batch_id: int) -> UndoResult:
        """Revert every change of a batch and mark it undone.

        Each transaction gets back the exact category and provenance recorded
        when the batch ran, even if it was changed again afterwards.
        The restored provenance may name a batch that has itself been undone
        since (undo A, then B, where B ran on top of A); it records what the
        transaction held when this batch ran, not a live batch.

        Args:
            batch_id: Batch ID

        Returns:
            UndoResult with the number of transactions reverted and the IDs
            of transactions whose later category was overwritten

        Raises:
            ValidationError: If batch_id is missing
            NotFoundError: If the batch doesn't exist
            AlreadyUndoneError: If the batch was already undone
            ConflictError: If the database write fails (nothing is kept)
        """
        if batch_id is None:
            raise ValidationError("batch_id is required")

        overwritten: list[int] = []
        with self.db.atomic():
            batch = self.db.get_batch(batch_id, for_update=True)
            if batch is None:
                raise NotFoundError(batch_not_found(batch_id))
            if batch.is_undone:
                raise AlreadyUndoneError(batch_already_undone(batch_id))

            for change in batch.changes:
                current = self.db.get_transaction(change.transaction_id, for_update=True)
                if current is None:
                    raise ConflictError(
                        f"Transaction {change.transaction_id} of batch {batch.id} no longer exists"
                    )

                notes = None
                if current.category_batch_id != batch.id:
                    overwritten.append(current.id)
                    notes = (
                        f"Undo of batch {batch.id} overwrote category {current.category_id} "
                        f"set by {self._describe_source(current)}"
                    )
                    logger.warning("Transaction %s: %s", current.id, notes)

                self.db.update_transaction_category(
                    current.id,
                    change.previous_category_id,
                    source=change.previous_category_source,
                    batch_id=change.previous_batch_id,
                )
                self.db.add_audit_entry(
                    transaction_id=current.id,
                    previous_category_id=current.category_id,
                    new_category_id=change.previous_category_id,
                    source=SOURCE_UNDO,
                    rule_id=batch.rule_id,
                    batch_id=batch.id,
                    notes=notes,
                )

            self.db.mark_batch_undone(batch.id, datetime.now(UTC))

        logger.info(
            "Undid batch %s: %d transaction(s) reverted, %d later change(s) overwritten",
            batch.id,
            len(batch.changes),
            len(overwritten),
        )
        return UndoResult(
            batch_id=batch.id,
            success=True,
            transactions_reverted=len(batch.changes),
            overwritten_transaction_ids=overwritten,
        )

    def list_batches(
        self,
        rule_id: Optional[int] = None,
        include_undone: bool = False,
        limit: Optional[int] = DEFAULT_BATCH_LIMIT,
    ) -> list[BatchSummary]:
        """List batches, newest first.

        Args:
            rule_id: Only batches produced by this rule
            include_undone: Include undone batches
            limit: Maximum number of batches (default 50, clamped to 500)

        Raises:
            ValidationError: If limit is not a positive integer
        """
        return self.db.list_batches(
            rule_id=rule_id,
            include_undone=include_undone,
            limit=normalize_batch_limit(limit),
        )

    def get_batch(self, batch_id: int) -> Batch:
        """Get a batch with its changes.

        Raises:
            NotFoundError: If the batch doesn't exist
        """
        batch = self.db.get_batch(batch_id)
        if batch is None:
            raise NotFoundError(batch_not_found(batch_id))
        return batch

    def _load_rule(self, rule_id: int, for_update: bool = False) -> Rule:
        if rule_id is None:
            raise ValidationError("rule_id is required")
        rule = self.db.get_rule(rule_id, for_update=for_update)
        if rule is None:
            raise NotFoundError(rule_not_found(rule_id))
        return rule

    def _match_entries(self, rule: Rule, date_range: Optional[DateRange]) -> list[PreviewEntry]:
        """Run the matcher over candidate transactions. Shared by preview and apply."""
        start = date_range.start if date_range else None
        end = date_range.end if date_range else None
        candidates = self.db.list_transactions(start_date=start, end_date=end)

        entries = [
            PreviewEntry(
                transaction=txn,
                previous_category_id=txn.category_id,
                new_category_id=rule.category_id,
                is_noop=txn.category_id == rule.category_id,
                is_locked=txn.category_locked,
            )
            for txn in candidates
            if matches(rule, txn)
        ]
        entries.sort(key=lambda entry: (entry.transaction.date, entry.transaction.id))
        return entries

    @staticmethod
    def _still_changes(rule: Rule, current: Optional[Transaction]) -> bool:
        return (
            current is not None
            and not current.category_locked
            and current.category_id != rule.category_id
            and matches(rule, current)
        )

    @staticmethod
    def _describe_source(txn: Transaction) -> str:
        if txn.category_batch_id is not None:
            return f"batch {txn.category_batch_id}"
        if txn.category_source is not None:
            return f"a {txn.category_source} change"
        return "an unknown change"
