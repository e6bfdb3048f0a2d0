"""Tests for retroactive rule preview, apply and undo."""

import logging
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from recat.database.sqlalchemy_db import SQLAlchemyDatabase
from recat.domain.entities import DateRange
from recat.domain.errors import (
    AlreadyUndoneError,
    ConflictError,
    NotFoundError,
    PreviewMismatchError,
    ValidationError,
)
from recat.domain.predicates import build_predicate
from recat.domain.retroactive import RetroactiveRuleService, normalize_batch_limit


class FailingAuditDatabase(SQLAlchemyDatabase):
    """Database whose audit writes start failing after a number of calls."""

    def __init__(self, database_url: str, fail_after: int):
        super().__init__(database_url)
        self.fail_after = fail_after
        self.audit_calls = 0

    def add_audit_entry(self, *args, **kwargs):
        self.audit_calls += 1
        if self.audit_calls > self.fail_after:
            raise OperationalError("INSERT INTO category_audit_log", {}, Exception("disk I/O error"))
        return super().add_audit_entry(*args, **kwargs)


def test_worked_example(temp_db, transaction_service, rule_service, retro_service, sample_account, sample_categories):
    """Preview, apply and undo the merchant-contains-COFFEE example end to end."""
    dining = sample_categories["Food & Dining > Dining"]
    t1 = transaction_service.create_transaction(
        unique_id="T1", account_id=sample_account.id, date=date(2024, 1, 10),
        amount=Decimal("-4.50"), description="BLUE BOTTLE COFFEE",
    )
    t2 = transaction_service.create_transaction(
        unique_id="T2", account_id=sample_account.id, date=date(2024, 1, 11),
        amount=Decimal("-3.00"), description="COFFEE SHOP", category_id=dining,
    )
    t3 = transaction_service.create_transaction(
        unique_id="T3", account_id=sample_account.id, date=date(2024, 1, 12),
        amount=Decimal("-1200.00"), description="RENT",
    )
    r1 = rule_service.create_rule(
        name="R1", category_path="Food & Dining > Dining",
        predicate=build_predicate(merchant_contains="COFFEE"),
    )

    preview = retro_service.preview(r1)
    assert [entry.transaction.id for entry in preview.entries] == [t1, t2]
    assert preview.entries[0].previous_category_id is None
    assert preview.entries[0].new_category_id == dining
    assert preview.entries[0].would_change
    assert preview.entries[1].is_noop

    result = retro_service.apply(r1)
    assert result.applied_count == 1
    assert result.skipped_noop == 1
    batch = result.batch
    assert len(batch.changes) == 1
    change = batch.changes[0]
    assert change.transaction_id == t1
    assert change.previous_category_id is None
    assert change.new_category_id == dining

    assert transaction_service.get_transaction(t1).category_id == dining
    assert transaction_service.get_transaction(t2).category_id == dining
    assert transaction_service.get_transaction(t3).category_id is None

    undo = retro_service.undo(batch.id)
    assert undo.success
    assert undo.transactions_reverted == 1
    assert transaction_service.get_transaction(t1).category_id is None
    assert retro_service.get_batch(batch.id).is_undone

    with pytest.raises(AlreadyUndoneError):
        retro_service.undo(batch.id)


class TestPreview:
    """Tests for preview."""

    def test_preview_reports_matches_in_date_order(self, retro_service, coffee_rule, coffee_transactions, sample_categories):
        preview = retro_service.preview(coffee_rule)

        assert preview.rule_id == coffee_rule
        assert preview.rule_name == "Coffee"
        assert [e.transaction.id for e in preview.entries] == [
            coffee_transactions["T1"],
            coffee_transactions["T2"],
        ]
        assert preview.total_matching == 2
        assert preview.would_change == 2
        assert preview.entries[1].previous_category_id == sample_categories["Food & Dining > Dining"]

    def test_preview_writes_nothing(self, retro_service, transaction_service, coffee_rule, coffee_transactions):
        first = retro_service.preview(coffee_rule)
        second = retro_service.preview(coffee_rule)

        assert first == second
        assert retro_service.list_batches(include_undone=True) == []
        assert transaction_service.get_transaction(coffee_transactions["T1"]).category_id is None

    def test_preview_respects_date_range(self, retro_service, coffee_rule, coffee_transactions):
        date_range = DateRange(start=date(2024, 3, 2), end=date(2024, 3, 31))

        preview = retro_service.preview(coffee_rule, date_range)

        assert [e.transaction.id for e in preview.entries] == [coffee_transactions["T2"]]

    def test_preview_date_range_bounds_are_inclusive(self, retro_service, coffee_rule, coffee_transactions):
        date_range = DateRange(start=date(2024, 3, 1), end=date(2024, 3, 1))

        preview = retro_service.preview(coffee_rule, date_range)

        assert [e.transaction.id for e in preview.entries] == [coffee_transactions["T1"]]

    def test_preview_empty_when_nothing_matches(self, retro_service, rule_service, coffee_transactions):
        rule_id = rule_service.create_rule(
            name="Gym", category_path="Housing", predicate=build_predicate(merchant_contains="gym")
        )

        preview = retro_service.preview(rule_id)

        assert preview.entries == ()
        assert preview.total_matching == 0

    def test_preview_reports_locked_transactions(self, retro_service, transaction_service, coffee_rule, coffee_transactions):
        transaction_service.set_locked(coffee_transactions["T1"], True)

        preview = retro_service.preview(coffee_rule)

        assert preview.total_matching == 2
        assert preview.would_skip_locked == 1
        assert preview.would_change == 1
        assert preview.changed_transaction_ids == [coffee_transactions["T2"]]

    def test_preview_unknown_rule(self, retro_service):
        with pytest.raises(NotFoundError):
            retro_service.preview(999)

    def test_preview_missing_rule_id(self, retro_service):
        with pytest.raises(ValidationError):
            retro_service.preview(None)

    def test_preview_works_for_disabled_rule(self, retro_service, rule_service, coffee_rule, coffee_transactions):
        rule_service.set_active(coffee_rule, False)

        preview = retro_service.preview(coffee_rule)

        assert preview.total_matching == 2


class TestApply:
    """Tests for apply."""

    def test_apply_matches_preview(self, retro_service, coffee_rule, coffee_transactions):
        preview = retro_service.preview(coffee_rule)

        result = retro_service.apply(coffee_rule)

        assert [c.transaction_id for c in result.batch.changes] == preview.changed_transaction_ids

    def test_apply_records_snapshot_and_provenance(
        self, retro_service, transaction_service, coffee_rule, coffee_transactions, sample_categories
    ):
        result = retro_service.apply(coffee_rule, created_by="alice", description="spring cleanup")

        batch = result.batch
        assert batch.rule_id == coffee_rule
        assert batch.created_by == "alice"
        assert batch.description == "spring cleanup"
        assert batch.is_undone is False
        assert batch.transaction_count == 2

        t2_change = [c for c in batch.changes if c.transaction_id == coffee_transactions["T2"]][0]
        assert t2_change.previous_category_id == sample_categories["Food & Dining > Dining"]
        assert t2_change.previous_category_source == "manual"
        assert t2_change.previous_batch_id is None

        txn = transaction_service.get_transaction(coffee_transactions["T1"])
        assert txn.category_id == sample_categories["Food & Dining > Coffee"]
        assert txn.category_source == "rule"
        assert txn.category_batch_id == batch.id

    def test_apply_stores_date_range(self, retro_service, coffee_rule, coffee_transactions):
        date_range = DateRange(start=date(2024, 3, 1), end=date(2024, 3, 2))

        result = retro_service.apply(coffee_rule, date_range=date_range)

        assert result.batch.date_range_start == date(2024, 3, 1)
        assert result.batch.date_range_end == date(2024, 3, 2)
        assert [c.transaction_id for c in result.batch.changes] == [coffee_transactions["T1"]]

    def test_apply_twice_changes_nothing_the_second_time(self, retro_service, coffee_rule, coffee_transactions):
        retro_service.apply(coffee_rule)

        second = retro_service.apply(coffee_rule)

        assert second.batch is None
        assert second.applied_count == 0
        assert second.skipped_noop == 2
        assert len(retro_service.list_batches()) == 1

    def test_apply_skips_locked_transactions(
        self, retro_service, transaction_service, coffee_rule, coffee_transactions
    ):
        transaction_service.set_locked(coffee_transactions["T1"], True)

        result = retro_service.apply(coffee_rule)

        assert result.applied_count == 1
        assert result.skipped_locked == 1
        assert [c.transaction_id for c in result.batch.changes] == [coffee_transactions["T2"]]
        assert transaction_service.get_transaction(coffee_transactions["T1"]).category_id is None

    def test_apply_selected_transactions_only(
        self, retro_service, transaction_service, coffee_rule, coffee_transactions, sample_categories
    ):
        result = retro_service.apply(coffee_rule, transaction_ids=[coffee_transactions["T1"]])

        assert [c.transaction_id for c in result.batch.changes] == [coffee_transactions["T1"]]
        t2 = transaction_service.get_transaction(coffee_transactions["T2"])
        assert t2.category_id == sample_categories["Food & Dining > Dining"]

    def test_apply_rejects_selection_that_no_longer_matches(
        self, retro_service, coffee_rule, coffee_transactions
    ):
        with pytest.raises(PreviewMismatchError) as excinfo:
            retro_service.apply(coffee_rule, transaction_ids=[coffee_transactions["T3"]])

        assert excinfo.value.kind == "preview_mismatch"
        assert retro_service.list_batches(include_undone=True) == []

    def test_apply_rejects_selection_categorized_since_preview(
        self, retro_service, transaction_service, coffee_rule, coffee_transactions
    ):
        preview = retro_service.preview(coffee_rule)
        transaction_service.update_category(coffee_transactions["T1"], "Food & Dining > Coffee", lock=False)

        with pytest.raises(PreviewMismatchError) as excinfo:
            retro_service.apply(coffee_rule, transaction_ids=preview.changed_transaction_ids)

        assert excinfo.value.kind == "preview_mismatch"
        assert str(coffee_transactions["T1"]) in str(excinfo.value)
        assert retro_service.list_batches(include_undone=True) == []
        t2 = transaction_service.get_transaction(coffee_transactions["T2"])
        assert t2.category_source == "manual"

    def test_apply_rejects_selection_locked_since_preview(
        self, retro_service, transaction_service, coffee_rule, coffee_transactions
    ):
        preview = retro_service.preview(coffee_rule)
        transaction_service.set_locked(coffee_transactions["T2"], True)

        with pytest.raises(PreviewMismatchError):
            retro_service.apply(coffee_rule, transaction_ids=preview.changed_transaction_ids)

        assert transaction_service.get_transaction(coffee_transactions["T1"]).category_id is None

    def test_apply_skips_manually_categorized_transactions(
        self, retro_service, transaction_service, coffee_rule, coffee_transactions, sample_categories
    ):
        transaction_service.update_category(coffee_transactions["T1"], "Housing")

        result = retro_service.apply(coffee_rule)

        assert result.skipped_locked == 1
        assert [c.transaction_id for c in result.batch.changes] == [coffee_transactions["T2"]]
        t1 = transaction_service.get_transaction(coffee_transactions["T1"])
        assert t1.category_id == sample_categories["Housing"]

    def test_apply_snapshots_value_written_after_preview(
        self, temp_db, retro_service, coffee_rule, coffee_transactions, sample_categories, reopen_db
    ):
        retro_service.preview(coffee_rule)
        other = reopen_db()
        other.update_transaction_category(coffee_transactions["T1"], sample_categories["Housing"], source="manual")

        result = retro_service.apply(coffee_rule)

        change = next(c for c in result.batch.changes if c.transaction_id == coffee_transactions["T1"])
        assert change.previous_category_id == sample_categories["Housing"]
        assert change.previous_category_source == "manual"

        retro_service.undo(result.batch.id)
        t1 = reopen_db().get_transaction(coffee_transactions["T1"])
        assert t1.category_id == sample_categories["Housing"]

    def test_apply_rejects_empty_selection(self, retro_service, coffee_rule):
        with pytest.raises(ValidationError):
            retro_service.apply(coffee_rule, transaction_ids=[])

    def test_apply_requires_created_by(self, retro_service, coffee_rule):
        with pytest.raises(ValidationError):
            retro_service.apply(coffee_rule, created_by="")

    def test_apply_unknown_rule(self, retro_service):
        with pytest.raises(NotFoundError):
            retro_service.apply(999)

    def test_apply_writes_audit_entries(self, retro_service, transaction_service, coffee_rule, coffee_transactions):
        result = retro_service.apply(coffee_rule)

        history = transaction_service.get_history(coffee_transactions["T1"])
        assert len(history) == 1
        assert history[0].source == "rule"
        assert history[0].rule_id == coffee_rule
        assert history[0].batch_id == result.batch.id

    def test_apply_failure_leaves_no_trace(self, temp_db, coffee_rule, coffee_transactions, sample_categories):
        db = FailingAuditDatabase(temp_db.database_url, fail_after=1)
        service = RetroactiveRuleService(db)

        with pytest.raises(ConflictError):
            service.apply(coffee_rule)

        assert db.list_batches(include_undone=True) == []
        assert db.get_transaction(coffee_transactions["T1"]).category_id is None
        t2 = db.get_transaction(coffee_transactions["T2"])
        assert t2.category_id == sample_categories["Food & Dining > Dining"]
        assert t2.category_batch_id is None
        assert db.list_audit_entries(coffee_transactions["T1"]) == []
        db.disconnect()


class TestUndo:
    """Tests for undo."""

    def test_undo_restores_previous_categories(
        self, retro_service, transaction_service, coffee_rule, coffee_transactions, sample_categories
    ):
        batch = retro_service.apply(coffee_rule).batch

        result = retro_service.undo(batch.id)

        assert result.transactions_reverted == 2
        assert result.overwritten_transaction_ids == []
        t1 = transaction_service.get_transaction(coffee_transactions["T1"])
        t2 = transaction_service.get_transaction(coffee_transactions["T2"])
        assert t1.category_id is None
        assert t1.category_source is None
        assert t2.category_id == sample_categories["Food & Dining > Dining"]
        assert t2.category_source == "manual"
        assert t2.category_batch_id is None

    def test_undo_marks_batch_undone(self, retro_service, coffee_rule, coffee_transactions):
        batch = retro_service.apply(coffee_rule).batch

        retro_service.undo(batch.id)

        undone = retro_service.get_batch(batch.id)
        assert undone.is_undone
        assert undone.undone_at is not None
        assert retro_service.list_batches() == []

    def test_undo_twice_fails(self, retro_service, coffee_rule, coffee_transactions):
        batch = retro_service.apply(coffee_rule).batch
        retro_service.undo(batch.id)

        with pytest.raises(AlreadyUndoneError) as excinfo:
            retro_service.undo(batch.id)

        assert excinfo.value.kind == "already_undone"

    def test_undo_unknown_batch(self, retro_service):
        with pytest.raises(NotFoundError):
            retro_service.undo(12345)

    def test_undo_missing_batch_id(self, retro_service):
        with pytest.raises(ValidationError):
            retro_service.undo(None)

    def test_undo_in_reverse_order_restores_each_layer(
        self, retro_service, rule_service, transaction_service, coffee_rule, coffee_transactions, sample_categories
    ):
        first = retro_service.apply(coffee_rule).batch
        blue_bottle = rule_service.create_rule(
            name="Blue Bottle",
            category_path="Food & Dining > Dining",
            predicate=build_predicate(merchant_contains="blue bottle"),
        )
        second = retro_service.apply(blue_bottle).batch

        assert second.changes[0].previous_batch_id == first.id

        retro_service.undo(second.id)
        t1 = transaction_service.get_transaction(coffee_transactions["T1"])
        assert t1.category_id == sample_categories["Food & Dining > Coffee"]
        assert t1.category_source == "rule"
        assert t1.category_batch_id == first.id

        result = retro_service.undo(first.id)
        assert result.overwritten_transaction_ids == []
        assert transaction_service.get_transaction(coffee_transactions["T1"]).category_id is None

    def test_undo_out_of_order_restores_provenance_of_undone_batch(
        self, retro_service, rule_service, transaction_service, coffee_rule, coffee_transactions, sample_categories
    ):
        first = retro_service.apply(coffee_rule).batch
        blue_bottle = rule_service.create_rule(
            name="Blue Bottle",
            category_path="Food & Dining > Dining",
            predicate=build_predicate(merchant_contains="blue bottle"),
        )
        second = retro_service.apply(blue_bottle).batch

        retro_service.undo(first.id)
        retro_service.undo(second.id)

        # The restored batch reference is kept even though that batch is undone
        t1 = transaction_service.get_transaction(coffee_transactions["T1"])
        assert t1.category_id == sample_categories["Food & Dining > Coffee"]
        assert t1.category_batch_id == first.id
        assert retro_service.get_batch(first.id).is_undone

    def test_undo_overwrites_later_manual_change_with_warning(
        self, retro_service, transaction_service, coffee_rule, coffee_transactions, caplog
    ):
        batch = retro_service.apply(coffee_rule).batch
        transaction_service.update_category(coffee_transactions["T1"], "Housing")
        caplog.set_level(logging.WARNING, logger="recat.domain.retroactive")

        result = retro_service.undo(batch.id)

        assert result.overwritten_transaction_ids == [coffee_transactions["T1"]]
        assert transaction_service.get_transaction(coffee_transactions["T1"]).category_id is None
        assert any("overwrote" in record.getMessage() for record in caplog.records)

        latest = transaction_service.get_history(coffee_transactions["T1"])[0]
        assert latest.source == "undo"
        assert "overwrote" in latest.notes

    def test_undo_reverts_locked_transactions(
        self, retro_service, transaction_service, coffee_rule, coffee_transactions
    ):
        batch = retro_service.apply(coffee_rule).batch
        transaction_service.set_locked(coffee_transactions["T1"], True)

        retro_service.undo(batch.id)

        t1 = transaction_service.get_transaction(coffee_transactions["T1"])
        assert t1.category_id is None
        assert t1.category_locked

    def test_undo_failure_keeps_batch_applied(self, temp_db, retro_service, coffee_rule, coffee_transactions, sample_categories):
        batch = retro_service.apply(coffee_rule).batch
        db = FailingAuditDatabase(temp_db.database_url, fail_after=1)

        with pytest.raises(ConflictError):
            RetroactiveRuleService(db).undo(batch.id)

        assert db.get_batch(batch.id).is_undone is False
        coffee = sample_categories["Food & Dining > Coffee"]
        assert db.get_transaction(coffee_transactions["T1"]).category_id == coffee
        assert db.get_transaction(coffee_transactions["T2"]).category_id == coffee
        db.disconnect()


class TestBatchRegistry:
    """Tests for listing and reading batches."""

    def test_list_batches_newest_first(self, retro_service, rule_service, coffee_rule, coffee_transactions):
        first = retro_service.apply(coffee_rule).batch
        rent_rule = rule_service.create_rule(
            name="Rent", category_path="Housing", predicate=build_predicate(merchant_contains="rent")
        )
        second = retro_service.apply(rent_rule).batch

        summaries = retro_service.list_batches()

        assert [s.id for s in summaries] == [second.id, first.id]
        assert summaries[0].rule_name == "Rent"
        assert summaries[1].transaction_count == 2

    def test_list_batches_filters(self, retro_service, rule_service, coffee_rule, coffee_transactions):
        first = retro_service.apply(coffee_rule).batch
        rent_rule = rule_service.create_rule(
            name="Rent", category_path="Housing", predicate=build_predicate(merchant_contains="rent")
        )
        second = retro_service.apply(rent_rule).batch
        retro_service.undo(first.id)

        assert [s.id for s in retro_service.list_batches()] == [second.id]
        assert [s.id for s in retro_service.list_batches(include_undone=True)] == [second.id, first.id]
        assert [s.id for s in retro_service.list_batches(rule_id=coffee_rule, include_undone=True)] == [first.id]
        assert [s.id for s in retro_service.list_batches(include_undone=True, limit=1)] == [second.id]

    def test_list_batches_rejects_bad_limit(self, retro_service):
        with pytest.raises(ValidationError):
            retro_service.list_batches(limit=0)

    def test_get_batch_unknown(self, retro_service):
        with pytest.raises(NotFoundError):
            retro_service.get_batch(42)


class TestNormalizeBatchLimit:
    """Tests for batch limit normalization."""

    def test_default(self):
        assert normalize_batch_limit(None) == 50

    def test_clamped(self):
        assert normalize_batch_limit(10_000) == 500

    def test_passthrough(self):
        assert normalize_batch_limit(7) == 7

    @pytest.mark.parametrize("limit", [0, -1, True, "10", 2.5])
    def test_rejected(self, limit):
        with pytest.raises(ValidationError):
            normalize_batch_limit(limit)
