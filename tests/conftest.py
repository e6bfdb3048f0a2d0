"""Shared pytest fixtures for recat tests."""

import logging
import tempfile
import os
from datetime import date
from decimal import Decimal
import pytest

from recat.database.factories import create_sqlite_database
from recat.domain.account import AccountService
from recat.domain.category import CategoryService
from recat.domain.predicates import build_predicate
from recat.domain.retroactive import RetroactiveRuleService
from recat.domain.rule import RuleService
from recat.domain.transaction import TransactionService

SAMPLE_CATEGORIES = [
    ("Food & Dining", None),
    ("Housing", None),
    ("Income", None),
    ("Coffee", "Food & Dining"),
    ("Dining", "Food & Dining"),
    ("Groceries", "Food & Dining"),
    ("Rent", "Housing"),
]


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def reopen_db(temp_db):
    """Open a second connection to the temporary database.

    Use it to check what CLI invocations wrote, without going through the
    identity map of temp_db's session.
    """
    opened = []

    def _reopen():
        db = create_sqlite_database(database_path=temp_db.database_path)
        opened.append(db)
        return db

    yield _reopen

    for db in opened:
        db.disconnect()


@pytest.fixture
def account_service(temp_db):
    """Create an AccountService with a temporary database."""
    return AccountService(temp_db)


@pytest.fixture
def category_service(temp_db):
    """Create a CategoryService with a temporary database."""
    return CategoryService(temp_db)


@pytest.fixture
def transaction_service(temp_db):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db)


@pytest.fixture
def rule_service(temp_db):
    """Create a RuleService with a temporary database."""
    return RuleService(temp_db)


@pytest.fixture
def retro_service(temp_db):
    """Create a RetroactiveRuleService with a temporary database."""
    return RetroactiveRuleService(temp_db)


@pytest.fixture
def sample_account(account_service):
    """Create a sample account for testing."""
    account_id = account_service.create_account(name="Test Account", bank_name="Test Bank")
    return account_service.get_account(account_id)


@pytest.fixture
def sample_categories(category_service):
    """Create a small category tree and return IDs keyed by full path."""
    category_ids = {}
    for category_name, parent_name in SAMPLE_CATEGORIES:
        category_id = category_service.create_category(name=category_name, parent_path=parent_name)
        path = f"{parent_name} > {category_name}" if parent_name else category_name
        category_ids[path] = category_id
    return category_ids


@pytest.fixture
def coffee_transactions(transaction_service, sample_account, sample_categories):
    """Three transactions: two coffee purchases and one rent payment.

    T1 is uncategorized, T2 is categorized as Dining and T3 (rent) as Rent.
    """
    t1 = transaction_service.create_transaction(
        unique_id="T1",
        account_id=sample_account.id,
        date=date(2024, 3, 1),
        amount=Decimal("-4.50"),
        description="BLUE BOTTLE COFFEE",
    )
    t2 = transaction_service.create_transaction(
        unique_id="T2",
        account_id=sample_account.id,
        date=date(2024, 3, 5),
        amount=Decimal("-6.25"),
        description="Starbucks Coffee #123",
        category_id=sample_categories["Food & Dining > Dining"],
    )
    t3 = transaction_service.create_transaction(
        unique_id="T3",
        account_id=sample_account.id,
        date=date(2024, 3, 3),
        amount=Decimal("-1500.00"),
        description="ACME PROPERTY RENT",
        category_id=sample_categories["Housing > Rent"],
    )
    return {"T1": t1, "T2": t2, "T3": t3}


@pytest.fixture
def coffee_rule(rule_service, sample_categories):
    """Rule assigning 'Food & Dining > Coffee' to merchants containing 'coffee'."""
    return rule_service.create_rule(
        name="Coffee",
        category_path="Food & Dining > Coffee",
        predicate=build_predicate(merchant_contains="coffee"),
    )


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop the stderr handler a CLI invocation installs on the root logger."""
    yield
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "_recat_handler", False):
            root_logger.removeHandler(handler)
