"""SQLAlchemy models for recat database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class Account(Base):
    """Bank account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    bank_name = Column(String, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    transactions = relationship("Transaction", back_populates="account")


class Category(Base):
    """Category model with hierarchical structure."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    parent = relationship("Category", remote_side=[id], backref="children")
    transactions = relationship("Transaction", back_populates="category")


class Transaction(Base):
    """Transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    unique_id = Column(String, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(String, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    # Why the transaction has its category: "manual", "rule" or NULL
    category_source = Column(String, nullable=True)
    # Batch that set the category when category_source is "rule"
    category_batch_id = Column(Integer, ForeignKey("rule_application_batches.id"), nullable=True)
    category_locked = Column(Boolean, default=False, nullable=False)
    notes = Column(String, nullable=True)
    imported_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Unique constraint on account_id + unique_id
    __table_args__ = (UniqueConstraint("account_id", "unique_id", name="uq_account_unique_id"),)

    # Relationships
    account = relationship("Account", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")


class CategorizationRule(Base):
    """Categorization rule model. The predicate is stored as JSON text."""

    __tablename__ = "categorization_rules"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    predicate_json = Column(Text, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    category = relationship("Category")
    batches = relationship("RuleApplicationBatch", back_populates="rule")


class RuleApplicationBatch(Base):
    """One retroactive rule application. Never deleted."""

    __tablename__ = "rule_application_batches"

    id = Column(Integer, primary_key=True)
    rule_id = Column(Integer, ForeignKey("categorization_rules.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    created_by = Column(String, nullable=False, default="system")
    transaction_count = Column(Integer, nullable=False, default=0)
    date_range_start = Column(Date, nullable=True)
    date_range_end = Column(Date, nullable=True)
    description = Column(String, nullable=True)
    is_undone = Column(Boolean, default=False, nullable=False)
    undone_at = Column(DateTime, nullable=True)

    # Relationships
    rule = relationship("CategorizationRule", back_populates="batches")
    changes = relationship(
        "BatchChange",
        back_populates="batch",
        order_by="BatchChange.id",
        cascade="all, delete-orphan",
    )


class BatchChange(Base):
    """Category change made to one transaction by a batch."""

    __tablename__ = "batch_changes"

    id = Column(Integer, primary_key=True)
    batch_id = Column(Integer, ForeignKey("rule_application_batches.id"), nullable=False)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    previous_category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    new_category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    previous_category_source = Column(String, nullable=True)
    previous_batch_id = Column(Integer, nullable=True)

    __table_args__ = (UniqueConstraint("batch_id", "transaction_id", name="uq_batch_transaction"),)

    # Relationships
    batch = relationship("RuleApplicationBatch", back_populates="changes")


class CategoryAuditLog(Base):
    """History of category changes on transactions."""

    __tablename__ = "category_audit_log"

    id = Column(Integer, primary_key=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False)
    previous_category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    new_category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    source = Column(String, nullable=False)
    rule_id = Column(Integer, ForeignKey("categorization_rules.id"), nullable=True)
    batch_id = Column(Integer, ForeignKey("rule_application_batches.id"), nullable=True)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
