"""SQLAlchemy models for the ledgerkit database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, scoped_session, sessionmaker, Session

Base = declarative_base()

MONEY = Numeric(18, 2)


def _now() -> datetime:
    return datetime.now(UTC)


class Account(Base):
    """Chart of accounts model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    account_type = Column(String(20), nullable=False)
    currency = Column(String(3), nullable=False)
    parent_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    opening_balance = Column(MONEY, default=0, nullable=False)
    current_balance = Column(MONEY, default=0, nullable=False)
    debit_balance = Column(MONEY, default=0, nullable=False)
    credit_balance = Column(MONEY, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_transaction_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    # Relationships
    parent = relationship("Account", remote_side=[id], backref="children")


class JournalEntry(Base):
    """Journal entry header model."""

    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True)
    entry_number = Column(String(50), unique=True, nullable=False)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=False)
    status = Column(String(20), nullable=False, default="draft")
    currency = Column(String(3), nullable=False)
    total_debit = Column(MONEY, default=0, nullable=False)
    reference = Column(String, nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    notes = Column(String, nullable=True)
    reconciled = Column(Boolean, default=False, nullable=False)
    reversal_of_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    reversed_by_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    posted_at = Column(DateTime, nullable=True)
    posted_by = Column(String, nullable=True)
    voided_at = Column(DateTime, nullable=True)
    void_reason = Column(String, nullable=True)
    reversed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    # Relationships
    line_items = relationship(
        "JournalLineItem",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLineItem.position",
    )


class JournalLineItem(Base):
    """Journal entry line item model."""

    __tablename__ = "journal_line_items"

    id = Column(Integer, primary_key=True)
    entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=False)
    position = Column(Integer, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    debit_amount = Column(MONEY, default=0, nullable=False)
    credit_amount = Column(MONEY, default=0, nullable=False)
    description = Column(String, nullable=True)
    tax_code = Column(String, nullable=True)
    customer_id = Column(String, nullable=True)
    supplier_id = Column(String, nullable=True)
    department = Column(String, nullable=True)

    # Relationships
    entry = relationship("JournalEntry", back_populates="line_items")


class AppliedPosting(Base):
    """Record that an entry's effect has been applied to an account."""

    __tablename__ = "applied_postings"

    id = Column(Integer, primary_key=True)
    entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    debit_amount = Column(MONEY, nullable=False)
    credit_amount = Column(MONEY, nullable=False)
    balance_delta = Column(MONEY, nullable=False)
    applied_at = Column(DateTime, default=_now, nullable=False)

    # One application per (entry, account) pair
    __table_args__ = (UniqueConstraint("entry_id", "account_id", name="uq_applied_entry_account"),)


class RecurringTemplate(Base):
    """Recurring transaction template model."""

    __tablename__ = "recurring_templates"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=False)
    amount = Column(MONEY, nullable=False)
    currency = Column(String(3), nullable=False)
    frequency = Column(String(20), nullable=False)
    interval = Column(Integer, default=1, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    offset_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    category = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    auto_execute = Column(Boolean, default=False, nullable=False)
    last_executed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class ReconciliationRule(Base):
    """Bank statement reconciliation rule model."""

    __tablename__ = "reconciliation_rules"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    pattern = Column(String, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    category = Column(String, nullable=False)
    confidence = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    match_count = Column(Integer, default=0, nullable=False)
    last_matched_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class CategorizationRule(Base):
    """Description categorization rule model."""

    __tablename__ = "categorization_rules"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    pattern = Column(String, nullable=False)
    category = Column(String, nullable=False)
    subcategory = Column(String, nullable=True)
    confidence = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    machine_generated = Column(Boolean, default=False, nullable=False)
    usage_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)


class BankStatementLine(Base):
    """Imported bank statement line model."""

    __tablename__ = "bank_statement_lines"

    id = Column(Integer, primary_key=True)
    bank_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=False)
    amount = Column(MONEY, nullable=False)
    balance = Column(MONEY, nullable=False)
    reference = Column(String, nullable=True)
    reconciled = Column(Boolean, default=False, nullable=False)
    matched_entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    matched_rule_id = Column(Integer, ForeignKey("reconciliation_rules.id"), nullable=True)
    suggested_category = Column(String, nullable=True)
    confidence = Column(Float, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)


def create_session_factory(database_url: str, timeout: float = 30.0) -> scoped_session[Session]:
    """Create a thread-local SQLAlchemy session registry.

    Args:
        database_url: SQLAlchemy database URL
        timeout: Seconds a SQLite connection waits on a locked database
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": timeout}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return scoped_session(sessionmaker(bind=engine, expire_on_commit=False))
