"""SQLAlchemy models for the fintrack database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(UTC)


class Account(Base):
    """Bank account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    bank_name = Column(String, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    import_formats = relationship("ImportFormat", back_populates="account", cascade="all, delete-orphan")
    import_sessions = relationship("ImportSession", back_populates="account", cascade="all, delete-orphan")
    transactions = relationship("Transaction", back_populates="account", cascade="all, delete-orphan")


class Category(Base):
    """Category model with hierarchical structure."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    parent_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    parent = relationship("Category", remote_side=[id], backref="children")
    transactions = relationship("Transaction", back_populates="category")


class Transaction(Base):
    """Transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    date = Column(Date, nullable=False)
    # Scale matches MAX_AMOUNT_PLACES in the CSV parser
    amount = Column(Numeric(18, 6), nullable=False)
    description = Column(String, nullable=False, default="")
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    notes = Column(String, nullable=True)
    # Not unique: a file may legitimately be imported with duplicates kept
    duplicate_hash = Column(String(16), nullable=True, index=True)
    imported_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    account = relationship("Account", back_populates="transactions")
    category = relationship("Category", back_populates="transactions")


class ImportFormat(Base):
    """Saved CSV format model."""

    __tablename__ = "import_formats"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    config = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    # Relationships
    account = relationship("Account", back_populates="import_formats")


class ImportSession(Base):
    """Import session model.

    ``csv_data`` holds the uploaded file until the session is confirmed or
    discarded.
    """

    __tablename__ = "import_sessions"

    id = Column(Integer, primary_key=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    filename = Column(String, nullable=False)
    row_count = Column(Integer, nullable=False, default=0)
    status = Column(String(16), nullable=False)
    error_message = Column(Text, nullable=True)
    format_config = Column(JSON, nullable=True)
    csv_data = Column(LargeBinary, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    # Relationships
    account = relationship("Account", back_populates="import_sessions")


class CategorizationRule(Base):
    """Categorization rule model.

    The rule document is stored verbatim in ``source``; ``category_id`` is
    the category it resolved to when the rule was saved.
    """

    __tablename__ = "categorization_rules"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    priority = Column(Integer, nullable=False, default=0)
    source = Column(Text, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    __table_args__ = (UniqueConstraint("name", name="uq_rule_name"),)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
