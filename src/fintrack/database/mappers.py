"""Mapper functions to convert SQLAlchemy models into domain entities.

Rows store configs and rule documents in their serialized form; this layer
turns them back into validated domain objects.
"""

from fintrack.domain import entities as domain
from fintrack.domain.rule_language import parse_rule_document
from fintrack.database.models import (
    Account as ORMAccount,
    Category as ORMCategory,
    Transaction as ORMTransaction,
    ImportFormat as ORMImportFormat,
    ImportSession as ORMImportSession,
    CategorizationRule as ORMRule,
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
        account_id=orm_transaction.account_id,
        date=orm_transaction.date,
        amount=orm_transaction.amount,
        description=orm_transaction.description or "",
        category_id=orm_transaction.category_id,
        tags=tuple(orm_transaction.tags or ()),
        notes=orm_transaction.notes,
        duplicate_hash=orm_transaction.duplicate_hash,
        imported_at=orm_transaction.imported_at,
    )


def import_format_to_domain(orm_format: ORMImportFormat) -> domain.ImportFormat:
    """Convert SQLAlchemy ImportFormat model to domain ImportFormat entity."""
    return domain.ImportFormat(
        id=orm_format.id,
        name=orm_format.name,
        account_id=orm_format.account_id,
        config=domain.CsvFormatConfig.from_dict(orm_format.config),
        created_at=orm_format.created_at,
    )


def import_session_to_domain(orm_session: ORMImportSession) -> domain.ImportSession:
    """Convert SQLAlchemy ImportSession model to domain ImportSession entity."""
    config = None
    if orm_session.format_config is not None:
        config = domain.CsvFormatConfig.from_dict(orm_session.format_config)
    return domain.ImportSession(
        id=orm_session.id,
        account_id=orm_session.account_id,
        filename=orm_session.filename,
        row_count=orm_session.row_count,
        status=domain.ImportStatus(orm_session.status),
        error_message=orm_session.error_message,
        format_config=config,
        csv_data=orm_session.csv_data,
        created_at=orm_session.created_at,
        updated_at=orm_session.updated_at,
    )


def rule_to_domain(orm_rule: ORMRule) -> domain.Rule:
    """Convert SQLAlchemy CategorizationRule model to domain Rule entity.

    The stored document is re-parsed; name, priority and active flag come
    from the row so they can be changed without rewriting the document.
    """
    definition = parse_rule_document(
        orm_rule.source,
        name=orm_rule.name,
        priority=orm_rule.priority,
        is_active=orm_rule.is_active,
    )
    return domain.Rule(
        id=orm_rule.id,
        name=orm_rule.name,
        priority=orm_rule.priority,
        condition=definition.condition,
        category_id=orm_rule.category_id,
        tags=definition.tags,
        is_active=orm_rule.is_active,
        source=orm_rule.source,
        created_at=orm_rule.created_at,
        updated_at=orm_rule.updated_at,
    )
