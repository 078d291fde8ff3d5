"""CSV import domain service.

An import runs as a session: the uploaded file is stored and its format
detected, previewed (parsed and checked for duplicates) as often as needed,
and finally confirmed, which writes the new transactions with the active
rules already applied.
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional, Union

from fintrack.config import ImportSettings
from fintrack.database.base import Database
from fintrack.domain.account import AccountService
from fintrack.domain.csv_parser import ParseResult, decode_csv, parse_csv_bytes, split_lines
from fintrack.domain.duplicates import lookup_window, mark_duplicates
from fintrack.domain.entities import (
    CsvFormatConfig,
    ImportSession,
    ImportStatus,
    Transaction,
    TransactionPreview,
)
from fintrack.domain.errors import (
    FormatDetectionFailed,
    MalformedFile,
    NotFoundError,
    RowParseError,
    ValidationError,
    session_not_found,
)
from fintrack.domain.format_detection import DetectionResult, detect_format_from_lines
from fintrack.domain.import_session import (
    ACCOUNT_IMPORT_LOCKS,
    AccountImportLocks,
    ensure_action_allowed,
    ensure_transition,
)
from fintrack.domain.rule_engine import (
    TransactionFields,
    active_rules_sorted,
    apply_match,
    evaluate_rules,
)
from fintrack.domain.transaction import TransactionService

logger = logging.getLogger(__name__)

FormatOverride = Union[CsvFormatConfig, dict[str, Any], None]


@dataclass(frozen=True)
class UploadResult:
    """A new session and its detected format (None when detection failed)."""

    session: ImportSession
    detection: Optional[DetectionResult]


@dataclass(frozen=True)
class PreviewResult:
    """Parsed rows of a file, flagged against existing transactions."""

    previews: tuple[TransactionPreview, ...]
    errors: tuple[RowParseError, ...]
    total_rows: int
    session: Optional[ImportSession] = None

    @property
    def duplicate_count(self) -> int:
        return sum(1 for p in self.previews if p.is_duplicate)

    @property
    def new_count(self) -> int:
        return len(self.previews) - self.duplicate_count


@dataclass(frozen=True)
class ImportResult:
    """Outcome of a confirmed import."""

    session: ImportSession
    imported_count: int
    skipped_duplicates: int
    error_count: int
    errors: tuple[RowParseError, ...]
    categorized_count: int


def parse_preview(
    data: bytes,
    config: CsvFormatConfig,
    existing: Iterable[Transaction],
    max_error_ratio: float = 0.5,
) -> PreviewResult:
    """Parse a file and flag duplicates against the given transactions.

    Raises:
        ValidationError: If the config is invalid
        MalformedFile: If too many rows fail to parse
    """
    parsed = parse_csv_bytes(data, config, max_error_ratio)
    return _with_duplicates(parsed, existing)


def _with_duplicates(parsed: ParseResult, existing: Iterable[Transaction]) -> PreviewResult:
    return PreviewResult(
        previews=tuple(mark_duplicates(parsed.previews, existing)),
        errors=parsed.errors,
        total_rows=parsed.total_rows,
    )


class CSVImportService:
    """Service for importing bank CSV exports through import sessions."""

    def __init__(
        self,
        db: Database,
        settings: Optional[ImportSettings] = None,
        locks: Optional[AccountImportLocks] = None,
    ):
        """Initialize CSV import service.

        Args:
            db: Database instance
            settings: Import settings (defaults apply when None)
            locks: Per-account confirm slots (the process-wide registry when None)
        """
        self.db = db
        self.settings = settings or ImportSettings()
        self.locks = locks if locks is not None else ACCOUNT_IMPORT_LOCKS
        self.transaction_service = TransactionService(db)
        self.account_service = AccountService(db)

    def upload(self, account_id: int, filename: str, data: bytes) -> UploadResult:
        """Store an uploaded file in a new session and detect its format.

        A file whose format cannot be detected is still accepted: the session
        stays uploaded with the detection error recorded, and a format
        override can be given to preview.

        Args:
            account_id: Account the transactions belong to
            filename: Original file name
            data: Raw file content

        Returns:
            UploadResult with the session and detection result

        Raises:
            NotFoundError: If the account doesn't exist
            ValidationError: If the file is empty or too large
        """
        self.account_service.require_account(account_id)
        if not data:
            raise ValidationError("Uploaded file is empty")
        if len(data) > self.settings.max_file_size:
            raise ValidationError(
                f"File is too large ({len(data)} bytes, limit {self.settings.max_file_size})"
            )

        session_id = self.db.create_import_session(account_id, filename, data)
        lines = split_lines(decode_csv(data))
        try:
            detection = detect_format_from_lines(lines, self.settings)
        except FormatDetectionFailed as e:
            logger.warning("Import session %d: %s", session_id, e)
            # Without a known header every non-blank line counts as a row
            self.db.update_import_session(
                session_id, ImportStatus.UPLOADED, error_message=str(e), row_count=len(lines)
            )
            detection = None
        else:
            self.db.update_import_session(
                session_id,
                ImportStatus.UPLOADED,
                format_config=detection.config,
                row_count=detection.row_count,
            )

        logger.info("Import session %d created for '%s'", session_id, filename)
        return UploadResult(session=self._require_session(session_id), detection=detection)

    def preview(self, session_id: int, format_override: FormatOverride = None) -> PreviewResult:
        """Parse the session's file and flag duplicates.

        Args:
            session_id: Import session ID
            format_override: Config to use instead of the detected one; it
                replaces the session's config

        Returns:
            PreviewResult for the updated session

        Raises:
            NotFoundError: If the session doesn't exist
            InvalidSessionState: If the session is not uploaded or previewed
            ValidationError: If the override is invalid (session unchanged)
            FormatDetectionFailed: If there is no config to use (session failed)
            MalformedFile: If too many rows fail to parse (session failed)
        """
        session = self._require_session(session_id)
        ensure_action_allowed(session, "preview")
        config = self._resolve_override(format_override)

        try:
            if config is None:
                config = session.format_config
            if config is None:
                # Detection is deterministic, so this reports the upload failure again
                config = detect_format_from_lines(
                    split_lines(decode_csv(session.csv_data or b"")), self.settings
                ).config
            result = self._parse_and_flag(session, config)
        except (FormatDetectionFailed, MalformedFile) as e:
            self._fail(session, e)
            raise

        ensure_transition(session, ImportStatus.PREVIEWED, "preview")
        self.db.update_import_session(
            session.id,
            ImportStatus.PREVIEWED,
            format_config=config,
            row_count=result.total_rows,
        )
        return replace(result, session=self._require_session(session.id))

    def confirm(
        self,
        session_id: int,
        skip_duplicates: bool = True,
        format_override: FormatOverride = None,
    ) -> ImportResult:
        """Import the session's transactions.

        The file is parsed and checked for duplicates again against the
        current state, so transactions imported since the preview are not
        written twice. Each new transaction is run through the active rules
        before it is stored. The transactions and the session status are
        written together: if any write fails, nothing is kept and the session
        stays previewed.

        Args:
            session_id: Import session ID
            skip_duplicates: Leave out rows flagged as duplicates
            format_override: Config to use instead of the session's

        Returns:
            ImportResult with exact counts

        Raises:
            NotFoundError: If the session doesn't exist
            InvalidSessionState: If the session has not been previewed
            ValidationError: If the override is invalid (session unchanged)
            DuplicateAccountLock: If a confirm for the same account is running
            MalformedFile: If too many rows fail to parse (session failed)
        """
        session = self._require_session(session_id)
        ensure_action_allowed(session, "confirm")
        override = self._resolve_override(format_override)

        with self.locks.hold(session.account_id):
            # Another confirm may have finished while this one was waiting to start
            session = self._require_session(session_id)
            ensure_action_allowed(session, "confirm")
            config = override or session.format_config

            try:
                preview = self._parse_and_flag(session, config)
            except MalformedFile as e:
                self._fail(session, e)
                raise

            rules = active_rules_sorted(self.db.list_rules(active_only=True))
            to_store = []
            skipped = categorized = 0
            for row in preview.previews:
                if row.is_duplicate and skip_duplicates:
                    skipped += 1
                    continue

                category_id = None
                tags: tuple[str, ...] = ()
                fields = TransactionFields(description=row.description, amount=row.amount, date=row.date)
                match = evaluate_rules(fields, rules)
                if match is not None:
                    category_id, tags = apply_match(category_id, tags, match)
                    categorized += 1
                to_store.append((row, category_id, tags))

            ensure_transition(session, ImportStatus.CONFIRMED, "confirm")
            # All transactions and the status change are kept, or none of them
            with self.db.unit_of_work():
                for row, category_id, tags in to_store:
                    self.transaction_service.create_transaction(
                        account_id=session.account_id,
                        date=row.date,
                        amount=row.amount,
                        description=row.description,
                        category_id=category_id,
                        tags=tags,
                    )
                self.db.update_import_session(
                    session.id,
                    ImportStatus.CONFIRMED,
                    format_config=config,
                    row_count=preview.total_rows,
                    clear_csv_data=True,
                )
            imported = len(to_store)

        logger.info(
            "Import session %d confirmed: %d imported, %d duplicates skipped, %d row errors, %d categorized",
            session.id, imported, skipped, len(preview.errors), categorized,
        )
        return ImportResult(
            session=self._require_session(session.id),
            imported_count=imported,
            skipped_duplicates=skipped,
            error_count=len(preview.errors),
            errors=preview.errors,
            categorized_count=categorized,
        )

    def discard(self, session_id: int) -> ImportSession:
        """Abandon a session and drop its stored file.

        Raises:
            NotFoundError: If the session doesn't exist
            InvalidSessionState: If the session is already confirmed or discarded
        """
        session = self._require_session(session_id)
        ensure_action_allowed(session, "discard")
        ensure_transition(session, ImportStatus.DISCARDED, "discard")
        self.db.update_import_session(
            session.id,
            ImportStatus.DISCARDED,
            error_message=session.error_message,
            clear_csv_data=True,
        )
        return self._require_session(session.id)

    def get_session(self, session_id: int) -> Optional[ImportSession]:
        """Get import session by ID."""
        return self.db.get_import_session(session_id)

    def list_sessions(
        self, account_id: Optional[int] = None, status: Optional[ImportStatus] = None
    ) -> list[ImportSession]:
        """List import sessions, newest first."""
        return self.db.list_import_sessions(account_id=account_id, status=status)

    def _require_session(self, session_id: int) -> ImportSession:
        session = self.db.get_import_session(session_id)
        if session is None:
            raise NotFoundError(session_not_found(session_id))
        return session

    def _resolve_override(self, format_override: FormatOverride) -> Optional[CsvFormatConfig]:
        if format_override is None:
            return None
        if isinstance(format_override, CsvFormatConfig):
            return format_override.validate()
        return CsvFormatConfig.from_dict(format_override)

    def _parse_and_flag(self, session: ImportSession, config: CsvFormatConfig) -> PreviewResult:
        if session.csv_data is None:
            raise ValidationError(f"Import session {session.id} has no file data")
        parsed = parse_csv_bytes(session.csv_data, config, self.settings.max_error_ratio)

        existing: list[Transaction] = []
        window = lookup_window(parsed.previews, self.settings.duplicate_window_days)
        if window is not None:
            start, end = window
            existing = self.db.list_transactions(
                start_date=start, end_date=end, account_id=session.account_id
            )
        result = _with_duplicates(parsed, existing)
        logger.info(
            "Import session %d: %d rows, %d duplicates, %d row errors",
            session.id, result.total_rows, result.duplicate_count, len(result.errors),
        )
        return replace(result, session=session)

    def _fail(self, session: ImportSession, error: Exception) -> None:
        ensure_transition(session, ImportStatus.FAILED, "fail")
        self.db.update_import_session(session.id, ImportStatus.FAILED, error_message=str(error))
