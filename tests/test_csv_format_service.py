"""Tests for saved CSV formats."""

import pytest

from fintrack.domain.csv_format import load_format_config
from fintrack.domain.entities import CsvFormatConfig
from fintrack.domain.errors import ConflictError, NotFoundError, ValidationError


SIGNED = CsvFormatConfig(date_column=0, description_column=1, amount_column=2)


def test_save_and_get_format(import_format_service, sample_account):
    format_id = import_format_service.save_format("nordbank", sample_account.id, SIGNED)

    fmt = import_format_service.get_format_by_name("nordbank")
    assert fmt.id == format_id
    assert fmt.account_id == sample_account.id
    assert fmt.config == SIGNED


def test_save_format_from_dict(import_format_service, sample_account):
    import_format_service.save_format("nordbank", sample_account.id, SIGNED.to_dict())
    assert import_format_service.require_format("nordbank").config == SIGNED


def test_save_format_errors(import_format_service, sample_account):
    import_format_service.save_format("nordbank", sample_account.id, SIGNED)

    with pytest.raises(ConflictError):
        import_format_service.save_format("nordbank", sample_account.id, SIGNED)
    with pytest.raises(ValidationError):
        import_format_service.save_format(" ", sample_account.id, SIGNED)
    with pytest.raises(NotFoundError):
        import_format_service.save_format("other", 99, SIGNED)
    with pytest.raises(ValidationError):
        import_format_service.save_format("other", sample_account.id, {"date_column": 0})


def test_save_from_session(import_format_service, import_service, sample_account, fixtures_dir):
    """The format a session resolved to can be saved for later imports."""
    data = (fixtures_dir / "debit_credit_semicolon.csv").read_bytes()
    session = import_service.upload(sample_account.id, "statement.csv", data).session

    import_format_service.save_from_session("sparkasse", session.id)

    assert import_format_service.require_format("sparkasse").config == session.format_config


def test_save_from_session_without_config(import_format_service, import_service, sample_account, fixtures_dir):
    data = (fixtures_dir / "ambiguous.csv").read_bytes()
    session = import_service.upload(sample_account.id, "statement.csv", data).session

    with pytest.raises(ValidationError, match="no format to save"):
        import_format_service.save_from_session("broken", session.id)


def test_saved_format_as_override(import_format_service, import_service, sample_account, fixtures_dir):
    """A saved format reads files that detection cannot."""
    import_format_service.save_format(
        "refs", sample_account.id, dict(SIGNED.to_dict(), amount_column=3, balance_column=2)
    )
    session = import_service.upload(
        sample_account.id, "ambiguous.csv", (fixtures_dir / "ambiguous.csv").read_bytes()
    ).session

    config = import_format_service.require_format("refs").config
    result = import_service.preview(session.id, format_override=config)

    assert result.total_rows == 2
    assert result.errors == ()


def test_list_and_delete(import_format_service, account_service, sample_account):
    other_id = account_service.create_account(name="Savings", bank_name="Bank")
    import_format_service.save_format("b-format", sample_account.id, SIGNED)
    import_format_service.save_format("a-format", other_id, SIGNED)

    assert [f.name for f in import_format_service.list_formats()] == ["a-format", "b-format"]
    assert [f.name for f in import_format_service.list_formats(account_id=other_id)] == ["a-format"]

    import_format_service.delete_format("a-format")
    assert import_format_service.get_format_by_name("a-format") is None
    with pytest.raises(NotFoundError):
        import_format_service.delete_format("a-format")


def test_load_format_config(fixtures_dir):
    config = load_format_config((fixtures_dir / "signed_format.yaml").read_text())
    assert config == SIGNED


def test_load_format_config_accepts_json():
    config = load_format_config('{"date_column": 0, "description_column": 1, "amount_column": 2}')
    assert config == SIGNED


def test_load_format_config_rejects_bad_documents():
    with pytest.raises(ValidationError, match="Invalid format config document"):
        load_format_config("date_column: [0")
    with pytest.raises(ValidationError, match="must be a mapping"):
        load_format_config("- 0\n- 1\n")
