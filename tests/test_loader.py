"""Tests for processors.loader and processors.duplicate_guard modules"""
import os
from decimal import Decimal
from unittest.mock import Mock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from processors.duplicate_guard import digest_exists
from processors.errors import StorageError
from processors.loader import load_file
from processors.storage import LedgerRow

DIGEST = "a" * 64


def count_rows(session_factory, digest=None):
    stmt = select(func.count()).select_from(LedgerRow)
    if digest is not None:
        stmt = stmt.where(LedgerRow.source_digest == digest)
    with session_factory() as session:
        return session.scalar(stmt)


class TestLoadFile:
    """Test suite for load_file"""

    def test_loads_every_row(self, session_factory, mock_logger, temp_dirs, make_file):
        input_dir, _, _ = temp_dirs
        path = make_file(input_dir, "ok.csv", "1-3-2024,3,2024,Ingreso,150.50\n2-3-2024,3,2024,Egreso,20\n")

        result = load_file(session_factory, path, DIGEST, mock_logger)

        assert result.success
        assert result.rows == 2
        assert result.message is None
        assert count_rows(session_factory, DIGEST) == 2

    def test_rows_carry_parsed_values_and_digest(self, session_factory, mock_logger, temp_dirs, make_file):
        input_dir, _, _ = temp_dirs
        path = make_file(input_dir, "ok.csv", "1-3-2024,3,2024,Ingreso,150.50\n")

        load_file(session_factory, path, DIGEST, mock_logger)

        with session_factory() as session:
            row = session.scalars(select(LedgerRow)).one()
        assert row.report_month == 3
        assert row.report_year == 2024
        assert row.record_type == "Ingreso"
        assert Decimal(str(row.amount)) == Decimal("150.50")
        assert row.source_digest == DIGEST

    def test_invalid_second_line_commits_nothing(self, session_factory, mock_logger, temp_dirs, make_file):
        input_dir, _, _ = temp_dirs
        path = make_file(input_dir, "bad.csv", "1-3-2024,3,2024,Ingreso,150.50\n1-3-2024,3,2024,Ingreso,abc\n")

        result = load_file(session_factory, path, DIGEST, mock_logger)

        assert not result.success
        assert result.message == "Error on line 2: InvalidAmount: Field 'amount' is invalid or missing."
        assert count_rows(session_factory) == 0
        mock_logger.warning.assert_called()

    def test_stops_at_first_invalid_line(self, session_factory, mock_logger, temp_dirs, make_file):
        input_dir, _, _ = temp_dirs
        path = make_file(input_dir, "bad.csv", "nope\n1-3-2024,3,2024,Nope,1\n")

        result = load_file(session_factory, path, DIGEST, mock_logger)

        assert result.message.startswith("Error on line 1: MalformedRow")

    def test_empty_file_succeeds_with_no_rows(self, session_factory, mock_logger, temp_dirs, make_file):
        input_dir, _, _ = temp_dirs
        path = make_file(input_dir, "empty.csv", "")

        result = load_file(session_factory, path, DIGEST, mock_logger)

        assert result.success
        assert result.rows == 0
        assert result.message is None
        assert count_rows(session_factory) == 0

    def test_missing_file_fails(self, session_factory, mock_logger, temp_dirs):
        input_dir, _, _ = temp_dirs

        result = load_file(session_factory, os.path.join(input_dir, "missing.csv"), DIGEST, mock_logger)

        assert not result.success
        assert result.message.startswith("Error reading file")
        mock_logger.exception.assert_called()

    def test_storage_error_is_reported_not_raised(self, mock_logger, temp_dirs, make_file):
        input_dir, _, _ = temp_dirs
        path = make_file(input_dir, "ok.csv", "1-3-2024,3,2024,Ingreso,150.50\n")
        session = Mock()
        session.__enter__ = Mock(return_value=session)
        session.__exit__ = Mock(return_value=False)
        session.begin.side_effect = OperationalError("BEGIN", {}, Exception("db down"))
        factory = Mock(return_value=session)

        result = load_file(factory, path, DIGEST, mock_logger)

        assert not result.success
        assert result.message.startswith("StorageError")
        mock_logger.exception.assert_called()

    def test_utf8_bom_is_ignored(self, session_factory, mock_logger, temp_dirs):
        input_dir, _, _ = temp_dirs
        path = os.path.join(input_dir, "bom.csv")
        with open(path, "wb") as f:
            f.write(b"\xef\xbb\xbf1-3-2024,3,2024,Ingreso,150.50\n")

        assert load_file(session_factory, path, DIGEST, mock_logger).success


class TestDigestExists:
    """Test suite for digest_exists"""

    def test_unknown_digest(self, session_factory):
        assert not digest_exists(session_factory, DIGEST)

    def test_committed_digest(self, session_factory, mock_logger, temp_dirs, make_file):
        input_dir, _, _ = temp_dirs
        path = make_file(input_dir, "ok.csv", "1-3-2024,3,2024,Ingreso,150.50\n")
        load_file(session_factory, path, DIGEST, mock_logger)

        assert digest_exists(session_factory, DIGEST)
        assert not digest_exists(session_factory, "b" * 64)

    def test_rolled_back_digest_is_not_visible(self, session_factory, mock_logger, temp_dirs, make_file):
        input_dir, _, _ = temp_dirs
        path = make_file(input_dir, "bad.csv", "1-3-2024,3,2024,Ingreso,150.50\nbroken\n")
        load_file(session_factory, path, DIGEST, mock_logger)

        assert not digest_exists(session_factory, DIGEST)

    def test_lookup_failure_raises_storage_error(self):
        factory = Mock(side_effect=OperationalError("SELECT", {}, Exception("db down")))

        with pytest.raises(StorageError):
            digest_exists(factory, DIGEST)
