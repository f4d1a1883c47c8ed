"""All-or-nothing load of one ledger file.

Every line is validated and added inside one transaction. The first invalid
line stops reading and rolls everything back; the commit only happens after
the last line was consumed cleanly.
"""
from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from processors.errors import RowValidationError
from processors.models import LoadResult
from processors.row_validator import validate_row
from processors.storage import LedgerRow

FILE_ENCODING = "utf-8-sig"


def load_file(
    session_factory: sessionmaker,
    path: str,
    digest: str,
    logger: logging.Logger,
) -> LoadResult:
    """Validate and insert every line of `path` tagged with `digest`.

    Never raises for validation, read or storage problems; those come back as
    a failed LoadResult whose message is meant for the summary file.
    """
    line_number = 0
    rows = 0
    try:
        with session_factory() as session, session.begin():
            with open(path, "r", encoding=FILE_ENCODING, newline="") as fh:
                for line_number, line in enumerate(fh, start=1):
                    record = validate_row(line)
                    session.add(LedgerRow.from_record(record, digest))
                    rows += 1
    except RowValidationError as exc:
        logger.warning("Invalid data in file %s, line %d: %s", path, line_number, exc)
        return LoadResult(False, f"Error on line {line_number}: {exc}")
    except (OSError, UnicodeDecodeError) as exc:
        logger.exception("Error reading file %s", path)
        return LoadResult(False, f"Error reading file: {exc}")
    except SQLAlchemyError:
        logger.exception("Error loading file %s into the database", path)
        return LoadResult(False, "StorageError: rows could not be written to the database.")

    logger.info("Loaded %d rows from %s", rows, path)
    return LoadResult(True, rows=rows)
