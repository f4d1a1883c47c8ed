"""File-level duplicate detection against committed ledger rows."""
from __future__ import annotations

from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from processors.errors import StorageError
from processors.storage import LedgerRow


def digest_exists(session_factory: sessionmaker, digest: str) -> bool:
    """Return True if any committed row was loaded from a file with `digest`.

    Raises StorageError when the lookup itself fails.
    """
    stmt = select(exists().where(LedgerRow.source_digest == digest))
    try:
        with session_factory() as session:
            return bool(session.scalar(stmt))
    except SQLAlchemyError as exc:
        raise StorageError(f"Duplicate lookup failed for digest {digest}") from exc
