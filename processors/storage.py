"""SQLAlchemy model and session plumbing for the ledger table."""
from __future__ import annotations

import datetime
from decimal import Decimal

from sqlalchemy import Date, Index, Integer, Numeric, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from processors.models import Record

DEFAULT_DATABASE_URL = "sqlite:///ledger.db"


class Base(DeclarativeBase):
    pass


class LedgerRow(Base):
    """One committed record, tagged with the digest of the file it came from."""

    __tablename__ = "cash_flow"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    report_month: Mapped[int] = mapped_column(Integer, nullable=False)
    report_year: Mapped[int] = mapped_column(Integer, nullable=False)
    record_type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    source_digest: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        Index("ix_cash_flow_source_digest", "source_digest"),
    )

    @classmethod
    def from_record(cls, record: Record, digest: str) -> "LedgerRow":
        return cls(
            date=record.date,
            report_month=record.report_month,
            report_year=record.report_year,
            record_type=record.record_type.value,
            amount=record.amount,
            source_digest=digest,
        )


def create_db_engine(database_url: str = DEFAULT_DATABASE_URL, echo: bool = False) -> Engine:
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_schema(engine: Engine) -> None:
    """Create the ledger table when it does not exist yet."""
    Base.metadata.create_all(engine)
