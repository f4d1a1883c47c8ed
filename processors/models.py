"""Plain value types passed between the processing stages."""
from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


class RecordType(str, enum.Enum):
    INCOME = "Ingreso"
    EXPENSE = "Egreso"


@dataclass(frozen=True)
class Record:
    date: datetime.date
    report_month: int
    report_year: int
    record_type: RecordType
    amount: Decimal


@dataclass(frozen=True)
class IngestFile:
    """One file for the duration of one processing attempt."""

    path: str
    digest: str
    size: Optional[int] = None


@dataclass(frozen=True)
class LoadResult:
    success: bool
    message: Optional[str] = None
    rows: int = 0


@dataclass(frozen=True)
class ProcessingOutcome:
    file_name: str
    success: bool
    message: Optional[str] = None
    duplicate: bool = False
