"""Parsing and validation for a single ledger line.

A line has exactly five comma separated fields::

    date,reportMonth,reportYear,recordType,amount

``date`` is ``D-M-YYYY`` and ``recordType`` is one of the :class:`RecordType`
tokens. Fields are checked in that order and the first failure is raised, so a
caller never sees a partially parsed record.
"""
from __future__ import annotations

import datetime
import re
from decimal import Decimal
from typing import List

from processors.errors import (
    InvalidAmount,
    InvalidDate,
    InvalidInteger,
    InvalidRecordType,
    MalformedRow,
)
from processors.models import Record, RecordType

DELIMITER = ","
FIELD_COUNT = 5

_DATE_RE = re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$", re.ASCII)
_INT_RE = re.compile(r"^[+-]?\d+$", re.ASCII)
_AMOUNT_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$", re.ASCII)


def split_fields(line: str) -> List[str]:
    return [field.strip() for field in line.rstrip("\r\n").split(DELIMITER)]


def parse_date(value: str) -> datetime.date:
    if not _DATE_RE.match(value):
        raise InvalidDate("Field 'date' is invalid or missing.")
    try:
        return datetime.datetime.strptime(value, "%d-%m-%Y").date()
    except ValueError:
        raise InvalidDate("Field 'date' is invalid or missing.") from None


def parse_int(value: str, name: str) -> int:
    if not _INT_RE.match(value):
        raise InvalidInteger(f"Field '{name}' is invalid or missing.")
    return int(value)


def parse_record_type(value: str) -> RecordType:
    try:
        return RecordType(value)
    except ValueError:
        raise InvalidRecordType("Field 'recordType' is invalid or missing.") from None


def parse_amount(value: str) -> Decimal:
    if not _AMOUNT_RE.match(value):
        raise InvalidAmount("Field 'amount' is invalid or missing.")
    return Decimal(value)


def validate_row(line: str) -> Record:
    """Parse `line` into a :class:`Record` or raise the first RowValidationError."""
    fields = split_fields(line)
    if len(fields) != FIELD_COUNT:
        raise MalformedRow("Row is missing required fields.")

    date = parse_date(fields[0])
    report_month = parse_int(fields[1], "reportMonth")
    report_year = parse_int(fields[2], "reportYear")
    record_type = parse_record_type(fields[3])
    amount = parse_amount(fields[4])

    return Record(
        date=date,
        report_month=report_month,
        report_year=report_year,
        record_type=record_type,
        amount=amount,
    )
