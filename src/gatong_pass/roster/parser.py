"""
Roster CSV parsing and student identifier decoding.

Turns the published spreadsheet export into StudentRecord entries.

Parsing rules:
- Fields may be quoted; "" inside quotes is a literal quote; commas inside
  quotes do not split fields
- Rows whose column count differs from the header are dropped and counted
- Columns are located by Korean header name, with alternate spellings
- Identifiers of 4 digits decode as G C NN, 5 digits as G CC NN; anything
  else is reported as unparseable instead of being zero-filled

This module is pure - no network access.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field

import structlog

from gatong_pass.models import (
    GuardianContacts,
    RosterParseResult,
    StudentRecord,
    UnparseableStudent,
)

logger = structlog.get_logger()


# Header aliases, first present wins
STUDENT_ID_HEADERS = ["학번"]
NAME_HEADERS = ["이름"]
PID_HEADERS = ["PID"]
FATHER_CONTACT_HEADERS = ["부연락처", "부(연락처)"]
MOTHER_CONTACT_HEADERS = ["모연락처", "모(연락처)"]
STATUS_HEADERS = ["학적"]

STUDENT_ID_PATTERN = re.compile(r"^[0-9]{4,5}$")


@dataclass
class CsvTable:
    """Header plus the rows that matched its width."""

    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)
    dropped_rows: int = 0


def _is_blank(row: list[str]) -> bool:
    return not row or (len(row) == 1 and not row[0].strip())


def parse_csv(text: str) -> CsvTable:
    """
    Parse CSV text into header-keyed rows.

    Blank lines are ignored. Fewer than two non-blank lines yields an
    empty table.
    """
    # Exports saved by spreadsheet tools may start with a BOM
    text = text.lstrip("\ufeff")
    records = [row for row in csv.reader(io.StringIO(text)) if not _is_blank(row)]
    if len(records) < 2:
        return CsvTable(headers=[h.strip() for h in records[0]] if records else [])

    headers = [h.strip() for h in records[0]]
    table = CsvTable(headers=headers)

    for values in records[1:]:
        if len(values) != len(headers):
            table.dropped_rows += 1
            continue
        table.rows.append(dict(zip(headers, values)))

    return table


def decode_student_id(raw_id: str) -> tuple[int, int, int] | None:
    """
    Decode a roster student identifier into (grade, class_num, student_num).

    "1205"  -> (1, 2, 5)
    "21003" -> (2, 10, 3)

    Returns None when the identifier is not 4 or 5 ASCII digits.
    """
    value = raw_id.strip()
    if not STUDENT_ID_PATTERN.match(value):
        return None

    if len(value) == 4:
        return int(value[0]), int(value[1]), int(value[2:4])
    return int(value[0]), int(value[1:3]), int(value[3:5])


def _first_value(row: dict[str, str], candidates: list[str]) -> str:
    """Return the first non-blank cell among candidate headers."""
    for header in candidates:
        value = row.get(header)
        if value is not None and value.strip():
            return value.strip()
    return ""


def parse_roster(text: str, exclude_inactive: bool = True) -> RosterParseResult:
    """
    Parse a roster CSV export into a RosterParseResult.

    Args:
        text: Raw CSV body of the spreadsheet export
        exclude_inactive: Skip rows whose enrollment status (학적) is filled in

    Returns:
        Parsed students sorted by grade, class and number, plus diagnostics
    """
    table = parse_csv(text)

    students: list[StudentRecord] = []
    unparseable: list[UnparseableStudent] = []
    inactive = 0

    for row_number, row in enumerate(table.rows, start=1):
        if exclude_inactive and _first_value(row, STATUS_HEADERS):
            inactive += 1
            continue

        raw_id = row.get(STUDENT_ID_HEADERS[0], "")
        name = _first_value(row, NAME_HEADERS)
        decoded = decode_student_id(raw_id)

        if decoded is None or not name:
            unparseable.append(
                UnparseableStudent(raw_id=raw_id, name=name, row_number=row_number)
            )
            continue

        grade, class_num, student_num = decoded
        if grade < 1:
            unparseable.append(
                UnparseableStudent(raw_id=raw_id, name=name, row_number=row_number)
            )
            continue

        contacts = GuardianContacts(
            father=_first_value(row, FATHER_CONTACT_HEADERS) or None,
            mother=_first_value(row, MOTHER_CONTACT_HEADERS) or None,
        )
        students.append(
            StudentRecord(
                id=_first_value(row, PID_HEADERS) or f"STU-{raw_id.strip()}",
                grade=grade,
                class_num=class_num,
                student_num=student_num,
                name=name,
                guardian_contacts=contacts,
            )
        )

    # Stable sort keeps source order for duplicate keys
    students.sort(key=lambda s: s.sort_key)

    if table.dropped_rows or unparseable:
        logger.warning(
            "roster_rows_skipped",
            dropped_rows=table.dropped_rows,
            unparseable=len(unparseable),
        )

    logger.info(
        "roster_parsed",
        students=len(students),
        inactive_rows=inactive,
    )

    return RosterParseResult(
        students=students,
        unparseable=unparseable,
        dropped_rows=table.dropped_rows,
        inactive_rows=inactive,
    )
