"""
Shared pytest fixtures for gatong_pass tests.

This module provides common fixtures used across test modules including:
- Sample roster CSV text and parsed roster records
- A controllable clock for cache and limiter tests
- A fake roster fetcher that counts calls
- Sample submissions
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from gatong_pass.errors import FetchError
from gatong_pass.models import (
    GuardianContacts,
    RosterParseResult,
    StudentRecord,
    SubmissionRecord,
)

# ============================================================================
# Helpers
# ============================================================================


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRosterSource:
    """Roster fetcher returning a fixed result, or failing on demand."""

    def __init__(self, result: RosterParseResult) -> None:
        self.result = result
        self.calls = 0
        self.fail = False

    async def fetch_roster(self) -> RosterParseResult:
        self.calls += 1
        if self.fail:
            raise FetchError("source down", url="https://example.invalid/roster.csv")
        return self.result


# ============================================================================
# Roster Fixtures
# ============================================================================


ROSTER_CSV = (
    "학번,이름,부연락처,모연락처\n"
    "1205,홍길동,010-1234-5678,\n"
    "1101,김영희,,010-2222-3333\n"
    "21003,박민수,010-9999-0001,010-8888-0002\n"
    "1102,\"이, 서연\",010-4444-5555,010-6666-7777\n"
)


@pytest.fixture
def roster_csv() -> str:
    """CSV export with four well-formed students."""
    return ROSTER_CSV


@pytest.fixture
def hong() -> StudentRecord:
    return StudentRecord(
        id="STU-1205",
        grade=1,
        class_num=2,
        student_num=5,
        name="홍길동",
        guardian_contacts=GuardianContacts(father="010-1234-5678"),
    )


@pytest.fixture
def sample_roster(hong: StudentRecord) -> List[StudentRecord]:
    """Roster across two grades and three classes, sorted."""
    return [
        StudentRecord(
            id="STU-1101",
            grade=1,
            class_num=1,
            student_num=1,
            name="김영희",
            guardian_contacts=GuardianContacts(mother="010-2222-3333"),
        ),
        StudentRecord(
            id="STU-1102",
            grade=1,
            class_num=1,
            student_num=2,
            name="이서연",
            guardian_contacts=GuardianContacts(father="010-4444-5555", mother="010-6666-7777"),
        ),
        hong,
        StudentRecord(
            id="STU-21003",
            grade=2,
            class_num=10,
            student_num=3,
            name="박민수",
            guardian_contacts=GuardianContacts(father="(010) 9999-0001"),
        ),
    ]


@pytest.fixture
def roster_result(sample_roster: List[StudentRecord]) -> RosterParseResult:
    return RosterParseResult(students=sample_roster)


@pytest.fixture
def fake_source(roster_result: RosterParseResult) -> FakeRosterSource:
    return FakeRosterSource(roster_result)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Submission Fixtures
# ============================================================================


@pytest.fixture
def base_time() -> datetime:
    return datetime(2025, 5, 1, 9, 0, 0)


@pytest.fixture
def sample_submissions(
    sample_roster: List[StudentRecord], base_time: datetime
) -> List[SubmissionRecord]:
    """Two responses to a participation form."""
    kim, _, hong, _ = sample_roster
    return [
        SubmissionRecord(
            student=kim,
            answers={"이름": "김영희", "참가 여부": "참가", "알레르기": ["우유", "땅콩"]},
            submitted_at=base_time,
        ),
        SubmissionRecord(
            student=hong,
            answers={"이름": "홍길동", "참가 여부": "불참", "불참 사유": "가족 행사"},
            submitted_at=base_time + timedelta(hours=1),
        ),
    ]
