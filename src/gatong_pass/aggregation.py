"""
Submission Analytics

Computes dashboard statistics for one correspondence from a roster slice
and the responses collected so far:
- Overall completion (total / submitted / pending / rate)
- The same figures per (grade, class)
- Per-question answer tallies, skipping metadata columns

Everything here is a pure function of its inputs and safe to recompute on
every poll.
"""

from collections import defaultdict
from typing import Any, Iterable, Optional, Sequence

from gatong_pass.models import (
    AggregateStats,
    ClassStats,
    CompletionStats,
    StudentRecord,
    StudentStatus,
    SubmissionRecord,
)

UNANSWERED = "(unanswered)"

# Columns written alongside answers that are not survey questions
RESERVED_ANSWER_KEYS: frozenset[str] = frozenset({
    # Korean sheet headers
    "제출일시", "타임스탬프", "학년", "반", "번호", "이름", "연락처",
    "수정횟수", "서명URL", "서명", "IP", "기기", "ID",
    # English keys
    "submitted_at", "timestamp", "grade", "class", "class_num", "number",
    "student_num", "name", "contact", "revision", "revision_count",
    "signature_url", "ip", "device", "id",
})


def completion_rate(submitted: int, total: int) -> int:
    """Percentage of submitted over total, rounded half up, 0 when empty."""
    if total <= 0:
        return 0
    # Integer form of floor(submitted / total * 100 + 0.5)
    return min(100, (200 * submitted + total) // (2 * total))


def _completion(population: Sequence[StudentStatus]) -> dict[str, int]:
    total = len(population)
    submitted = sum(1 for member in population if member.submitted)
    return {
        "total": total,
        "submitted_count": submitted,
        "pending_count": max(0, total - submitted),
        "completion_rate": completion_rate(submitted, total),
    }


def completion_stats(population: Sequence[StudentStatus]) -> CompletionStats:
    """Completion figures for a population slice."""
    return CompletionStats(**_completion(population))


def per_class_stats(population: Sequence[StudentStatus]) -> list[ClassStats]:
    """Completion figures per (grade, class), ordered by grade then class."""
    groups: dict[tuple[int, int], list[StudentStatus]] = defaultdict(list)
    for member in population:
        groups[(member.student.grade, member.student.class_num)].append(member)

    return [
        ClassStats(grade=grade, class_num=class_num, **_completion(members))
        for (grade, class_num), members in sorted(groups.items())
    ]


def _answer_values(value: Any) -> list[str]:
    """Flatten one answer into the buckets it should be counted under."""
    if value is None:
        return [UNANSWERED]
    if isinstance(value, (list, tuple, set, frozenset)):
        values = [str(v) for v in value if v is not None and str(v).strip()]
        return values or [UNANSWERED]
    text = str(value)
    if not text.strip():
        return [UNANSWERED]
    return [text]


def per_question_stats(
    submissions: Sequence[SubmissionRecord],
    reserved_keys: Iterable[str] = RESERVED_ANSWER_KEYS,
) -> dict[str, dict[str, int]]:
    """
    Tally answers per question.

    Questions are ordered by first appearance across submissions. A
    submission without a given question counts toward "(unanswered)".
    Checkbox answers (lists) count once per selected option.
    """
    reserved = set(reserved_keys)

    questions: list[str] = []
    seen: set[str] = set()
    for submission in submissions:
        for key in submission.answers:
            if key not in reserved and key not in seen:
                seen.add(key)
                questions.append(key)

    tallies: dict[str, dict[str, int]] = {}
    for question in questions:
        counts: dict[str, int] = {}
        for submission in submissions:
            for bucket in _answer_values(submission.answers.get(question)):
                counts[bucket] = counts.get(bucket, 0) + 1
        tallies[question] = counts

    return tallies


def aggregate(
    population: Sequence[StudentStatus],
    submissions: Sequence[SubmissionRecord],
    reserved_keys: Iterable[str] = RESERVED_ANSWER_KEYS,
) -> AggregateStats:
    """
    Compute dashboard statistics.

    Args:
        population: Roster slice with a submitted flag per student
        submissions: Responses collected for the correspondence
        reserved_keys: Answer keys treated as metadata, not questions

    Returns:
        AggregateStats for the slice
    """
    return AggregateStats(
        **_completion(population),
        per_class=per_class_stats(population),
        per_question=per_question_stats(submissions, reserved_keys),
    )


def attach_submission_status(
    roster: Sequence[StudentRecord],
    submissions: Sequence[SubmissionRecord],
) -> list[StudentStatus]:
    """
    Mark each roster record as submitted or pending.

    Submissions are matched on (grade, class, number); when several match,
    the most recent one supplies the timestamp.
    """
    latest: dict[tuple[int, int, int], SubmissionRecord] = {}
    for submission in submissions:
        key = submission.student.identity_key
        current = latest.get(key)
        if current is None or submission.submitted_at >= current.submitted_at:
            latest[key] = submission

    population = []
    for student in roster:
        match = latest.get(student.identity_key)
        population.append(
            StudentStatus(
                student=student,
                submitted=match is not None,
                submitted_at=match.submitted_at if match else None,
            )
        )
    return population


def filter_population(
    population: Sequence[StudentStatus],
    grade: Optional[int] = None,
    class_num: Optional[int] = None,
) -> list[StudentStatus]:
    """Restrict a population to a grade and/or class."""
    return [
        member for member in population
        if (grade is None or member.student.grade == grade)
        and (class_num is None or member.student.class_num == class_num)
    ]
