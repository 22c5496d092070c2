"""
Core data models for the GatongPass correspondence system.

All data structures are defined here to ensure consistent typing
across roster ingestion, verification, aggregation and targeting.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VerificationOutcome(str, Enum):
    """Result of checking a claimed identity against the roster."""
    VERIFIED = "verified"
    NOT_FOUND = "not_found"
    CONTACT_MISMATCH = "contact_mismatch"


class DocType(str, Enum):
    """Kind of correspondence."""
    NOTICE = "notice"
    ACTION = "action"   # Requires a guardian response and/or signature


class FormItemType(str, Enum):
    """Input types a correspondence form may contain."""
    SELECT = "select"
    RADIO = "radio"
    TEXT = "text"
    CHECKBOX = "checkbox"
    SIGNATURE = "signature"


# =============================================================================
# Roster
# =============================================================================

class GuardianContacts(BaseModel):
    """Guardian phone numbers as written in the roster."""
    model_config = ConfigDict(frozen=True)

    father: str | None = Field(default=None, description="Father's contact number")
    mother: str | None = Field(default=None, description="Mother's contact number")

    def present(self) -> list[str]:
        """Contacts that are actually filled in."""
        return [c for c in (self.father, self.mother) if c]


class StudentRecord(BaseModel):
    """A single student in the school roster."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Opaque stable identifier derived from the roster")
    grade: int = Field(ge=1, description="Grade (school year)")
    class_num: int = Field(ge=0, description="Class/section number within the grade")
    student_num: int = Field(ge=0, description="Roll number within the class")
    name: str = Field(min_length=1, description="Display name")
    guardian_contacts: GuardianContacts = Field(default_factory=GuardianContacts)

    @property
    def sort_key(self) -> int:
        return self.grade * 10000 + self.class_num * 100 + self.student_num

    @property
    def identity_key(self) -> tuple[int, int, int]:
        return (self.grade, self.class_num, self.student_num)


class UnparseableStudent(BaseModel):
    """A roster row whose student identifier could not be decoded."""
    model_config = ConfigDict(frozen=True)

    raw_id: str = Field(description="Identifier exactly as it appeared in the roster")
    name: str = Field(default="", description="Name cell of the row, if any")
    row_number: int = Field(description="1-based data row number in the source")


class RosterParseResult(BaseModel):
    """Outcome of parsing one roster export."""
    model_config = ConfigDict(frozen=True)

    students: list[StudentRecord] = Field(default_factory=list)
    unparseable: list[UnparseableStudent] = Field(default_factory=list)
    dropped_rows: int = Field(default=0, description="Rows with a wrong column count")
    inactive_rows: int = Field(default=0, description="Rows excluded by enrollment status")

    @property
    def total_rows(self) -> int:
        return (
            len(self.students)
            + len(self.unparseable)
            + self.dropped_rows
            + self.inactive_rows
        )


# =============================================================================
# Verification
# =============================================================================

class VerificationAttempt(BaseModel):
    """Identity claimed by an unauthenticated submitter."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    claimed_grade: int = Field(alias="grade")
    claimed_class: int = Field(alias="class")
    claimed_num: int = Field(alias="number")
    claimed_name: str = Field(alias="name")
    contact_suffix: str = Field(
        alias="contactSuffix",
        pattern=r"^[0-9]{4}$",
        description="Last 4 digits of a guardian phone number",
    )

    @property
    def identity_key(self) -> tuple[int, int, int, str]:
        return (self.claimed_grade, self.claimed_class, self.claimed_num, self.claimed_name)


class VerificationResult(BaseModel):
    """Exactly one of verified / not_found / contact_mismatch."""
    model_config = ConfigDict(frozen=True)

    outcome: VerificationOutcome
    student: StudentRecord | None = None
    reason: str = ""

    @property
    def is_verified(self) -> bool:
        return self.outcome == VerificationOutcome.VERIFIED


# =============================================================================
# Submissions and statistics
# =============================================================================

class SubmissionRecord(BaseModel):
    """A guardian's response to one correspondence."""
    model_config = ConfigDict(frozen=True)

    student: StudentRecord
    answers: dict[str, Any] = Field(default_factory=dict)
    submitted_at: datetime
    revision: int = Field(default=0, description="Number of times this response was replaced")
    edited_by: str | None = Field(default=None, description="Staff member who last corrected it")
    edit_reason: str | None = None
    edited_at: datetime | None = None
    deleted: bool = Field(default=False, description="Soft-deleted; excluded from statistics")
    deleted_by: str | None = None


class StudentStatus(BaseModel):
    """A roster member annotated with submission status."""
    model_config = ConfigDict(frozen=True)

    student: StudentRecord
    submitted: bool = False
    submitted_at: datetime | None = None


class CompletionStats(BaseModel):
    """Completion figures for one population slice."""
    model_config = ConfigDict(frozen=True)

    total: int = Field(ge=0)
    submitted_count: int = Field(ge=0)
    pending_count: int = Field(ge=0)
    completion_rate: int = Field(ge=0, le=100)


class ClassStats(CompletionStats):
    """Completion figures for a single (grade, class) pair."""

    grade: int
    class_num: int


class AggregateStats(CompletionStats):
    """Dashboard view: overall, per-class and per-question figures."""

    per_class: list[ClassStats] = Field(default_factory=list)
    per_question: dict[str, dict[str, int]] = Field(default_factory=dict)


# =============================================================================
# Documents
# =============================================================================

class DocumentTargetMetadata(BaseModel):
    """Audience and type derived from a correspondence's file name or title."""
    model_config = ConfigDict(frozen=True)

    file_name: str
    title: str
    year: str | None = None
    target_grade: frozenset[int] = Field(default_factory=lambda: frozenset({0}))
    target_dept: frozenset[str] = Field(default_factory=lambda: frozenset({"common"}))
    doc_type: DocType = DocType.NOTICE
    path: str = ""

    def is_visible_to(self, grade: int | None = None, dept: str | None = None) -> bool:
        """Whether this document is shown under the given grade/department filters."""
        if grade is not None and grade not in self.target_grade and 0 not in self.target_grade:
            return False
        if dept is not None and dept not in self.target_dept and "common" not in self.target_dept:
            return False
        return True


class FormItem(BaseModel):
    """A single question on a correspondence form."""
    model_config = ConfigDict(frozen=True)

    id: str
    type: FormItemType
    label: str
    options: list[str] = Field(default_factory=list)
    required: bool = False


class Correspondence(BaseModel):
    """A notice or action form distributed to guardians."""

    id: str
    title: str
    doc_type: DocType = DocType.NOTICE
    deadline: datetime | None = None
    form_items: list[FormItem] = Field(default_factory=list)
    metadata: DocumentTargetMetadata | None = None
