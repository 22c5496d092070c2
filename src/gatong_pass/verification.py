"""
Guardian Identity Verification

Confirms that an unauthenticated submitter is acting for a real student.
School rosters are not secret, so grade/class/number/name alone is not
enough: the submitter must also supply the last four digits of either
guardian's phone number as recorded in the roster.

This module is pure - it never touches the network or shared state.
Attempt throttling lives in gatong_pass.rate_limiter and is applied by
the service layer.
"""

import re
import unicodedata
from typing import Optional, Sequence

import structlog

from gatong_pass.models import (
    StudentRecord,
    VerificationAttempt,
    VerificationOutcome,
    VerificationResult,
)

logger = structlog.get_logger()

NON_DIGIT = re.compile(r"[^0-9]")
SUFFIX_LENGTH = 4


def contact_suffix(contact: str) -> str:
    """Last four ASCII digits of a phone number, ignoring punctuation.

    Full-width digits are folded to ASCII first; other digit scripts are
    dropped along with punctuation.

    >>> contact_suffix("010-1234-5678")
    '5678'
    """
    return NON_DIGIT.sub("", unicodedata.normalize("NFKC", contact))[-SUFFIX_LENGTH:]


def find_student(
    attempt: VerificationAttempt, roster: Sequence[StudentRecord]
) -> Optional[StudentRecord]:
    """Return the first roster record matching all four identity fields."""
    for student in roster:
        if (
            student.grade == attempt.claimed_grade
            and student.class_num == attempt.claimed_class
            and student.student_num == attempt.claimed_num
            and student.name == attempt.claimed_name
        ):
            return student
    return None


class IdentityVerifier:
    """Three-factor check of a claimed student identity.

    1. Exact match on grade, class, number and name (first match wins)
    2. The claimed suffix equals the last four digits of either guardian
       contact on the matched record
    """

    def verify(
        self, attempt: VerificationAttempt, roster: Sequence[StudentRecord]
    ) -> VerificationResult:
        """
        Verify an attempt against a roster.

        Args:
            attempt: Identity and contact suffix claimed by the submitter
            roster: Current roster records

        Returns:
            VerificationResult with exactly one outcome
        """
        student = find_student(attempt, roster)
        if student is None:
            logger.info(
                "verification_failed",
                outcome=VerificationOutcome.NOT_FOUND.value,
                grade=attempt.claimed_grade,
                class_num=attempt.claimed_class,
            )
            return VerificationResult(
                outcome=VerificationOutcome.NOT_FOUND,
                reason="No student matches the given grade, class, number and name",
            )

        suffixes = {
            contact_suffix(c) for c in student.guardian_contacts.present()
        }
        suffixes.discard("")

        if attempt.contact_suffix in suffixes:
            logger.info("verification_succeeded", student_id=student.id)
            return VerificationResult(
                outcome=VerificationOutcome.VERIFIED,
                student=student,
            )

        logger.info(
            "verification_failed",
            outcome=VerificationOutcome.CONTACT_MISMATCH.value,
            student_id=student.id,
        )
        return VerificationResult(
            outcome=VerificationOutcome.CONTACT_MISMATCH,
            reason="Guardian contact does not match our records",
        )
