"""
Correspondence and Submission Store

Keeps correspondences and the guardian responses collected for them.

Key features:
- In-memory storage keyed by document and student (grade, class, number)
- Re-submission replaces the previous response and bumps its revision
- Staff corrections record who edited and why
- Soft delete keeps the record but drops it from listings and statistics
- JSON export/import so dashboards can be computed offline

The real document and signature stores belong to the hosting application;
this store gives the core something to aggregate over.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import structlog

from gatong_pass.models import Correspondence, StudentRecord, SubmissionRecord

logger = structlog.get_logger()

SubmissionKey = tuple[str, int, int, int]
StudentKey = tuple[int, int, int]


class SubmissionStore:
    """
    Holds correspondences and their submissions.

    Uses in-memory storage; ``save``/``load`` round-trip it through JSON.
    """

    def __init__(self) -> None:
        self._documents: dict[str, Correspondence] = {}
        self._submissions: dict[SubmissionKey, SubmissionRecord] = {}

        logger.info("submission_store_initialized")

    # -------------------------------------------------------------------------
    # Correspondences
    # -------------------------------------------------------------------------

    def add_document(self, document: Correspondence) -> None:
        """Register or replace a correspondence."""
        self._documents[document.id] = document
        logger.info("document_registered", doc_id=document.id, doc_type=document.doc_type.value)

    def get_document(self, document_id: str) -> Optional[Correspondence]:
        return self._documents.get(document_id)

    def list_document_ids(self) -> list[str]:
        return sorted(self._documents)

    # -------------------------------------------------------------------------
    # Submissions
    # -------------------------------------------------------------------------

    def submit(
        self,
        document_id: str,
        student: StudentRecord,
        answers: dict[str, Any],
        submitted_at: Optional[datetime] = None,
    ) -> SubmissionRecord:
        """
        Store a verified student's response.

        A second submission for the same student replaces the first and
        increments its revision.

        Args:
            document_id: Correspondence being answered
            student: Verified roster record
            answers: Question label -> answer value
            submitted_at: Defaults to now

        Returns:
            The stored SubmissionRecord
        """
        key: SubmissionKey = (document_id, *student.identity_key)
        previous = self._submissions.get(key)
        revision = previous.revision + 1 if previous else 0

        record = SubmissionRecord(
            student=student,
            answers=dict(answers),
            submitted_at=submitted_at or datetime.now(),
            revision=revision,
        )
        self._submissions[key] = record

        logger.info(
            "submission_stored",
            doc_id=document_id,
            student_id=student.id,
            revision=revision,
        )
        return record

    def get(self, document_id: str, student_key: StudentKey) -> Optional[SubmissionRecord]:
        """The live (not deleted) submission for a student, if any."""
        record = self._submissions.get((document_id, *student_key))
        if record is None or record.deleted:
            return None
        return record

    def update(
        self,
        document_id: str,
        student_key: StudentKey,
        answers: dict[str, Any],
        reason: str,
        editor: str,
        edited_at: Optional[datetime] = None,
    ) -> SubmissionRecord:
        """
        Correct a stored response on a guardian's behalf.

        The original submission time is kept; the revision is bumped and the
        editor and reason are recorded.

        Raises:
            KeyError: If the student has no live submission for the document
        """
        previous = self.get(document_id, student_key)
        if previous is None:
            raise KeyError((document_id, *student_key))

        record = previous.model_copy(
            update={
                "answers": dict(answers),
                "revision": previous.revision + 1,
                "edited_by": editor,
                "edit_reason": reason,
                "edited_at": edited_at or datetime.now(),
            }
        )
        self._submissions[(document_id, *student_key)] = record

        logger.info(
            "submission_edited",
            doc_id=document_id,
            student_id=record.student.id,
            revision=record.revision,
            editor=editor,
        )
        return record

    def delete(self, document_id: str, student_key: StudentKey, editor: str) -> SubmissionRecord:
        """
        Soft-delete a response so it no longer counts as submitted.

        Raises:
            KeyError: If the student has no live submission for the document
        """
        previous = self.get(document_id, student_key)
        if previous is None:
            raise KeyError((document_id, *student_key))

        record = previous.model_copy(update={"deleted": True, "deleted_by": editor})
        self._submissions[(document_id, *student_key)] = record

        logger.info(
            "submission_deleted",
            doc_id=document_id,
            student_id=record.student.id,
            editor=editor,
        )
        return record

    def for_document(
        self, document_id: str, include_deleted: bool = False
    ) -> list[SubmissionRecord]:
        """Submissions for a correspondence in submission order, live ones by default."""
        records = [
            record for key, record in self._submissions.items()
            if key[0] == document_id and (include_deleted or not record.deleted)
        ]
        records.sort(key=lambda r: r.submitted_at)
        return records

    def get_statistics(self) -> dict[str, int]:
        """
        Get store statistics.

        Returns:
            Dictionary with document, live submission, re-submission and
            deleted counts
        """
        live = [r for r in self._submissions.values() if not r.deleted]
        return {
            "documents": len(self._documents),
            "submissions": len(live),
            "resubmissions": sum(1 for r in live if r.revision > 0),
            "deleted": len(self._submissions) - len(live),
        }

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def export_json(self) -> str:
        """Serialize documents and submissions to a JSON string."""
        data = {
            "documents": [doc.model_dump(mode="json") for doc in self._documents.values()],
            "submissions": [
                {"document_id": key[0], **record.model_dump(mode="json")}
                for key, record in self._submissions.items()
            ],
        }
        return json.dumps(data, ensure_ascii=False, indent=2)

    def save(self, path: Path) -> None:
        path.write_text(self.export_json(), encoding="utf-8")
        logger.info("submission_store_saved", path=str(path))

    @classmethod
    def load(cls, path: Path) -> "SubmissionStore":
        """Rebuild a store from a file written by ``save``."""
        data = json.loads(path.read_text(encoding="utf-8"))
        store = cls()

        for doc_data in data.get("documents", []):
            document = Correspondence.model_validate(doc_data)
            store._documents[document.id] = document

        for sub_data in data.get("submissions", []):
            document_id = sub_data.pop("document_id")
            record = SubmissionRecord.model_validate(sub_data)
            store._submissions[(document_id, *record.student.identity_key)] = record

        logger.info(
            "submission_store_loaded",
            path=str(path),
            documents=len(store._documents),
            submissions=len(store._submissions),
        )
        return store
