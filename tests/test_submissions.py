"""
Tests for the correspondence and submission store.

Tests cover:
- Document registration and lookup
- Re-submission replacing earlier answers
- Staff corrections and soft delete
- JSON persistence
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import List

import pytest

from gatong_pass.forms import build_form
from gatong_pass.models import Correspondence, DocType, StudentRecord
from gatong_pass.submissions import SubmissionStore
from gatong_pass.targeting import resolve_document_metadata


@pytest.fixture
def store() -> SubmissionStore:
    return SubmissionStore()


@pytest.fixture
def document() -> Correspondence:
    title = "1학년 체험학습 참가 신청서"
    return Correspondence(
        id="doc-1",
        title=title,
        doc_type=DocType.ACTION,
        deadline=datetime(2025, 5, 10, 18, 0),
        form_items=build_form("participation"),
        metadata=resolve_document_metadata(title),
    )


class TestDocuments:
    """Tests for correspondence registration."""

    def test_add_and_get(self, store: SubmissionStore, document: Correspondence) -> None:
        store.add_document(document)

        assert store.get_document("doc-1") == document
        assert store.get_document("missing") is None
        assert store.list_document_ids() == ["doc-1"]

    def test_add_replaces_same_id(self, store: SubmissionStore, document: Correspondence) -> None:
        store.add_document(document)
        store.add_document(document.model_copy(update={"title": "변경됨"}))

        assert store.get_document("doc-1").title == "변경됨"  # type: ignore[union-attr]
        assert store.get_statistics()["documents"] == 1


class TestSubmit:
    """Tests for storing responses."""

    def test_first_submission_has_revision_zero(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime
    ) -> None:
        record = store.submit("doc-1", hong, {"참가 여부": "참가"}, submitted_at=base_time)

        assert record.revision == 0
        assert record.submitted_at == base_time
        assert store.for_document("doc-1") == [record]

    def test_resubmission_replaces_and_bumps_revision(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime
    ) -> None:
        store.submit("doc-1", hong, {"참가 여부": "참가"}, submitted_at=base_time)
        second = store.submit(
            "doc-1", hong, {"참가 여부": "불참"}, submitted_at=base_time + timedelta(minutes=5)
        )

        assert second.revision == 1
        assert store.for_document("doc-1") == [second]
        assert store.get_statistics() == {
            "documents": 0, "submissions": 1, "resubmissions": 1, "deleted": 0
        }

    def test_submissions_are_scoped_per_document(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime
    ) -> None:
        store.submit("doc-1", hong, {"q": "a"}, submitted_at=base_time)
        store.submit("doc-2", hong, {"q": "b"}, submitted_at=base_time)

        assert [r.answers["q"] for r in store.for_document("doc-1")] == ["a"]
        assert [r.answers["q"] for r in store.for_document("doc-2")] == ["b"]
        assert store.for_document("doc-3") == []

    def test_for_document_orders_by_submission_time(
        self, store: SubmissionStore, sample_roster: List[StudentRecord], base_time: datetime
    ) -> None:
        kim, lee, hong, _ = sample_roster
        store.submit("doc-1", hong, {}, submitted_at=base_time + timedelta(hours=2))
        store.submit("doc-1", kim, {}, submitted_at=base_time)
        store.submit("doc-1", lee, {}, submitted_at=base_time + timedelta(hours=1))

        names = [r.student.name for r in store.for_document("doc-1")]
        assert names == ["김영희", "이서연", "홍길동"]

    def test_answers_are_copied(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime
    ) -> None:
        answers = {"q": "a"}
        record = store.submit("doc-1", hong, answers, submitted_at=base_time)
        answers["q"] = "changed"

        assert record.answers == {"q": "a"}


class TestUpdate:
    """Tests for staff corrections."""

    def test_update_records_editor_and_reason(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime
    ) -> None:
        store.submit("doc-1", hong, {"참가 여부": "참가"}, submitted_at=base_time)
        edited_at = base_time + timedelta(days=1)

        record = store.update(
            "doc-1", hong.identity_key, {"참가 여부": "불참"},
            reason="보호자 전화 요청", editor="담임교사", edited_at=edited_at,
        )

        assert record.answers == {"참가 여부": "불참"}
        assert record.revision == 1
        assert record.edited_by == "담임교사"
        assert record.edit_reason == "보호자 전화 요청"
        assert record.edited_at == edited_at
        assert record.submitted_at == base_time
        assert store.get("doc-1", hong.identity_key) == record

    def test_update_without_submission_raises(
        self, store: SubmissionStore, hong: StudentRecord
    ) -> None:
        with pytest.raises(KeyError):
            store.update("doc-1", hong.identity_key, {}, reason="r", editor="e")


class TestDelete:
    """Tests for soft delete."""

    def test_deleted_submission_leaves_listing(
        self, store: SubmissionStore, sample_roster: List[StudentRecord], base_time: datetime
    ) -> None:
        kim, _, hong, _ = sample_roster
        store.submit("doc-1", kim, {}, submitted_at=base_time)
        store.submit("doc-1", hong, {}, submitted_at=base_time)

        deleted = store.delete("doc-1", hong.identity_key, editor="담임교사")

        assert deleted.deleted
        assert deleted.deleted_by == "담임교사"
        assert [r.student.name for r in store.for_document("doc-1")] == ["김영희"]
        assert len(store.for_document("doc-1", include_deleted=True)) == 2
        assert store.get("doc-1", hong.identity_key) is None
        assert store.get_statistics() == {
            "documents": 0, "submissions": 1, "resubmissions": 0, "deleted": 1
        }

    def test_delete_twice_raises(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime
    ) -> None:
        store.submit("doc-1", hong, {}, submitted_at=base_time)
        store.delete("doc-1", hong.identity_key, editor="담임교사")

        with pytest.raises(KeyError):
            store.delete("doc-1", hong.identity_key, editor="담임교사")
        with pytest.raises(KeyError):
            store.update("doc-1", hong.identity_key, {}, reason="r", editor="e")

    def test_resubmission_after_delete_is_live(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime
    ) -> None:
        store.submit("doc-1", hong, {"q": "a"}, submitted_at=base_time)
        store.delete("doc-1", hong.identity_key, editor="담임교사")

        record = store.submit("doc-1", hong, {"q": "b"}, submitted_at=base_time)

        assert not record.deleted
        assert record.revision == 1
        assert store.for_document("doc-1") == [record]

    def test_deleted_flag_survives_save_and_load(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime, tmp_path: Path
    ) -> None:
        store.submit("doc-1", hong, {}, submitted_at=base_time)
        store.delete("doc-1", hong.identity_key, editor="담임교사")
        path = tmp_path / "store.json"
        store.save(path)

        loaded = SubmissionStore.load(path)

        assert loaded.for_document("doc-1") == []
        [record] = loaded.for_document("doc-1", include_deleted=True)
        assert record.deleted_by == "담임교사"


class TestPersistence:
    """Tests for JSON save/load."""

    def test_save_and_load(
        self,
        store: SubmissionStore,
        document: Correspondence,
        hong: StudentRecord,
        base_time: datetime,
        tmp_path: Path,
    ) -> None:
        store.add_document(document)
        store.submit("doc-1", hong, {"참가 여부": "참가"}, submitted_at=base_time)
        store.submit("doc-1", hong, {"참가 여부": "불참"}, submitted_at=base_time)

        path = tmp_path / "store.json"
        store.save(path)
        loaded = SubmissionStore.load(path)

        assert loaded.get_document("doc-1") == document
        [record] = loaded.for_document("doc-1")
        assert record.answers == {"참가 여부": "불참"}
        assert record.revision == 1
        assert record.student == hong

    def test_export_keeps_korean_text_readable(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime
    ) -> None:
        store.submit("doc-1", hong, {"참가 여부": "참가"}, submitted_at=base_time)
        assert "홍길동" in store.export_json()

    def test_resubmission_after_load_continues_revisions(
        self, store: SubmissionStore, hong: StudentRecord, base_time: datetime, tmp_path: Path
    ) -> None:
        store.submit("doc-1", hong, {}, submitted_at=base_time)
        path = tmp_path / "store.json"
        store.save(path)

        loaded = SubmissionStore.load(path)
        assert loaded.submit("doc-1", hong, {}).revision == 1
