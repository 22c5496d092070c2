"""
Tests for the service orchestrator.

Tests cover:
- Attempt limiting under concurrent verification
- Answers keyed by form item id
- Store persistence after each change
- Staff corrections and soft delete flowing into statistics
"""

import asyncio
from pathlib import Path

import pytest

from gatong_pass.config import AppConfig
from gatong_pass.errors import TooManyAttemptsError
from gatong_pass.forms import build_form
from gatong_pass.models import (
    RosterParseResult,
    VerificationAttempt,
    VerificationOutcome,
)
from gatong_pass.rate_limiter import AttemptLimiter
from gatong_pass.service import GatongService, create_service
from gatong_pass.submissions import SubmissionStore

from conftest import FakeRosterSource

HONG_KEY = (1, 2, 5)


def attempt(suffix: str = "5678") -> VerificationAttempt:
    return VerificationAttempt(
        claimed_grade=1,
        claimed_class=2,
        claimed_num=5,
        claimed_name="홍길동",
        contact_suffix=suffix,
    )


class SlowRosterSource(FakeRosterSource):
    """Fake source that yields to the event loop while fetching."""

    async def fetch_roster(self) -> RosterParseResult:
        await asyncio.sleep(0.05)
        return await super().fetch_roster()


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    config = AppConfig()
    config.documents.directory = tmp_path / "documents"
    return config


@pytest.fixture
def service(config: AppConfig, fake_source: FakeRosterSource) -> GatongService:
    return GatongService(config=config, source=fake_source)


@pytest.fixture
def document_id(service: GatongService) -> str:
    document = service.create_document(
        "1학년 체험학습 참가 신청서", form_items=build_form("participation")
    )
    return document.id


# ============================================================================
# Verification
# ============================================================================


class TestConcurrentVerification:
    """Tests for the attempt limit when guesses arrive together."""

    def test_burst_during_roster_fetch_is_capped(
        self, config: AppConfig, roster_result: RosterParseResult
    ) -> None:
        source = SlowRosterSource(roster_result)
        limiter = AttemptLimiter(max_attempts=5, window_seconds=600)
        service = GatongService(config=config, source=source, limiter=limiter)
        guesses = [attempt(suffix=f"{n:04d}") for n in range(50)]

        async def burst() -> list:
            return await asyncio.gather(
                *(service.verify(guess) for guess in guesses), return_exceptions=True
            )

        results = asyncio.run(burst())

        evaluated = [r for r in results if not isinstance(r, BaseException)]
        throttled = [r for r in results if isinstance(r, TooManyAttemptsError)]
        assert len(evaluated) == 5
        assert all(r.outcome == VerificationOutcome.CONTACT_MISMATCH for r in evaluated)
        assert len(throttled) == 45
        assert source.calls == 1
        assert limiter.get_status(attempt().identity_key)["failures"] == 5

    def test_locked_identity_rejects_correct_suffix(
        self, config: AppConfig, fake_source: FakeRosterSource
    ) -> None:
        limiter = AttemptLimiter(max_attempts=2, window_seconds=600)
        service = GatongService(config=config, source=fake_source, limiter=limiter)

        for _ in range(2):
            asyncio.run(service.verify(attempt(suffix="0000")))

        with pytest.raises(TooManyAttemptsError):
            asyncio.run(service.verify(attempt()))


# ============================================================================
# Submissions
# ============================================================================


class TestSubmit:
    """Tests for submissions through the service."""

    def test_id_keyed_answers_are_stored_by_label(
        self, service: GatongService, document_id: str
    ) -> None:
        items = service.store.get_document(document_id).form_items  # type: ignore[union-attr]
        answers = {items[0].id: "불참", items[1].id: "가족 행사"}

        _, record = asyncio.run(service.submit(document_id, attempt(), answers))

        assert record is not None
        assert record.answers == {"참가 여부": "불참", "불참 사유 (불참 시 작성)": "가족 행사"}

    def test_stats_use_question_labels(self, service: GatongService, document_id: str) -> None:
        items = service.store.get_document(document_id).form_items  # type: ignore[union-attr]
        asyncio.run(service.submit(document_id, attempt(), {items[0].id: "참가"}))

        stats = asyncio.run(service.document_stats(document_id))

        assert stats.per_question == {"참가 여부": {"참가": 1}}
        assert all(item.id not in stats.per_question for item in items)

    def test_unverified_submission_is_not_stored(
        self, service: GatongService, document_id: str
    ) -> None:
        result, record = asyncio.run(
            service.submit(document_id, attempt(suffix="0000"), {"참가 여부": "참가"})
        )

        assert result.outcome == VerificationOutcome.CONTACT_MISMATCH
        assert record is None
        assert service.store.for_document(document_id) == []


class TestStaffEdits:
    """Tests for corrections and soft delete through the service."""

    def test_deleted_submission_stops_counting(
        self, service: GatongService, document_id: str
    ) -> None:
        asyncio.run(service.submit(document_id, attempt(), {"참가 여부": "참가"}))
        before = asyncio.run(service.document_stats(document_id))

        service.delete_submission(document_id, HONG_KEY, editor="담임교사")
        after = asyncio.run(service.document_stats(document_id))

        assert before.submitted_count == 1
        assert after.submitted_count == 0
        assert after.pending_count == after.total
        assert after.per_question == {}

    def test_update_relabels_and_records_editor(
        self, service: GatongService, document_id: str
    ) -> None:
        items = service.store.get_document(document_id).form_items  # type: ignore[union-attr]
        asyncio.run(service.submit(document_id, attempt(), {"참가 여부": "참가"}))

        record = service.update_submission(
            document_id, HONG_KEY, {items[0].id: "불참"},
            reason="보호자 전화 요청", editor="담임교사",
        )

        assert record.answers == {"참가 여부": "불참"}
        assert record.edited_by == "담임교사"
        assert record.revision == 1
        stats = asyncio.run(service.document_stats(document_id))
        assert stats.per_question == {"참가 여부": {"불참": 1}}

    def test_unknown_document_raises(self, service: GatongService) -> None:
        with pytest.raises(KeyError):
            service.delete_submission("missing", HONG_KEY, editor="담임교사")


# ============================================================================
# Persistence
# ============================================================================


class TestPersistence:
    """Tests for saving the store after every change."""

    def test_submission_is_saved(
        self, config: AppConfig, fake_source: FakeRosterSource, tmp_path: Path
    ) -> None:
        path = tmp_path / "store.json"
        service = GatongService(config=config, source=fake_source, store_path=path)
        document = service.create_document("체험학습 참가 신청서", form_items=build_form("participation"))
        assert path.exists()

        asyncio.run(service.submit(document.id, attempt(), {"참가 여부": "참가"}))

        [record] = SubmissionStore.load(path).for_document(document.id)
        assert record.answers == {"참가 여부": "참가"}

    def test_delete_is_saved(
        self, config: AppConfig, fake_source: FakeRosterSource, tmp_path: Path
    ) -> None:
        path = tmp_path / "store.json"
        service = GatongService(config=config, source=fake_source, store_path=path)
        document = service.create_document("체험학습 참가 신청서")
        asyncio.run(service.submit(document.id, attempt(), {}))

        service.delete_submission(document.id, HONG_KEY, editor="담임교사")

        assert SubmissionStore.load(path).for_document(document.id) == []

    def test_without_path_nothing_is_written(
        self, service: GatongService, document_id: str, tmp_path: Path
    ) -> None:
        asyncio.run(service.submit(document_id, attempt(), {"참가 여부": "참가"}))
        assert list(tmp_path.glob("*.json")) == []

    def test_create_service_reloads_saved_store(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        service = create_service(store_path=str(path))
        document = service.create_document("체험학습 참가 신청서")

        reloaded = create_service(store_path=str(path))

        assert reloaded.store_path == path
        assert reloaded.store.get_document(document.id) == document
