"""
Service Orchestrator

Wires the core components together for callers (HTTP API, CLI):

1. Roster Source -> Roster Cache   (network, TTL-bounded)
2. Identity Verifier               (pure, throttled per claimed identity)
3. Submission Store -> Aggregator  (pure statistics over roster + responses)
4. Document Catalog / Targeting    (independent of the roster)

Guardian contacts stay inside the service; nothing here logs them.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog

from gatong_pass.aggregation import aggregate, attach_submission_status, filter_population
from gatong_pass.config import AppConfig, load_config
from gatong_pass.errors import IncompleteSubmissionError
from gatong_pass.forms import label_answers, missing_required
from gatong_pass.models import (
    AggregateStats,
    Correspondence,
    DocumentTargetMetadata,
    FormItem,
    SubmissionRecord,
    VerificationAttempt,
    VerificationOutcome,
    VerificationResult,
)
from gatong_pass.rate_limiter import AttemptLimiter
from gatong_pass.roster.cache import CachedRoster, RosterCache, RosterFetcher
from gatong_pass.roster.source import RosterSource
from gatong_pass.submissions import SubmissionStore
from gatong_pass.targeting import DocumentCatalog, resolve_document_metadata
from gatong_pass.verification import IdentityVerifier

logger = structlog.get_logger()


class GatongService:
    """
    Entry point for every caller-facing operation.

    One instance is created per process and shared; the roster cache inside
    it is the only mutable shared state besides the submission store.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        source: RosterFetcher | None = None,
        store: SubmissionStore | None = None,
        limiter: AttemptLimiter | None = None,
        store_path: Path | None = None,
    ):
        """
        Initialize the service.

        Args:
            config: Application configuration
            source: Roster fetcher (defaults to the configured CSV export)
            store: Submission store (defaults to a new in-memory store)
            limiter: Verification attempt limiter (defaults from config)
            store_path: JSON file the store is saved to after every change
        """
        self.config = config or AppConfig()
        self.store_path = store_path

        self.source = source or RosterSource(
            url=self.config.roster.url,
            timeout_seconds=self.config.roster.timeout_seconds,
            exclude_inactive=self.config.roster.exclude_inactive,
        )
        self.cache = RosterCache(
            self.source,
            ttl_seconds=self.config.cache.ttl_seconds,
            serve_stale_on_error=self.config.cache.serve_stale_on_error,
        )
        self.verifier = IdentityVerifier()
        self.limiter = limiter or AttemptLimiter(
            max_attempts=self.config.verification.max_attempts,
            window_seconds=self.config.verification.window_seconds,
        )
        self.store = store or SubmissionStore()
        self.catalog = DocumentCatalog(
            self.config.documents.directory,
            extensions=self.config.documents.extensions,
        )

        logger.info(
            "service_initialized",
            cache_ttl_seconds=self.cache.ttl_seconds,
            throttling=self.limiter.enabled,
        )

    # -------------------------------------------------------------------------
    # Roster
    # -------------------------------------------------------------------------

    async def get_roster(self) -> CachedRoster:
        """Current roster snapshot (see RosterCache for failure policy)."""
        return await self.cache.get_roster()

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------

    async def verify(self, attempt: VerificationAttempt) -> VerificationResult:
        """
        Verify a claimed identity against the current roster.

        Raises:
            TooManyAttemptsError: If the claimed identity is locked out
            FetchError: If the roster is unavailable
        """
        cached = await self.cache.get_roster()

        # Check, verify and record run without yielding to the event loop
        key = attempt.identity_key
        self.limiter.check(key)
        result = self.verifier.verify(attempt, cached.students)

        if result.outcome == VerificationOutcome.CONTACT_MISMATCH:
            remaining = self.limiter.record_failure(key)
            logger.info("verification_attempts_remaining", remaining=remaining)
        elif result.outcome == VerificationOutcome.VERIFIED:
            self.limiter.reset(key)

        return result

    # -------------------------------------------------------------------------
    # Correspondences and submissions
    # -------------------------------------------------------------------------

    def _persist(self) -> None:
        if self.store_path is not None:
            self.store.save(self.store_path)

    def _get_document(self, document_id: str) -> Correspondence:
        document = self.store.get_document(document_id)
        if document is None:
            raise KeyError(document_id)
        return document

    def _prepare_answers(
        self, document: Correspondence, answers: dict[str, Any]
    ) -> dict[str, Any]:
        """Key answers by item label and reject missing required items."""
        labelled = label_answers(document.form_items, answers)
        missing = missing_required(document.form_items, labelled)
        if missing:
            raise IncompleteSubmissionError(
                f"Missing required answers: {', '.join(missing)}", missing=missing
            )
        return labelled

    def create_document(
        self,
        title: str,
        form_items: list[FormItem] | None = None,
        deadline: datetime | None = None,
        document_id: str | None = None,
    ) -> Correspondence:
        """Register a correspondence, deriving its type and audience from the title."""
        metadata = resolve_document_metadata(title)
        document = Correspondence(
            id=document_id or str(uuid.uuid4()),
            title=metadata.title,
            doc_type=metadata.doc_type,
            deadline=deadline,
            form_items=form_items or [],
            metadata=metadata,
        )
        self.store.add_document(document)
        self._persist()
        return document

    async def submit(
        self,
        document_id: str,
        attempt: VerificationAttempt,
        answers: dict[str, Any],
    ) -> tuple[VerificationResult, SubmissionRecord | None]:
        """
        Verify the submitter, validate required answers, then store.

        Answers may be keyed by item id or label; they are stored by label.

        Returns:
            The verification result and the stored record (None unless verified)

        Raises:
            KeyError: If the correspondence does not exist
            IncompleteSubmissionError: If required items are unanswered
            TooManyAttemptsError: If the claimed identity is locked out
            FetchError: If the roster is unavailable
        """
        document = self._get_document(document_id)
        labelled = self._prepare_answers(document, answers)

        result = await self.verify(attempt)
        student = result.student
        if student is None or not result.is_verified:
            return result, None

        record = self.store.submit(document_id, student, labelled)
        self._persist()
        return result, record

    def update_submission(
        self,
        document_id: str,
        student_key: tuple[int, int, int],
        answers: dict[str, Any],
        reason: str,
        editor: str,
    ) -> SubmissionRecord:
        """
        Staff correction of a stored response.

        Raises:
            KeyError: If the correspondence or the submission does not exist
            IncompleteSubmissionError: If required items are unanswered
        """
        document = self._get_document(document_id)
        labelled = self._prepare_answers(document, answers)

        record = self.store.update(document_id, student_key, labelled, reason=reason, editor=editor)
        self._persist()
        return record

    def delete_submission(
        self,
        document_id: str,
        student_key: tuple[int, int, int],
        editor: str,
    ) -> SubmissionRecord:
        """
        Soft-delete a response so the student counts as pending again.

        Raises:
            KeyError: If the correspondence or the submission does not exist
        """
        self._get_document(document_id)
        record = self.store.delete(document_id, student_key, editor=editor)
        self._persist()
        return record

    async def document_stats(
        self,
        document_id: str,
        grade: int | None = None,
        class_num: int | None = None,
    ) -> AggregateStats:
        """
        Dashboard statistics for one correspondence.

        The population is the roster (optionally sliced to a grade/class)
        marked with who has submitted.
        """
        cached = await self.cache.get_roster()
        submissions = self.store.for_document(document_id)

        population = filter_population(
            attach_submission_status(cached.students, submissions),
            grade=grade,
            class_num=class_num,
        )
        in_slice = {member.student.identity_key for member in population}
        sliced = [s for s in submissions if s.student.identity_key in in_slice]

        stats = aggregate(population, sliced)
        logger.info(
            "document_stats_computed",
            doc_id=document_id,
            total=stats.total,
            completion_rate=stats.completion_rate,
        )
        return stats

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    def list_documents(
        self,
        grade: int | None = None,
        dept: str | None = None,
    ) -> list[DocumentTargetMetadata]:
        return self.catalog.list_documents(grade=grade, dept=dept)

    def resolve_document(self, title: str) -> DocumentTargetMetadata:
        return resolve_document_metadata(title)


def create_service(
    config_path: str | None = None,
    store_path: str | None = None,
) -> GatongService:
    """
    Create a configured service.

    Args:
        config_path: Path to settings.yaml
        store_path: Submission store JSON file, loaded when present and
            saved after every change

    Returns:
        Configured GatongService
    """
    config = load_config(Path(config_path) if config_path else None)
    path = Path(store_path) if store_path else None
    store = SubmissionStore.load(path) if path is not None and path.exists() else None
    return GatongService(config=config, store=store, store_path=path)
