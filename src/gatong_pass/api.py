"""
Caller-facing HTTP API

Exposes the core to the web front end:
- GET  /roster                       roster snapshot (guardian contacts withheld)
- GET/POST /verify                   guardian identity verification
- POST /documents                    register a correspondence
- GET  /documents                    filtered, sorted document listing
- GET  /documents/resolve            audience metadata for a title
- POST /documents/{id}/submissions   verified response submission
- PATCH /documents/{id}/submissions  staff correction (reason and editor recorded)
- DELETE /documents/{id}/submissions soft delete; the student counts as pending again
- GET  /documents/{id}/stats         dashboard statistics
- POST /aggregate                    statistics over caller-supplied data
"""

from datetime import datetime
from typing import Any, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gatong_pass import __version__
from gatong_pass.aggregation import aggregate
from gatong_pass.errors import (
    FetchError,
    IncompleteSubmissionError,
    TooManyAttemptsError,
    UnknownPresetError,
)
from gatong_pass.forms import build_form
from gatong_pass.models import (
    AggregateStats,
    DocumentTargetMetadata,
    FormItem,
    StudentRecord,
    StudentStatus,
    SubmissionRecord,
    VerificationAttempt,
    VerificationResult,
)
from gatong_pass.service import GatongService

logger = structlog.get_logger()


class CreateDocumentRequest(BaseModel):
    """Body for registering a correspondence."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    preset_id: Optional[str] = Field(default=None, alias="presetId")
    form_items: List[FormItem] = Field(default_factory=list, alias="formItems")
    deadline: Optional[datetime] = None
    with_signature: bool = Field(default=False, alias="withSignature")


class SubmissionRequest(BaseModel):
    """Body for a guardian submission."""

    attempt: VerificationAttempt
    answers: dict[str, Any] = Field(default_factory=dict)


class UpdateSubmissionRequest(BaseModel):
    """Body for a staff correction of a stored response."""
    model_config = ConfigDict(populate_by_name=True)

    grade: int
    class_num: int = Field(alias="class")
    number: int
    answers: dict[str, Any] = Field(default_factory=dict)
    reason: str = Field(min_length=1)
    editor: str = Field(min_length=1)


class AggregateRequest(BaseModel):
    """Body for ad-hoc aggregation."""

    population: List[StudentStatus] = Field(default_factory=list)
    submissions: List[SubmissionRecord] = Field(default_factory=list)


def public_student(student: StudentRecord) -> dict[str, Any]:
    """Student fields safe to return to callers (no guardian contacts)."""
    return student.model_dump(mode="json", exclude={"guardian_contacts"})


def verification_payload(result: VerificationResult) -> dict[str, Any]:
    return {
        "success": result.is_verified,
        "outcome": result.outcome.value,
        "matchedStudent": public_student(result.student) if result.student else None,
        "reason": result.reason,
    }


def create_app(service: GatongService) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: GatongService instance to serve

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="GatongPass",
        description="Roster, verification and submission analytics for school correspondence",
        version=__version__,
    )

    @app.exception_handler(FetchError)
    async def handle_fetch_error(request: Request, exc: FetchError) -> JSONResponse:
        return JSONResponse(
            status_code=502,
            content={"success": False, "error": "Failed to load student roster"},
        )

    @app.exception_handler(TooManyAttemptsError)
    async def handle_throttled(request: Request, exc: TooManyAttemptsError) -> JSONResponse:
        headers = {}
        if exc.retry_after is not None:
            headers["Retry-After"] = str(int(exc.retry_after) + 1)
        return JSONResponse(
            status_code=429,
            content={"success": False, "error": str(exc), "retryAfter": exc.retry_after},
            headers=headers,
        )

    @app.get("/roster")  # type: ignore[untyped-decorator]
    async def get_roster() -> dict[str, Any]:
        """Current roster without guardian contacts."""
        cached = await service.get_roster()
        return {
            "success": True,
            "count": len(cached.students),
            "students": [public_student(s) for s in cached.students],
            "fromCache": cached.from_cache,
            "stale": cached.stale,
            "unparseable": [u.model_dump(mode="json") for u in cached.result.unparseable],
            "droppedRows": cached.result.dropped_rows,
        }

    @app.post("/verify")  # type: ignore[untyped-decorator]
    async def verify_post(attempt: VerificationAttempt) -> dict[str, Any]:
        result = await service.verify(attempt)
        return verification_payload(result)

    @app.get("/verify")  # type: ignore[untyped-decorator]
    async def verify_get(
        grade: int = Query(...),
        class_num: int = Query(..., alias="class"),
        number: int = Query(...),
        name: str = Query(...),
        contact_suffix: str = Query(..., alias="contactSuffix"),
    ) -> dict[str, Any]:
        try:
            attempt = VerificationAttempt(
                claimed_grade=grade,
                claimed_class=class_num,
                claimed_num=number,
                claimed_name=name,
                contact_suffix=contact_suffix,
            )
        except ValidationError as e:
            raise HTTPException(
                status_code=422,
                detail=e.errors(include_url=False, include_context=False),
            )
        result = await service.verify(attempt)
        return verification_payload(result)

    @app.post("/documents", status_code=201)  # type: ignore[untyped-decorator]
    async def create_document(body: CreateDocumentRequest) -> dict[str, Any]:
        form_items = list(body.form_items)
        if body.preset_id:
            try:
                form_items = build_form(body.preset_id, with_signature=body.with_signature)
            except UnknownPresetError as e:
                raise HTTPException(status_code=400, detail=str(e))

        document = service.create_document(
            title=body.title,
            form_items=form_items,
            deadline=body.deadline,
        )
        return {"success": True, "document": document.model_dump(mode="json")}

    @app.get("/documents")  # type: ignore[untyped-decorator]
    async def list_documents(
        grade: Optional[int] = Query(None, description="Grade filter (1-3)"),
        dept: Optional[str] = Query(None, description="Department tag filter"),
    ) -> dict[str, Any]:
        documents = service.list_documents(grade=grade, dept=dept)
        return {
            "success": True,
            "count": len(documents),
            "documents": [doc.model_dump(mode="json") for doc in documents],
        }

    @app.get("/documents/resolve", response_model=DocumentTargetMetadata)  # type: ignore[untyped-decorator]
    async def resolve_document(
        title: str = Query(..., min_length=1, description="Document title or file name"),
    ) -> DocumentTargetMetadata:
        return service.resolve_document(title)

    @app.post("/documents/{document_id}/submissions")  # type: ignore[untyped-decorator]
    async def submit(document_id: str, body: SubmissionRequest) -> JSONResponse:
        try:
            result, record = await service.submit(document_id, body.attempt, body.answers)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
        except IncompleteSubmissionError as e:
            raise HTTPException(status_code=400, detail={"missing": e.missing})

        payload = verification_payload(result)
        if record is None:
            return JSONResponse(status_code=403, content=payload)

        logger.info("submission_accepted_via_api", doc_id=document_id, revision=record.revision)
        payload["revision"] = record.revision
        payload["submittedAt"] = record.submitted_at.isoformat()
        return JSONResponse(status_code=201, content=payload)

    @app.patch("/documents/{document_id}/submissions")  # type: ignore[untyped-decorator]
    async def update_submission(
        document_id: str, body: UpdateSubmissionRequest
    ) -> dict[str, Any]:
        try:
            record = service.update_submission(
                document_id,
                (body.grade, body.class_num, body.number),
                body.answers,
                reason=body.reason,
                editor=body.editor,
            )
        except KeyError:
            raise HTTPException(status_code=404, detail="Submission not found")
        except IncompleteSubmissionError as e:
            raise HTTPException(status_code=400, detail={"missing": e.missing})

        return {
            "success": True,
            "revision": record.revision,
            "editedBy": record.edited_by,
            "editReason": record.edit_reason,
        }

    @app.delete("/documents/{document_id}/submissions")  # type: ignore[untyped-decorator]
    async def delete_submission(
        document_id: str,
        grade: int = Query(...),
        class_num: int = Query(..., alias="class"),
        number: int = Query(...),
        editor: str = Query(..., min_length=1),
    ) -> dict[str, Any]:
        try:
            record = service.delete_submission(
                document_id, (grade, class_num, number), editor=editor
            )
        except KeyError:
            raise HTTPException(status_code=404, detail="Submission not found")

        return {"success": True, "deletedBy": record.deleted_by}

    @app.get("/documents/{document_id}/stats", response_model=AggregateStats)  # type: ignore[untyped-decorator]
    async def document_stats(
        document_id: str,
        grade: Optional[int] = Query(None),
        class_num: Optional[int] = Query(None, alias="class"),
    ) -> AggregateStats:
        if service.store.get_document(document_id) is None:
            raise HTTPException(status_code=404, detail=f"Document {document_id} not found")
        return await service.document_stats(document_id, grade=grade, class_num=class_num)

    @app.post("/aggregate", response_model=AggregateStats)  # type: ignore[untyped-decorator]
    async def aggregate_endpoint(body: AggregateRequest) -> AggregateStats:
        return aggregate(body.population, body.submissions)

    return app
