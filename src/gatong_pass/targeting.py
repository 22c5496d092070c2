"""
Document Targeting

Derives audience metadata (grades, departments, notice vs action) from a
correspondence's file name or title, and applies the listing contracts:
- A document is visible for grade g if it targets g or all grades (0)
- A document is visible for department d if it targets d or "common"
- Action documents sort before notices, then by file name
"""

from __future__ import annotations

import re
import unicodedata
from pathlib import Path
from typing import Iterable, Sequence

import structlog

from gatong_pass.models import DocType, DocumentTargetMetadata

logger = structlog.get_logger()


ALL_GRADES = 0
COMMON_DEPT = "common"

# (keywords, grade) - any keyword present adds the grade
GRADE_KEYWORDS: list[tuple[tuple[str, ...], int]] = [
    (("1학년", "신입생"), 1),
    (("2학년",), 2),
    (("3학년",), 3),
]

# (keywords, department tag) - tags are not mutually exclusive
DEPT_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("반도체", "기술사관"), "semicon"),
    (("IoT", "전기"), "iot"),
    (("게임", "콘텐츠"), "game"),
    (("도제",), "doje"),
]

# Titles containing any of these require a guardian response
ACTION_KEYWORDS: tuple[str, ...] = ("신청", "동의", "조사", "참가", "수강", "희망", "가입", "서약")

DOCUMENT_EXTENSIONS: tuple[str, ...] = ("hwp", "hwpx", "pdf", "jpg", "png")

YEAR_PATTERN = re.compile(r"20\d\d")
EXTENSION_PATTERN = re.compile(r"\.(hwp|hwpx|pdf|jpg|png)$", re.IGNORECASE)


def resolve_document_metadata(raw_title: str) -> DocumentTargetMetadata:
    """
    Derive audience metadata from a document name.

    >>> meta = resolve_document_metadata("2024학년도 1학년 반도체기술사관 체험학습 참가 신청서")
    >>> sorted(meta.target_grade), sorted(meta.target_dept), meta.doc_type.value
    ([1], ['semicon'], 'action')
    """
    name = unicodedata.normalize("NFC", raw_title)

    grades = {grade for keywords, grade in GRADE_KEYWORDS if any(k in name for k in keywords)}
    depts = {dept for keywords, dept in DEPT_KEYWORDS if any(k in name for k in keywords)}
    is_action = any(keyword in name for keyword in ACTION_KEYWORDS)

    year_match = YEAR_PATTERN.search(name)

    return DocumentTargetMetadata(
        file_name=name,
        title=EXTENSION_PATTERN.sub("", name),
        year=year_match.group(0) if year_match else None,
        target_grade=frozenset(grades or {ALL_GRADES}),
        target_dept=frozenset(depts or {COMMON_DEPT}),
        doc_type=DocType.ACTION if is_action else DocType.NOTICE,
        path=f"/documents/{name}",
    )


def filter_documents(
    documents: Iterable[DocumentTargetMetadata],
    grade: int | None = None,
    dept: str | None = None,
) -> list[DocumentTargetMetadata]:
    """Keep documents visible under the given grade and department filters."""
    return [doc for doc in documents if doc.is_visible_to(grade=grade, dept=dept)]


def sort_documents(
    documents: Iterable[DocumentTargetMetadata],
) -> list[DocumentTargetMetadata]:
    """Action documents first, then ascending by raw file name."""
    return sorted(
        documents,
        key=lambda doc: (doc.doc_type != DocType.ACTION, doc.file_name),
    )


class DocumentCatalog:
    """
    Lists correspondence files from a directory with derived metadata.

    Only files with a known document extension are included. A missing
    directory yields an empty listing.
    """

    def __init__(
        self,
        directory: Path,
        extensions: Sequence[str] = DOCUMENT_EXTENSIONS,
    ) -> None:
        self.directory = directory
        self.extensions = {ext.lower().lstrip(".") for ext in extensions}

    def scan(self) -> list[DocumentTargetMetadata]:
        """Resolve metadata for every document file in the directory."""
        if not self.directory.is_dir():
            logger.warning("documents_directory_missing", path=str(self.directory))
            return []

        documents = [
            resolve_document_metadata(path.name)
            for path in self.directory.iterdir()
            if path.is_file() and path.suffix.lower().lstrip(".") in self.extensions
        ]
        logger.debug("documents_scanned", count=len(documents))
        return documents

    def list_documents(
        self,
        grade: int | None = None,
        dept: str | None = None,
    ) -> list[DocumentTargetMetadata]:
        """Filtered and sorted listing."""
        return sort_documents(filter_documents(self.scan(), grade=grade, dept=dept))
