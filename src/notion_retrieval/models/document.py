"""Domain models for the Notion document cache."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class DocumentKind(StrEnum):
    PAGE = "page"
    COLLECTION = "collection"


class CacheState(StrEnum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class LoadOutcome(StrEnum):
    """Result of an initialize/refresh request."""

    COMPLETED = "completed"
    NOT_STARTED = "not_started"
    FAILED = "failed"


class DocumentType(StrEnum):
    POLICY = "POLICY"
    PROCEDURE = "PROCEDURE"
    CONTACT_LIST = "CONTACT_LIST"
    FORM = "FORM"
    GENERAL_INFO = "GENERAL_INFO"


def page_url(document_id: str) -> str:
    return f"https://notion.so/{document_id.replace('-', '')}"


@dataclass(frozen=True)
class Document:
    """A retrievable unit: a page (or collection item) or a collection."""

    id: str
    title: str
    kind: DocumentKind
    body: str = ""
    parent_id: str | None = None
    last_edited: str | None = None

    @property
    def url(self) -> str:
        return page_url(self.id)


@dataclass(frozen=True)
class ContentNode:
    """A single node of a document's content tree."""

    id: str
    kind: str
    text: str
    has_children: bool = False
    children: tuple["ContentNode", ...] = ()


@dataclass(frozen=True)
class SearchHit:
    """A ranked search result.

    origin is one of "cache", "remote" or "frequent".
    """

    document_id: str
    title: str
    kind: DocumentKind
    score: float = 0.0
    origin: str = "cache"

    @property
    def url(self) -> str:
        return page_url(self.document_id)


@dataclass(frozen=True)
class Candidate:
    """Stage-1 result: a cheap preview of one potential source."""

    id: str
    title: str
    preview: str
    path: str
    url: str
    relevance: float = 1.0


@dataclass(frozen=True)
class CandidateSet:
    """Stage-1 output.

    outcome is "found", "no_candidates" (nothing matched) or "unavailable"
    (nothing matched and some remote lookup failed).
    """

    query: str
    candidates: tuple[Candidate, ...]
    outcome: str


@dataclass(frozen=True)
class RelatedDocument:
    id: str
    title: str
    url: str


@dataclass(frozen=True)
class Detail:
    """Stage-2 result: full content and context for one document."""

    id: str
    title: str
    content: str
    path: str
    document_type: DocumentType
    url: str
    related: tuple[RelatedDocument, ...] = ()
    complete: bool = True


@dataclass(frozen=True)
class CacheStatus:
    initialized: bool
    loading: bool
    last_refresh_time: datetime | None
    document_count: int
    collection_count: int
    collection_item_count: int
    indexed_title_term_count: int
    indexed_body_term_count: int
    state: CacheState = CacheState.UNINITIALIZED
    last_error: str | None = None


@dataclass(frozen=True)
class RetrievalContext:
    """Stage-1 candidates plus, if the escalation policy asked for it, stage-2 detail."""

    candidates: CandidateSet
    detail: Detail | None = None
