"""Two-stage retrieval: cheap candidate previews, then full detail for one.

Neither stage raises for remote trouble. Every method has a partial fallback
value: an empty preview, "Unknown path", or no related documents.
Only NotConfiguredError propagates.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from notion_retrieval.config import (
    CANDIDATE_TARGET,
    DETAIL_MAX_DEPTH,
    PREVIEW_CHARS,
    PREVIEW_MAX_DEPTH,
    RELATED_LIMIT,
)
from notion_retrieval.core.access import AccessTracker
from notion_retrieval.core.cache import DocumentCache
from notion_retrieval.core.escalation import AlwaysEscalate
from notion_retrieval.core.normalize import (
    UNTITLED,
    kind_of,
    parent_of,
    rich_text_to_plain,
    title_of,
)
from notion_retrieval.core.search.index import tokenize
from notion_retrieval.core.tree.flatten import flatten_document
from notion_retrieval.errors import ApiError, NotConfiguredError
from notion_retrieval.models.document import (
    Candidate,
    CandidateSet,
    Detail,
    DocumentKind,
    DocumentType,
    RelatedDocument,
    RetrievalContext,
    SearchHit,
    page_url,
)
from notion_retrieval.protocols import EscalationPolicy

UNKNOWN_PATH = "Unknown path"

# Upper bound on remote metadata lookups when back-filling a breadcrumb.
MAX_PARENT_BACKFILL = 5

_TYPE_PATTERNS: list[tuple[DocumentType, re.Pattern[str]]] = [
    (DocumentType.POLICY, re.compile(r"\b(polic(y|ies)|guidelines?|rules?)\b")),
    (DocumentType.PROCEDURE, re.compile(r"\b(procedures?|process(es)?|how to)\b")),
    (DocumentType.CONTACT_LIST, re.compile(r"\b(contacts?|e-?mail|phone)\b")),
    (DocumentType.FORM, re.compile(r"\b(forms?|templates?|fill)\b")),
]


def classify_document(text: str) -> DocumentType:
    """Best-effort document type from keywords in the flattened body."""
    lowered = text.lower()
    for doc_type, pattern in _TYPE_PATTERNS:
        if pattern.search(lowered):
            return doc_type
    return DocumentType.GENERAL_INFO


def make_excerpt(text: str, query: str, *, limit: int = PREVIEW_CHARS) -> str:
    """Whitespace-collapsed window of `text` around the first query-term hit.

    Falls back to the start of the text when no query term occurs.
    """
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat

    lowered = flat.lower()
    positions = [p for p in (lowered.find(t) for t in tokenize(query)) if p >= 0]
    start = 0
    if positions:
        start = max(0, min(positions) - limit // 5)
        if start:
            # Do not cut a word in half.
            space = flat.rfind(" ", 0, start)
            start = space + 1 if space >= 0 else 0
    end = min(len(flat), start + limit)

    excerpt = flat[start:end]
    if start > 0:
        excerpt = "..." + excerpt
    if end < len(flat):
        excerpt += "..."
    return excerpt


@dataclass(frozen=True)
class CandidateStrategy:
    """One step of the candidate fallback chain.

    `find(query, needed)` returns hits, or None when its backend failed.
    """

    name: str
    find: Callable[[str, int], list[SearchHit] | None]
    only_when_empty: bool = False


class TwoStageRetrieval:
    """Caller-facing retrieval over the document cache with remote fallbacks."""

    def __init__(
        self,
        cache: DocumentCache,
        *,
        tracker: AccessTracker | None = None,
        target: int = CANDIDATE_TARGET,
        related_limit: int = RELATED_LIMIT,
        preview_chars: int = PREVIEW_CHARS,
        strategies: list[CandidateStrategy] | None = None,
    ) -> None:
        self.cache = cache
        self.source = cache.source
        self.tracker = tracker or AccessTracker()
        self.target = target
        self.related_limit = related_limit
        self.preview_chars = preview_chars
        self.strategies = strategies if strategies is not None else self.default_strategies()

    def default_strategies(self) -> list[CandidateStrategy]:
        return [
            CandidateStrategy("cache", self._from_cache),
            CandidateStrategy("remote", self._from_remote),
            CandidateStrategy("frequent", self._from_frequent, only_when_empty=True),
        ]

    # --- Candidate strategies ---

    def _from_cache(self, query: str, needed: int) -> list[SearchHit] | None:
        if not self.cache.is_ready:
            return []
        return self.cache.search(query, max_results=needed)

    def _from_remote(self, query: str, needed: int) -> list[SearchHit] | None:
        try:
            results = self.source.search(query, page_size=needed)
        except ApiError:
            logger.opt(exception=True).warning("Remote search failed for {!r}", query)
            return None
        return [
            SearchHit(
                document_id=raw["id"],
                title=title_of(raw),
                kind=kind_of(raw),
                score=1.0,
                origin="remote",
            )
            for raw in results
            if raw.get("object") in ("page", "database") and raw.get("id")
        ]

    def _from_frequent(self, query: str, needed: int) -> list[SearchHit] | None:
        hits = []
        for doc_id in self.tracker.most_frequent(needed):
            doc = self.cache.get_content(doc_id)
            if doc is not None:
                hits.append(SearchHit(doc_id, doc.title, doc.kind, 0.0, "frequent"))
                continue
            try:
                raw = self.source.retrieve_page(doc_id)
            except ApiError:
                logger.warning("Skipping frequently used page {}: metadata fetch failed", doc_id)
                continue
            hits.append(SearchHit(doc_id, title_of(raw), kind_of(raw), 0.0, "frequent"))
        logger.info("Using {} frequently accessed documents as fallback", len(hits))
        return hits

    # --- Stage 1 ---

    def find_candidates(self, query: str, *, target: int | None = None) -> CandidateSet:
        """Stage 1: up to `target` candidates with previews and breadcrumbs.

        Raises:
            NotConfiguredError: No API token is available.
        """
        self.source.require_configured()
        target = self.target if target is None else target

        hits: dict[str, SearchHit] = {}
        degraded = False
        for strategy in self.strategies:
            if strategy.only_when_empty and hits:
                continue
            needed = target - len(hits)
            if needed <= 0:
                break
            try:
                found = strategy.find(query, needed)
            except NotConfiguredError:
                raise
            except Exception:
                logger.exception("Candidate strategy {} failed", strategy.name)
                found = None
            if found is None:
                degraded = True
                continue
            logger.debug("Strategy {} found {} candidates", strategy.name, len(found))
            for hit in found:
                if hit.document_id not in hits and len(hits) < target:
                    hits[hit.document_id] = hit

        candidates = tuple(self._to_candidate(hit, query) for hit in hits.values())
        if candidates:
            outcome = "found"
        elif degraded:
            outcome = "unavailable"
        else:
            outcome = "no_candidates"
        logger.info("Query {!r}: {} candidates ({})", query, len(candidates), outcome)
        return CandidateSet(query=query, candidates=candidates, outcome=outcome)

    def _to_candidate(self, hit: SearchHit, query: str) -> Candidate:
        self.tracker.track(hit.document_id)
        return Candidate(
            id=hit.document_id,
            title=hit.title or UNTITLED,
            preview=self.preview(hit.document_id, query),
            path=self.path_for(hit.document_id),
            url=hit.url,
            relevance=hit.score or 1.0,
        )

    def preview(self, doc_id: str, query: str) -> str:
        """Excerpt of the cached body, or of a shallow remote slice if uncached."""
        try:
            doc = self.cache.get_content(doc_id)
            if doc is not None:
                text = doc.body
            else:
                text = flatten_document(self.source, doc_id, max_depth=PREVIEW_MAX_DEPTH)
            return make_excerpt(text, query, limit=self.preview_chars)
        except NotConfiguredError:
            raise
        except Exception:
            logger.exception("Preview failed for {}", doc_id)
            return ""

    # --- Hierarchy context ---

    def resolve_title(self, doc_id: str) -> str:
        """Title from the cache, else from remote metadata, else "Untitled"."""
        title = self.cache.get_title(doc_id)
        if title is not None:
            return title or UNTITLED
        raw = self._remote_metadata(doc_id)
        if raw is None:
            logger.debug("No title available for {}", doc_id)
            return UNTITLED
        return title_of(raw) or UNTITLED

    def _remote_metadata(self, doc_id: str) -> dict[str, Any] | None:
        """Page metadata, else collection metadata, else None."""
        for fetch in (self.source.retrieve_page, self.source.retrieve_collection):
            try:
                return fetch(doc_id)
            except ApiError:
                continue
        return None

    def _backfill_parents(self, doc_id: str) -> None:
        """Ask the remote source for parents the hierarchy does not know yet."""
        hierarchy = self.cache.hierarchy
        top = hierarchy.path_to_root(doc_id)[0]
        for _ in range(MAX_PARENT_BACKFILL):
            if hierarchy.has_parent(top) or self.cache.get_content(top) is not None:
                return
            raw = self._remote_metadata(top)
            if raw is None:
                logger.debug("No metadata for {}, breadcrumb stops there", top)
                return
            parent_id = parent_of(raw)
            if parent_id is None or parent_id in hierarchy.path_to_root(top):
                return
            hierarchy.add_edge(top, parent_id)
            top = parent_id

    def path_for(self, doc_id: str) -> str:
        """Breadcrumb of titles from the outermost ancestor, joined with " > "."""
        try:
            self._backfill_parents(doc_id)
            ids = self.cache.hierarchy.path_to_root(doc_id)
            return " > ".join(self.resolve_title(i) for i in ids)
        except NotConfiguredError:
            raise
        except Exception:
            logger.exception("Could not build path for {}", doc_id)
            return UNKNOWN_PATH

    def related_documents(self, doc_id: str) -> tuple[RelatedDocument, ...]:
        try:
            related_ids = self.cache.hierarchy.related(doc_id, limit=self.related_limit)
        except Exception:
            logger.exception("Could not find related documents for {}", doc_id)
            return ()
        related = []
        for related_id in related_ids:
            self.tracker.track(related_id)
            related.append(
                RelatedDocument(
                    id=related_id,
                    title=self.resolve_title(related_id),
                    url=page_url(related_id),
                )
            )
        return tuple(related)

    # --- Stage 2 ---

    def get_detail(self, doc_id: str, query: str = "") -> Detail:
        """Stage 2: full content, breadcrumb, related documents and a type tag.

        Raises:
            NotConfiguredError: No API token is available.
        """
        self.source.require_configured()
        self.tracker.track(doc_id)
        try:
            return self._detail(doc_id, query)
        except NotConfiguredError:
            raise
        except Exception:
            logger.exception("Detail retrieval failed for {}", doc_id)
            return Detail(
                id=doc_id,
                title=UNTITLED,
                content="",
                path=UNKNOWN_PATH,
                document_type=DocumentType.GENERAL_INFO,
                url=page_url(doc_id),
                complete=False,
            )

    def _detail(self, doc_id: str, query: str) -> Detail:
        complete = True
        doc = self.cache.get_content(doc_id)
        if doc is not None:
            title, content = doc.title or UNTITLED, doc.body
        else:
            raw = self._remote_metadata(doc_id)
            if raw is None:
                logger.warning("Metadata for {} unavailable, continuing without title", doc_id)
                title, complete = UNTITLED, False
                content = flatten_document(self.source, doc_id, max_depth=DETAIL_MAX_DEPTH)
            else:
                title = title_of(raw) or UNTITLED
                parent_id = parent_of(raw)
                if parent_id and not self.cache.hierarchy.has_parent(doc_id):
                    self.cache.hierarchy.add_edge(doc_id, parent_id)
                if kind_of(raw) is not DocumentKind.COLLECTION:
                    content = flatten_document(self.source, doc_id, max_depth=DETAIL_MAX_DEPTH)
                else:
                    try:
                        content = self._collection_content(raw)
                    except ApiError:
                        logger.warning("Items of collection {} unavailable", doc_id)
                        content = rich_text_to_plain(raw.get("description"))
                        complete = False

        related = self.related_documents(doc_id)
        path = self.path_for(doc_id)
        if path == UNKNOWN_PATH:
            complete = False

        logger.debug("Detail for {} ({} chars) for query {!r}", doc_id, len(content), query)
        return Detail(
            id=doc_id,
            title=title,
            content=content,
            path=path,
            document_type=classify_document(content),
            url=page_url(doc_id),
            related=related,
            complete=complete,
        )

    def _collection_content(self, raw: dict[str, Any]) -> str:
        """Description followed by one bullet per item title."""
        lines = [rich_text_to_plain(raw.get("description"))]
        for item in self.source.iter_collection_items(raw["id"]):
            title = title_of(item)
            if title:
                lines.append(f"• {title}")
        return "\n".join(line for line in lines if line)

    # --- Both stages ---

    def gather_context(
        self, query: str, *, policy: EscalationPolicy | None = None
    ) -> RetrievalContext:
        """Stage 1, then stage 2 for the best candidate if the policy asks for it."""
        policy = policy or AlwaysEscalate()
        candidates = self.find_candidates(query)
        if not candidates.candidates or not policy.should_escalate(
            query, list(candidates.candidates)
        ):
            return RetrievalContext(candidates=candidates)
        best = max(candidates.candidates, key=lambda c: c.relevance)
        return RetrievalContext(candidates=candidates, detail=self.get_detail(best.id, query))
