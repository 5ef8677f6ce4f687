"""In-memory cache of the whole Notion workspace.

A load enumerates every page and database, flattens their content and builds
an inverted index and a hierarchy graph. Each load produces a fresh
CacheGeneration which is published by a single reference assignment, so
readers see either the previous complete generation or the new one.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from notion_retrieval.config import (
    LOAD_MAX_DEPTH,
    REFRESH_INTERVAL_SECONDS,
    SEARCH_MAX_RESULTS,
)
from notion_retrieval.core.normalize import document_from_raw, properties_text, rich_text_to_plain
from notion_retrieval.core.search.index import InvertedIndex
from notion_retrieval.core.tree.flatten import flatten_document
from notion_retrieval.core.tree.hierarchy import HierarchyGraph
from notion_retrieval.errors import NotConfiguredError
from notion_retrieval.models.document import (
    CacheState,
    CacheStatus,
    Document,
    DocumentKind,
    LoadOutcome,
    SearchHit,
)
from notion_retrieval.source import ContentSource


@dataclass
class CacheGeneration:
    """Everything one load produced. Never mutated after publication
    (apart from the hierarchy's lazy child memoization)."""

    hierarchy: HierarchyGraph
    index: InvertedIndex = field(default_factory=InvertedIndex)
    documents: dict[str, Document] = field(default_factory=dict)
    collection_items: dict[str, list[str]] = field(default_factory=dict)
    built_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def add(self, doc: Document) -> None:
        self.documents[doc.id] = doc
        self.index.index("title", doc.id, doc.title)
        self.index.index("body", doc.id, doc.body)
        if doc.parent_id:
            self.hierarchy.add_edge(doc.id, doc.parent_id)
        else:
            self.hierarchy.mark_root(doc.id)

    @property
    def collection_count(self) -> int:
        return sum(1 for d in self.documents.values() if d.kind == DocumentKind.COLLECTION)


class DocumentCache:
    """Owns the bulk load, the index and the hierarchy; serves reads.

    At most one load runs at a time. initialize() and refresh() return
    LoadOutcome.NOT_STARTED immediately when another load is in flight.
    """

    def __init__(
        self,
        source: ContentSource,
        *,
        collection_ids: list[str] | None = None,
        load_max_depth: int = LOAD_MAX_DEPTH,
        refresh_interval: float = REFRESH_INTERVAL_SECONDS,
        auto_refresh: bool = True,
    ) -> None:
        self._source = source
        self.collection_ids = list(collection_ids or [])
        self.load_max_depth = load_max_depth
        self.refresh_interval = refresh_interval
        self.auto_refresh = auto_refresh

        self._generation: CacheGeneration | None = None
        self._load_lock = threading.Lock()
        self._fallback_hierarchy = HierarchyGraph(source)

        self._stop = threading.Event()
        self._refresh_thread: threading.Thread | None = None
        self._init_thread: threading.Thread | None = None

        self.last_refresh_time: datetime | None = None
        self.last_error: str | None = None

    # --- Lifecycle ---

    @property
    def source(self) -> ContentSource:
        return self._source

    @property
    def is_ready(self) -> bool:
        """True once a generation has been published (reads are served from it)."""
        return self._generation is not None

    @property
    def is_loading(self) -> bool:
        return self._load_lock.locked()

    @property
    def state(self) -> CacheState:
        if self.is_loading:
            return CacheState.LOADING
        if self.is_ready:
            return CacheState.READY
        return CacheState.UNINITIALIZED

    def initialize(self) -> LoadOutcome:
        """Run the first load and start the refresh timer.

        A no-op returning COMPLETED if the cache is already ready.

        Raises:
            NotConfiguredError: No API token is available.
        """
        self._source.require_configured()
        if self.is_ready:
            logger.debug("Cache already initialized")
            return LoadOutcome.COMPLETED
        outcome = self._load("initialize")
        if outcome is LoadOutcome.COMPLETED and self.auto_refresh:
            self._start_refresh_timer()
        return outcome

    def refresh(self) -> LoadOutcome:
        """Rebuild everything from the remote source and swap it in.

        Raises:
            NotConfiguredError: No API token is available.
        """
        self._source.require_configured()
        return self._load("refresh")

    def start_background_initialize(self) -> threading.Thread:
        """Run initialize() on a daemon thread; reads fall back to the API meanwhile."""

        def run() -> None:
            try:
                outcome = self.initialize()
            except NotConfiguredError as e:
                logger.error("Cache not initialized: {}", e)
                return
            logger.info("Background cache initialization: {}", outcome)

        self._init_thread = threading.Thread(target=run, name="notion-cache-init", daemon=True)
        self._init_thread.start()
        return self._init_thread

    def close(self) -> None:
        """Stop the refresh timer. A load already running finishes on its own."""
        self._stop.set()
        if self._refresh_thread is not None:
            self._refresh_thread.join(timeout=1)
            self._refresh_thread = None

    def _start_refresh_timer(self) -> None:
        if self._refresh_thread is not None:
            return
        self._stop.clear()
        self._refresh_thread = threading.Thread(
            target=self._refresh_loop, name="notion-cache-refresh", daemon=True
        )
        self._refresh_thread.start()
        logger.debug("Refresh timer started, every {}s", self.refresh_interval)

    def _refresh_loop(self) -> None:
        while not self._stop.wait(self.refresh_interval):
            try:
                outcome = self.refresh()
            except NotConfiguredError as e:
                logger.error("Scheduled refresh skipped: {}", e)
                continue
            if outcome is LoadOutcome.COMPLETED:
                logger.info("Scheduled cache refresh completed")
            else:
                logger.warning("Scheduled cache refresh: {}", outcome)

    # --- Loading ---

    def _load(self, reason: str) -> LoadOutcome:
        if not self._load_lock.acquire(blocking=False):
            logger.info("Cache {} not started: a load is already in progress", reason)
            return LoadOutcome.NOT_STARTED
        try:
            logger.info("Cache {} started", reason)
            started = time.monotonic()
            try:
                generation = self._build_generation()
            except NotConfiguredError:
                raise
            except Exception as e:
                logger.exception("Cache {} failed, keeping previous data", reason)
                self.last_error = str(e)
                return LoadOutcome.FAILED

            self._generation = generation
            self.last_refresh_time = generation.built_at
            self.last_error = None
            logger.info(
                "Cache {} completed in {:.1f}s: {} documents, {} collections",
                reason,
                time.monotonic() - started,
                len(generation.documents),
                generation.collection_count,
            )
            return LoadOutcome.COMPLETED
        finally:
            self._load_lock.release()

    def _build_generation(self) -> CacheGeneration:
        generation = CacheGeneration(hierarchy=HierarchyGraph(self._source))

        if self.collection_ids:
            logger.info("Loading {} configured collections", len(self.collection_ids))
        for collection_id in self.collection_ids:
            self._load_collection(generation, collection_id)

        skipped = 0
        for raw in self._source.iter_documents():
            doc_id = raw.get("id")
            if not doc_id or doc_id in generation.documents:
                skipped += 1
                continue
            if raw.get("object") == "database":
                self._load_collection(generation, doc_id, raw)
            else:
                self._load_page(generation, raw)

        logger.debug("Enumeration done, {} already-resolved entries skipped", skipped)
        generation.built_at = datetime.now(UTC)
        return generation

    def _load_page(self, generation: CacheGeneration, raw: dict[str, Any]) -> Document | None:
        try:
            body = flatten_document(self._source, raw["id"], max_depth=self.load_max_depth)
            # Collection items carry their property values in the body.
            if (raw.get("parent") or {}).get("type") == "database_id":
                props = properties_text(raw)
                if props:
                    body = f"{props}\n{body}" if body else f"{props}\n"
            doc = document_from_raw(raw, body=body)
        except NotConfiguredError:
            raise
        except Exception:
            logger.exception("Failed to load page {}, skipping", raw.get("id"))
            return None
        generation.add(doc)
        return doc

    def _load_collection(
        self,
        generation: CacheGeneration,
        collection_id: str,
        raw: dict[str, Any] | None = None,
    ) -> None:
        try:
            if raw is None:
                raw = self._source.retrieve_collection(collection_id)
            item_ids: list[str] = []
            item_titles: list[str] = []
            for item in self._source.iter_collection_items(collection_id):
                item_id = item.get("id")
                if not item_id:
                    continue
                # Items may already have been seen as plain pages by the enumeration.
                doc = generation.documents.get(item_id) or self._load_page(generation, item)
                if doc is not None:
                    item_ids.append(doc.id)
                    item_titles.append(doc.title)
        except NotConfiguredError:
            raise
        except Exception:
            logger.exception("Failed to load collection {}, skipping", collection_id)
            return

        lines = [rich_text_to_plain(raw.get("description"))]
        lines.extend(f"• {title}" for title in item_titles if title)
        body = "\n".join(line for line in lines if line)
        generation.add(document_from_raw(raw, body=body))
        generation.collection_items[collection_id] = item_ids
        logger.debug("Loaded collection {} with {} items", collection_id, len(item_ids))

    # --- Reads ---

    @property
    def hierarchy(self) -> HierarchyGraph:
        generation = self._generation
        return generation.hierarchy if generation is not None else self._fallback_hierarchy

    def search(
        self,
        query: str,
        *,
        max_results: int = SEARCH_MAX_RESULTS,
        title_weight: float = 2,
        body_weight: float = 1,
    ) -> list[SearchHit]:
        """Ranked hits from the current generation; empty while uninitialized."""
        generation = self._generation
        if generation is None:
            logger.debug("Cache search before first load, returning nothing")
            return []
        hits: list[SearchHit] = []
        for scored in generation.index.search(
            query, max_results=max_results, title_weight=title_weight, body_weight=body_weight
        ):
            doc = generation.documents.get(scored.id)
            if doc is None:
                continue
            hits.append(
                SearchHit(
                    document_id=doc.id,
                    title=doc.title,
                    kind=doc.kind,
                    score=scored.score,
                    origin="cache",
                )
            )
        return hits

    def get_content(self, doc_id: str) -> Document | None:
        """The cached Document, or None (caller falls back to a remote fetch)."""
        generation = self._generation
        if generation is None:
            return None
        return generation.documents.get(doc_id)

    def get_title(self, doc_id: str) -> str | None:
        doc = self.get_content(doc_id)
        return doc.title if doc is not None else None

    def documents(self) -> list[Document]:
        generation = self._generation
        return list(generation.documents.values()) if generation is not None else []

    def collection_items(self, collection_id: str) -> list[Document]:
        generation = self._generation
        if generation is None:
            return []
        ids = generation.collection_items.get(collection_id, [])
        return [generation.documents[i] for i in ids if i in generation.documents]

    def status(self) -> CacheStatus:
        generation = self._generation
        if generation is None:
            counts = (0, 0, 0, 0, 0)
        else:
            item_count = sum(len(ids) for ids in generation.collection_items.values())
            counts = (
                len(generation.documents) - generation.collection_count,
                generation.collection_count,
                item_count,
                generation.index.title_term_count,
                generation.index.body_term_count,
            )
        return CacheStatus(
            initialized=generation is not None,
            loading=self.is_loading,
            last_refresh_time=self.last_refresh_time,
            document_count=counts[0],
            collection_count=counts[1],
            collection_item_count=counts[2],
            indexed_title_term_count=counts[3],
            indexed_body_term_count=counts[4],
            state=self.state,
            last_error=self.last_error,
        )
