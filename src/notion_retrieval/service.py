"""Builds the object graph behind the MCP server and the CLI."""

from dataclasses import dataclass

from notion_retrieval.api import NotionApi
from notion_retrieval.config import (
    PAGE_DELAY_SECONDS,
    resolve_collection_ids,
    resolve_refresh_interval,
)
from notion_retrieval.core.access import AccessTracker
from notion_retrieval.core.cache import DocumentCache
from notion_retrieval.core.retrieval import TwoStageRetrieval
from notion_retrieval.protocols import ApiProtocol
from notion_retrieval.source import ContentSource


@dataclass
class RetrievalService:
    """The wired components, passed explicitly to whoever needs them."""

    source: ContentSource
    cache: DocumentCache
    tracker: AccessTracker
    retrieval: TwoStageRetrieval

    def close(self) -> None:
        self.cache.close()


def build_retrieval_service(
    api: ApiProtocol | None = None,
    *,
    collection_ids: list[str] | None = None,
    auto_refresh: bool = True,
    page_delay: float = PAGE_DELAY_SECONDS,
) -> RetrievalService:
    """Wire API client, source, cache, tracker and retrieval together.

    Configuration not passed in is read from the environment.
    """
    source = ContentSource(api if api is not None else NotionApi(), page_delay=page_delay)
    cache = DocumentCache(
        source,
        collection_ids=collection_ids if collection_ids is not None else resolve_collection_ids(),
        refresh_interval=resolve_refresh_interval(),
        auto_refresh=auto_refresh,
    )
    tracker = AccessTracker()
    retrieval = TwoStageRetrieval(cache, tracker=tracker)
    return RetrievalService(source=source, cache=cache, tracker=tracker, retrieval=retrieval)
