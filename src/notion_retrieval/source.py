"""Paginated access to the remote content source."""

import time
from collections.abc import Callable, Iterator
from typing import Any

from loguru import logger

from notion_retrieval.config import PAGE_DELAY_SECONDS, PAGE_SIZE
from notion_retrieval.errors import ApiError, NotConfiguredError
from notion_retrieval.protocols import ApiProtocol


class ContentSource:
    """The remote primitives the cache and the retrieval service are built on.

    Paginated listings sleep `page_delay` seconds between pages. A failing page
    ends that listing (the items already yielded stay valid); single-object
    fetches raise ApiError and leave the skip decision to the caller.
    """

    def __init__(
        self,
        api: ApiProtocol,
        *,
        page_size: int = PAGE_SIZE,
        page_delay: float = PAGE_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api = api
        self.page_size = min(page_size, PAGE_SIZE)
        self.page_delay = page_delay
        self._sleep = sleep

    @property
    def configured(self) -> bool:
        return self.api.configured

    def require_configured(self) -> None:
        if not self.configured:
            msg = "Notion API is not configured (set NOTION_API_KEY)"
            raise NotConfiguredError(msg)

    def _paginate(
        self,
        fetch: Callable[[str | None], dict[str, Any]],
        what: str,
        *,
        required: bool = False,
    ) -> Iterator[dict[str, Any]]:
        """Yield results across pages.

        With `required`, a failure on the first page propagates; later failures
        only end the listing early.
        """
        cursor: str | None = None
        first = True
        while True:
            try:
                response = fetch(cursor)
            except ApiError:
                if required and first:
                    raise
                logger.opt(exception=True).warning("Listing {} stopped early", what)
                return
            first = False
            yield from response.get("results", [])
            cursor = response.get("next_cursor")
            if not response.get("has_more") or not cursor:
                return
            if self.page_delay:
                self._sleep(self.page_delay)

    def iter_documents(self, *, kind: str | None = None) -> Iterator[dict[str, Any]]:
        """Enumerate every page and database shared with the integration.

        Args:
            kind: "page" or "database" to filter by object type.
        """

        def fetch(cursor: str | None) -> dict[str, Any]:
            args: dict[str, Any] = {"query": "", "page_size": self.page_size}
            if kind:
                args["filter"] = {"property": "object", "value": kind}
            if cursor:
                args["start_cursor"] = cursor
            return self.api.call("search", args)

        yield from self._paginate(fetch, "all documents", required=True)

    def search(self, query: str, *, page_size: int) -> list[dict[str, Any]]:
        """Remote title search, first page only."""
        args = {"query": query, "page_size": max(1, min(page_size, self.page_size))}
        return list(self.api.call("search", args).get("results", []))

    def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return self.api.call(f"pages/{page_id}", {}, method="GET")

    def retrieve_collection(self, collection_id: str) -> dict[str, Any]:
        return self.api.call(f"databases/{collection_id}", {}, method="GET")

    def iter_collection_items(
        self,
        collection_id: str,
        *,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
    ) -> Iterator[dict[str, Any]]:
        def fetch(cursor: str | None) -> dict[str, Any]:
            args: dict[str, Any] = {"page_size": self.page_size}
            if filter:
                args["filter"] = filter
            if sorts:
                args["sorts"] = sorts
            if cursor:
                args["start_cursor"] = cursor
            return self.api.call(f"databases/{collection_id}/query", args)

        yield from self._paginate(fetch, f"items of {collection_id}", required=True)

    def list_block_children(self, block_id: str) -> list[dict[str, Any]]:
        """All child blocks of a page or block.

        Unlike the other listings, a failure on the first page raises ApiError so
        callers can tell "no children" from "could not ask".
        """
        results: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            args: dict[str, Any] = {"page_size": self.page_size}
            if cursor:
                args["start_cursor"] = cursor
            try:
                response = self.api.call(f"blocks/{block_id}/children", args, method="GET")
            except ApiError:
                if not results:
                    raise
                logger.warning("Children of {} truncated: page fetch failed", block_id)
                return results
            results.extend(response.get("results", []))
            cursor = response.get("next_cursor")
            if not response.get("has_more") or not cursor:
                return results
            if self.page_delay:
                self._sleep(self.page_delay)
