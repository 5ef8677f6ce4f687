"""MCP server exposing two-stage Notion retrieval and cache control tools."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from notion_retrieval.core.escalation import POLICIES
from notion_retrieval.errors import NotConfiguredError
from notion_retrieval.models.document import (
    CacheStatus,
    Candidate,
    CandidateSet,
    Detail,
    LoadOutcome,
)
from notion_retrieval.service import RetrievalService, build_retrieval_service


def _candidate_dict(c: Candidate) -> dict[str, Any]:
    return {
        "id": c.id,
        "title": c.title,
        "preview": c.preview,
        "path": c.path,
        "url": c.url,
        "relevance": c.relevance,
    }


def _candidates_dict(result: CandidateSet) -> dict[str, Any]:
    output: dict[str, Any] = {
        "query": result.query,
        "candidates": [_candidate_dict(c) for c in result.candidates],
        "count": len(result.candidates),
        "outcome": result.outcome,
    }
    if result.outcome == "unavailable":
        output["message"] = "Notion search is temporarily unavailable. Try again shortly."
    return output


def _detail_dict(detail: Detail) -> dict[str, Any]:
    estimated_tokens = len(detail.content) // 4
    result: dict[str, Any] = {
        "id": detail.id,
        "title": detail.title,
        "content": detail.content,
        "path": detail.path,
        "document_type": str(detail.document_type),
        "url": detail.url,
        "related": [{"id": r.id, "title": r.title, "url": r.url} for r in detail.related],
        "complete": detail.complete,
        "estimated_tokens": estimated_tokens,
    }
    if estimated_tokens > 5000:
        result["warning"] = f"Large result (~{estimated_tokens} tokens)."
    return result


def _status_dict(status: CacheStatus) -> dict[str, Any]:
    return {
        "state": str(status.state),
        "initialized": status.initialized,
        "loading": status.loading,
        "last_refresh_time": (
            status.last_refresh_time.isoformat() if status.last_refresh_time else None
        ),
        "document_count": status.document_count,
        "collection_count": status.collection_count,
        "collection_item_count": status.collection_item_count,
        "indexed_title_term_count": status.indexed_title_term_count,
        "indexed_body_term_count": status.indexed_body_term_count,
        "last_error": status.last_error,
    }


# --- Core functions (testable without MCP context) ---


def notion_find_candidates(
    service: RetrievalService, *, query: str, limit: int = 5
) -> dict[str, Any]:
    """Stage 1: find up to `limit` candidate documents with short previews.

    Args:
        query: Free-text question or keywords.
        limit: Max candidates (1-10, default 5).
    """
    if not query.strip():
        return {"error": "No search query provided.", "candidates": [], "count": 0}
    limit = max(1, min(limit, 10))
    try:
        result = service.retrieval.find_candidates(query, target=limit)
    except NotConfiguredError as e:
        return {"error": str(e), "candidates": [], "count": 0}
    return _candidates_dict(result)


def notion_get_detail(
    service: RetrievalService, *, document_id: str, query: str = ""
) -> dict[str, Any]:
    """Stage 2: full content, breadcrumb path and related documents for one document.

    Args:
        document_id: Id from a stage-1 candidate.
        query: The original question, used for logging and excerpting.
    """
    if not document_id.strip():
        return {"error": "No document id provided."}
    try:
        detail = service.retrieval.get_detail(document_id.strip(), query)
    except NotConfiguredError as e:
        return {"error": str(e)}
    return _detail_dict(detail)


def notion_gather_context(
    service: RetrievalService, *, query: str, escalation: str = "always"
) -> dict[str, Any]:
    """Both stages in one call: candidates, then detail for the best one.

    Args:
        query: Free-text question or keywords.
        escalation: "always", "never" or "threshold" (only confident matches).
    """
    if not query.strip():
        return {"error": "No search query provided.", "candidates": [], "count": 0}
    policy_cls = POLICIES.get(escalation)
    if policy_cls is None:
        return {
            "error": f"Unknown escalation policy '{escalation}'. "
            f"Expected one of: {', '.join(POLICIES)}."
        }
    try:
        context = service.retrieval.gather_context(query, policy=policy_cls())
    except NotConfiguredError as e:
        return {"error": str(e), "candidates": [], "count": 0}
    output = _candidates_dict(context.candidates)
    output["detail"] = _detail_dict(context.detail) if context.detail else None
    return output


def notion_cache_status(service: RetrievalService) -> dict[str, Any]:
    """Report cache state and index statistics."""
    return _status_dict(service.cache.status())


def notion_refresh_cache(service: RetrievalService) -> dict[str, Any]:
    """Rebuild the cache from Notion; refuses while another load is running."""
    try:
        outcome = service.cache.refresh()
    except NotConfiguredError as e:
        return {"success": False, "error": str(e)}
    if outcome is LoadOutcome.NOT_STARTED:
        return {
            "success": False,
            "error": "conflict",
            "message": "Cache refresh already in progress",
        }
    if outcome is LoadOutcome.FAILED:
        return {
            "success": False,
            "error": "failed",
            "message": service.cache.last_error or "Cache refresh failed",
            "status": _status_dict(service.cache.status()),
        }
    return {"success": True, "status": _status_dict(service.cache.status())}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    service: RetrievalService


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Start loading the cache in the background; stop the refresh timer on shutdown."""
    service = build_retrieval_service()
    if service.source.configured:
        service.cache.start_background_initialize()
    else:
        logger.warning("NOTION_API_KEY not set, tools will report the missing configuration")
    try:
        yield ServerContext(service=service)
    finally:
        service.close()


mcp_server = FastMCP(
    "notion-retrieval",
    instructions="""\
Notion workspace retrieval in two stages.

1. Call notion_find_candidates_tool with the user's question. It returns a few
   candidate documents with short previews and breadcrumb paths.
2. If a preview does not answer the question, call notion_get_detail_tool with
   that candidate's id for the full content and related documents.

notion_gather_context_tool does both in one call when you already know you
need the full text of the best match.

An "unavailable" outcome means Notion could not be reached, not that nothing
matched. Until the first cache load has finished, candidates come from
Notion's own title search; notion_cache_status_tool shows progress.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def notion_find_candidates_tool(ctx: Context, query: str, limit: int = 5) -> dict[str, Any]:
    """Find candidate Notion documents for a question (stage 1).

    Returns up to `limit` candidates with title, a short preview, breadcrumb
    path and url. Previews are excerpts only; call notion_get_detail_tool for
    the full content of a promising candidate.

    Args:
        query: Free-text question or keywords.
        limit: Max candidates (1-10, default 5).
    """
    return await asyncio.to_thread(
        notion_find_candidates, _ctx(ctx).service, query=query, limit=limit
    )


@mcp_server.tool()
async def notion_get_detail_tool(ctx: Context, document_id: str, query: str = "") -> dict[str, Any]:
    """Get the full content of one Notion document (stage 2).

    Returns the flattened content, breadcrumb path, document type and up to
    three related documents. `complete` is false if some part could not be
    fetched.

    Args:
        document_id: Id from notion_find_candidates_tool.
        query: The original question.
    """
    return await asyncio.to_thread(
        notion_get_detail, _ctx(ctx).service, document_id=document_id, query=query
    )


@mcp_server.tool()
async def notion_gather_context_tool(
    ctx: Context, query: str, escalation: str = "always"
) -> dict[str, Any]:
    """Find candidates and fetch full detail for the best one.

    Args:
        query: Free-text question or keywords.
        escalation: "always", "never" or "threshold" (only confident matches).
    """
    return await asyncio.to_thread(
        notion_gather_context, _ctx(ctx).service, query=query, escalation=escalation
    )


@mcp_server.tool()
async def notion_cache_status_tool(ctx: Context) -> dict[str, Any]:
    """Report whether the document cache is loaded, loading, and how big it is."""
    return notion_cache_status(_ctx(ctx).service)


@mcp_server.tool()
async def notion_refresh_cache_tool(ctx: Context) -> dict[str, Any]:
    """Rebuild the document cache from Notion.

    Blocks until the reload finishes. Returns error "conflict" if a load is
    already running.
    """
    return await asyncio.to_thread(notion_refresh_cache, _ctx(ctx).service)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from notion_retrieval.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
