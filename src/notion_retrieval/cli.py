"""CLI for Notion retrieval (search, detail, cache status, MCP server)."""

import json
from typing import Annotated

import typer
from loguru import logger

from notion_retrieval.errors import NotConfiguredError
from notion_retrieval.logging_config import configure_logging
from notion_retrieval.models.document import LoadOutcome
from notion_retrieval.service import RetrievalService, build_retrieval_service

app = typer.Typer(help="Notion retrieval: search and read your Notion workspace.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _open_service(*, load: bool) -> RetrievalService:
    """Build the service; with `load`, run a full cache load first."""
    service = build_retrieval_service(auto_refresh=False)
    if not service.source.configured:
        logger.error("Notion API is not configured. Set NOTION_API_KEY.")
        raise typer.Exit(1)
    if load:
        try:
            outcome = service.cache.initialize()
        except NotConfiguredError as e:
            logger.error("{}", e)
            raise typer.Exit(1) from e
        if outcome is not LoadOutcome.COMPLETED:
            logger.error("Cache load {}: {}", outcome, service.cache.last_error)
            raise typer.Exit(1)
    return service


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: int = typer.Option(5, "--limit", "-n", help="Max candidates"),
    load: bool = typer.Option(
        False, "--load", "-l", help="Load the full cache first instead of using remote search"
    ),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Find candidate documents for a query (stage 1)."""
    service = _open_service(load=load)
    try:
        result = service.retrieval.find_candidates(query, target=limit)
        if output_json:
            data = {
                "query": result.query,
                "outcome": result.outcome,
                "candidates": [
                    {
                        "id": c.id,
                        "title": c.title,
                        "path": c.path,
                        "url": c.url,
                        "relevance": c.relevance,
                        "preview": c.preview,
                    }
                    for c in result.candidates
                ],
            }
            typer.echo(json.dumps(data, indent=2))
            return
        if result.outcome == "unavailable":
            typer.echo("Search unavailable: Notion could not be reached.")
            raise typer.Exit(1)
        typer.echo(f"Found {len(result.candidates)} candidates:\n")
        for c in result.candidates:
            typer.echo(f"  {c.title}  ({c.relevance:g})")
            typer.echo(f"    {c.path}")
            if c.preview:
                typer.echo(f"    {c.preview[:120]}")
            typer.echo(f"    id={c.id}  {c.url}")
            typer.echo()
    finally:
        service.close()


@app.command()
def detail(
    document_id: str = typer.Argument(..., help="Document id"),
    query: str = typer.Option("", "--query", "-q", help="Question the document should answer"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
) -> None:
    """Show the full content of one document (stage 2)."""
    service = _open_service(load=False)
    try:
        d = service.retrieval.get_detail(document_id, query)
        if output_json:
            data = {
                "id": d.id,
                "title": d.title,
                "path": d.path,
                "document_type": str(d.document_type),
                "url": d.url,
                "complete": d.complete,
                "related": [{"id": r.id, "title": r.title, "url": r.url} for r in d.related],
                "content": d.content,
            }
            typer.echo(json.dumps(data, indent=2))
            return
        typer.echo(f"# {d.title}  [{d.document_type}]")
        typer.echo(f"{d.path}\n{d.url}\n")
        typer.echo(d.content)
        if d.related:
            typer.echo("\nRelated:")
            for r in d.related:
                typer.echo(f"  {r.title}  [id={r.id}]")
        if not d.complete:
            typer.echo("\n(partial result: some parts could not be fetched)")
    finally:
        service.close()


@app.command()
def documents() -> None:
    """Load the cache and list every document."""
    service = _open_service(load=True)
    try:
        docs = sorted(service.cache.documents(), key=lambda d: d.title.lower())
        typer.echo(f"{len(docs)} documents:\n")
        for d in docs:
            typer.echo(f"  {d.title} ({d.kind}) - {len(d.body)} chars  [id={d.id}]")
    finally:
        service.close()


@app.command()
def status() -> None:
    """Load the cache and print its statistics."""
    service = _open_service(load=True)
    try:
        s = service.cache.status()
        typer.echo(f"state: {s.state}")
        if s.last_refresh_time:
            typer.echo(f"last refresh: {s.last_refresh_time:%Y-%m-%d %H:%M:%S} UTC")
        typer.echo(f"documents: {s.document_count}")
        typer.echo(f"collections: {s.collection_count} ({s.collection_item_count} items)")
        typer.echo(
            f"indexed terms: {s.indexed_title_term_count} title, "
            f"{s.indexed_body_term_count} body"
        )
    finally:
        service.close()


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from notion_retrieval.mcp.server import run_mcp_server

    run_mcp_server()
