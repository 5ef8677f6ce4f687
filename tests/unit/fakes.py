"""Fake implementations for testing the retrieval service."""

import threading
from collections.abc import Callable
from typing import Any

from notion_retrieval.errors import ApiError


def rich(text: str) -> list[dict[str, Any]]:
    return [{"type": "text", "plain_text": text}] if text else []


def make_page(
    page_id: str,
    title: str,
    *,
    parent: str | None = None,
    database: str | None = None,
    properties: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Raw page object; with `database` it is an item of that database."""
    if database is not None:
        parent_ref = {"type": "database_id", "database_id": database}
        props = {"Name": {"type": "title", "title": rich(title)}}
    else:
        parent_ref = (
            {"type": "page_id", "page_id": parent}
            if parent
            else {"type": "workspace", "workspace": True}
        )
        props = {"title": {"type": "title", "title": rich(title)}}
    props.update(properties or {})
    return {
        "object": "page",
        "id": page_id,
        "parent": parent_ref,
        "properties": props,
        "last_edited_time": "2024-01-01T00:00:00.000Z",
    }


def make_database(
    database_id: str, title: str, *, parent: str | None = None, description: str = ""
) -> dict[str, Any]:
    return {
        "object": "database",
        "id": database_id,
        "title": rich(title),
        "description": rich(description),
        "parent": (
            {"type": "page_id", "page_id": parent}
            if parent
            else {"type": "workspace", "workspace": True}
        ),
        "properties": {"Name": {"type": "title", "title": {}}},
    }


def make_block(
    block_id: str,
    kind: str,
    text: str = "",
    *,
    has_children: bool = False,
    **extra: Any,
) -> dict[str, Any]:
    """Raw block. child_page/child_database take `text` as their title."""
    if kind in ("child_page", "child_database"):
        payload: dict[str, Any] = {"title": text}
    else:
        payload = {"rich_text": rich(text), **extra}
    return {
        "object": "block",
        "id": block_id,
        "type": kind,
        "has_children": has_children,
        kind: payload,
    }


class FakeApi:
    """In-memory fake for NotionApi serving a synthetic workspace.

    Pages, databases and block children are registered up front. Listings are
    paginated with `page_size` honoured, so pagination code paths run. Records
    all calls for assertions.
    """

    def __init__(self, *, configured: bool = True) -> None:
        self.configured = configured
        self.objects: dict[str, dict[str, Any]] = {}
        self.items: dict[str, list[dict[str, Any]]] = {}
        self.blocks: dict[str, list[dict[str, Any]]] = {}
        self.failures: dict[str, ApiError] = {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        # Called before every request with (method, path); lets tests block or count.
        self.before_call: Callable[[str, str], None] | None = None
        self._lock = threading.Lock()

    # --- Workspace setup ---

    def add_page(self, page_id: str, title: str, **kwargs: Any) -> dict[str, Any]:
        raw = make_page(page_id, title, **kwargs)
        self.objects[page_id] = raw
        database = kwargs.get("database")
        if database is not None:
            self.items.setdefault(database, []).append(raw)
        return raw

    def add_database(self, database_id: str, title: str, **kwargs: Any) -> dict[str, Any]:
        raw = make_database(database_id, title, **kwargs)
        self.objects[database_id] = raw
        self.items.setdefault(database_id, [])
        return raw

    def set_blocks(self, block_id: str, blocks: list[dict[str, Any]]) -> None:
        self.blocks[block_id] = blocks

    def fail(self, path: str, *, status: int = 500) -> None:
        """Make every request to `path` fail with ApiError."""
        self.failures[path] = ApiError(f"FakeApi: {path} failed", status=status)

    def calls_to(self, path: str) -> int:
        return sum(1 for _method, p, _args in self.calls if p == path)

    # --- ApiProtocol ---

    def call(self, path: str, args: dict[str, Any], *, method: str = "POST") -> dict[str, Any]:
        with self._lock:
            self.calls.append((method, path, dict(args)))
        if self.before_call is not None:
            self.before_call(method, path)
        if path in self.failures:
            raise self.failures[path]

        if path == "search":
            return self._search(args)
        parts = path.split("/")
        if parts[0] == "pages" and len(parts) == 2:
            return self._get_object(parts[1], "page")
        if parts[0] == "databases" and len(parts) == 2:
            return self._get_object(parts[1], "database")
        if parts[0] == "databases" and parts[2:] == ["query"]:
            if parts[1] not in self.items:
                raise ApiError(f"FakeApi: no database {parts[1]!r}", status=404)
            return self._page_of(self.items[parts[1]], args)
        if parts[0] == "blocks" and parts[2:] == ["children"]:
            return self._page_of(self.blocks.get(parts[1], []), args)
        raise ApiError(f"FakeApi: unsupported path {path!r}", status=400)

    def _get_object(self, object_id: str, kind: str) -> dict[str, Any]:
        raw = self.objects.get(object_id)
        if raw is None or raw["object"] != kind:
            msg = f"FakeApi: no {kind} {object_id!r}"
            raise ApiError(msg, status=404, code="object_not_found")
        return raw

    def _search(self, args: dict[str, Any]) -> dict[str, Any]:
        query = args.get("query", "").lower()
        kind = args.get("filter", {}).get("value")
        results = []
        for raw in self.objects.values():
            if kind and raw["object"] != kind:
                continue
            if query and query not in _title(raw).lower():
                continue
            results.append(raw)
        return self._page_of(results, args)

    @staticmethod
    def _page_of(results: list[dict[str, Any]], args: dict[str, Any]) -> dict[str, Any]:
        start = int(args.get("start_cursor") or 0)
        size = int(args.get("page_size") or 100)
        end = start + size
        has_more = end < len(results)
        return {
            "object": "list",
            "results": results[start:end],
            "has_more": has_more,
            "next_cursor": str(end) if has_more else None,
        }


def _title(raw: dict[str, Any]) -> str:
    if raw["object"] == "database":
        parts = raw["title"]
    else:
        parts = next(p["title"] for p in raw["properties"].values() if p.get("type") == "title")
    return "".join(p["plain_text"] for p in parts)


def build_workspace() -> FakeApi:
    """A small workspace: a handbook with two pages and a contacts database,
    plus a second unrelated root page.

    r1 Company Handbook
      p1 Payroll Policy
      p2 Vacation Procedure
      db1 Contacts
        i1 Finance Team
        i2 HR Team
    r2 Engineering
      p3 Onboarding
    """
    api = FakeApi()
    api.add_page("r1", "Company Handbook")
    api.add_page("p1", "Payroll Policy", parent="r1")
    api.add_page("p2", "Vacation Procedure", parent="r1")
    api.add_database("db1", "Contacts", parent="r1", description="Who to ask")
    api.add_page(
        "i1",
        "Finance Team",
        database="db1",
        properties={
            "Email": {"type": "email", "email": "finance@example.com"},
            "Role": {"type": "select", "select": {"name": "Payroll"}},
        },
    )
    api.add_page(
        "i2",
        "HR Team",
        database="db1",
        properties={"Email": {"type": "email", "email": "hr@example.com"}},
    )
    api.add_page("r2", "Engineering")
    api.add_page("p3", "Onboarding", parent="r2")

    api.set_blocks(
        "r1",
        [
            make_block("b-r1-1", "heading_1", "Welcome to the handbook"),
            make_block("p1", "child_page", "Payroll Policy", has_children=True),
            make_block("p2", "child_page", "Vacation Procedure", has_children=True),
            make_block("db1", "child_database", "Contacts"),
        ],
    )
    api.set_blocks(
        "p1",
        [
            make_block("b-p1-1", "paragraph", "Salaries are paid monthly on the last working day."),
            make_block("b-p1-2", "bulleted_list_item", "Bonuses", has_children=True),
        ],
    )
    api.set_blocks("b-p1-2", [make_block("b-p1-3", "paragraph", "Paid every March.")])
    api.set_blocks(
        "p2",
        [make_block("b-p2-1", "paragraph", "How to request time off: ask your manager.")],
    )
    api.set_blocks("p3", [make_block("b-p3-1", "to_do", "Set up laptop", checked=True)])
    return api
