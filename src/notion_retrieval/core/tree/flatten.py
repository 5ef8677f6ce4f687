"""Walk a document's content tree to a bounded depth and flatten it to text."""

import io

from loguru import logger

from notion_retrieval.core.tree.extract import DOCUMENT_BLOCK_KINDS, content_node_from_block
from notion_retrieval.errors import ApiError
from notion_retrieval.models.document import ContentNode
from notion_retrieval.source import ContentSource

INDENT = "  "


def fetch_content_tree(
    source: ContentSource,
    block_id: str,
    *,
    max_depth: int,
    depth: int = 1,
) -> tuple[ContentNode, ...]:
    """Fetch the content nodes below `block_id`.

    The direct children of `block_id` are at `depth` (1 for a document's own
    blocks). Nothing deeper than `max_depth` is requested; nodes at the bound
    keep has_children but get no children. Nested pages and databases are
    separate documents and are never descended into.

    Args:
        source: Remote content source.
        block_id: Page or block whose children to fetch.
        max_depth: Deepest level to fetch (0 fetches nothing).
        depth: Level of the children being fetched.

    Returns:
        Tuple of ContentNode in document order. A failed child listing yields
        an empty tuple for that subtree.
    """
    if depth > max_depth:
        return ()

    try:
        blocks = source.list_block_children(block_id)
    except ApiError:
        logger.opt(exception=True).warning(
            "Could not list children of {} at depth {}", block_id, depth
        )
        return ()

    nodes: list[ContentNode] = []
    for block in blocks:
        children: tuple[ContentNode, ...] = ()
        if (
            block.get("has_children")
            and block.get("type") not in DOCUMENT_BLOCK_KINDS
            and depth < max_depth
        ):
            children = fetch_content_tree(
                source, block["id"], max_depth=max_depth, depth=depth + 1
            )
        nodes.append(content_node_from_block(block, children))
    return tuple(nodes)


def render_tree(nodes: tuple[ContentNode, ...]) -> str:
    """Render content nodes as indented plain text, one line per text line."""
    out = io.StringIO()
    _render(nodes, 0, out)
    return out.getvalue()


def _render(nodes: tuple[ContentNode, ...], level: int, out: io.StringIO) -> None:
    indent = INDENT * level
    for node in nodes:
        if node.text:
            for line in node.text.split("\n"):
                out.write(f"{indent}{line}\n")
        if node.children:
            _render(node.children, level + 1, out)


def flatten_document(source: ContentSource, document_id: str, *, max_depth: int) -> str:
    """Fetch and flatten a document's content in one go."""
    return render_tree(fetch_content_tree(source, document_id, max_depth=max_depth))
