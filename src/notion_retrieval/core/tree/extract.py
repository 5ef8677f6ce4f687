"""Plain-text extraction for single Notion blocks."""

from collections.abc import Callable
from typing import Any

from notion_retrieval.core.normalize import UNTITLED, rich_text_to_plain
from notion_retrieval.models.document import ContentNode

# Blocks that stand for nested documents rather than content.
DOCUMENT_BLOCK_KINDS = frozenset({"child_page", "child_database"})

# Rich-text blocks: kind -> formatter applied to the block's plain text.
_TEXT_FORMATS: dict[str, Callable[[str, dict[str, Any]], str]] = {
    "paragraph": lambda text, _p: text,
    "heading_1": lambda text, _p: text,
    "heading_2": lambda text, _p: text,
    "heading_3": lambda text, _p: text,
    "toggle": lambda text, _p: text,
    "bulleted_list_item": lambda text, _p: f"• {text}",
    "numbered_list_item": lambda text, _p: f"1. {text}",
    "to_do": lambda text, p: f"[{'x' if p.get('checked') else ' '}] {text}",
    "quote": lambda text, _p: f"> {text}",
    "callout": lambda text, _p: f"[!] {text}",
    "code": lambda text, _p: f"```\n{text}\n```",
}

_REFERENCE_LABELS = {"child_page": "Page", "child_database": "Database"}


def extract_block_text(block: dict[str, Any]) -> str:
    """Return the plain-text rendering of one block.

    Blocks without text (dividers, images, empty paragraphs) and unknown
    kinds give "".
    """
    kind = block.get("type")
    if not isinstance(kind, str):
        return ""
    payload = block.get(kind)
    if not isinstance(payload, dict):
        return ""

    if kind in _REFERENCE_LABELS:
        return f"[{_REFERENCE_LABELS[kind]}: {payload.get('title') or UNTITLED}]"

    formatter = _TEXT_FORMATS.get(kind)
    if formatter is None:
        return ""
    text = rich_text_to_plain(payload.get("rich_text"))
    if not text:
        return ""
    return formatter(text, payload)


def content_node_from_block(
    block: dict[str, Any], children: tuple[ContentNode, ...] = ()
) -> ContentNode:
    return ContentNode(
        id=block.get("id", ""),
        kind=block.get("type", "unsupported"),
        text=extract_block_text(block),
        has_children=bool(block.get("has_children")),
        children=children,
    )
