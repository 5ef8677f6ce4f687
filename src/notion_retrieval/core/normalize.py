"""Turn raw Notion objects into canonical domain records.

Notion hides titles in different places depending on the object: database
items carry a `title`-typed property (often called "Name"), plain pages a
`title` property, databases a top-level `title` rich-text array. Nothing past
this module looks at raw shapes.
"""

from typing import Any

from notion_retrieval.models.document import Document, DocumentKind

UNTITLED = "Untitled"


def rich_text_to_plain(rich_text: Any) -> str:
    """Concatenate plain_text of a rich-text array."""
    if not isinstance(rich_text, list):
        return ""
    return "".join(part.get("plain_text", "") for part in rich_text if isinstance(part, dict))


def title_from_value(title: Any) -> str:
    """Extract text from any of the title shapes Notion returns."""
    if isinstance(title, str):
        return title
    if isinstance(title, list):
        return rich_text_to_plain(title)
    if isinstance(title, dict):
        if isinstance(title.get("title"), list):
            return rich_text_to_plain(title["title"])
        if "plain_text" in title:
            return str(title["plain_text"])
    return ""


def title_of(raw: dict[str, Any]) -> str:
    """Title of a page, database item or database; empty if unavailable."""
    properties = raw.get("properties")
    if raw.get("object") != "database" and isinstance(properties, dict):
        for key in ("title", "Name"):
            if key in properties:
                text = title_from_value(properties[key])
                if text:
                    return text
        for prop in properties.values():
            if isinstance(prop, dict) and prop.get("type") == "title":
                text = title_from_value(prop)
                if text:
                    return text
    if "title" in raw:
        return title_from_value(raw["title"])
    return ""


def parent_of(raw: dict[str, Any]) -> str | None:
    """The parent document id, if the parent is a page or a database.

    Workspace parents and block parents (pages nested inside some block) are
    reported as None; the hierarchy treats such documents as roots.
    """
    parent = raw.get("parent")
    if not isinstance(parent, dict):
        return None
    parent_type = parent.get("type")
    if parent_type in ("page_id", "database_id"):
        return parent.get(parent_type)
    return None


def kind_of(raw: dict[str, Any]) -> DocumentKind:
    if raw.get("object") == "database":
        return DocumentKind.COLLECTION
    return DocumentKind.PAGE


def _property_value(prop: dict[str, Any]) -> str:
    prop_type = prop.get("type")
    value = prop.get(prop_type) if prop_type else None
    if value is None:
        return ""
    if prop_type == "rich_text":
        return rich_text_to_plain(value)
    if prop_type in ("number", "url", "email", "phone_number"):
        return str(value)
    if prop_type == "select":
        return str(value.get("name", ""))
    if prop_type == "multi_select":
        return ", ".join(str(item.get("name", "")) for item in value)
    if prop_type == "date":
        start, end = value.get("start"), value.get("end")
        return f"{start} - {end}" if end else str(start or "")
    if prop_type == "checkbox":
        return "yes" if value else "no"
    if prop_type == "formula":
        for key in ("string", "number", "boolean", "date"):
            if value.get(key) is not None:
                return str(value[key])
    return ""


def properties_text(raw: dict[str, Any]) -> str:
    """Render non-title properties of a collection item as "Name: value" lines."""
    properties = raw.get("properties")
    if not isinstance(properties, dict):
        return ""
    lines = []
    for name, prop in sorted(properties.items()):
        if not isinstance(prop, dict) or prop.get("type") == "title":
            continue
        value = _property_value(prop)
        if value:
            lines.append(f"{name}: {value}")
    return "\n".join(lines)


def document_from_raw(raw: dict[str, Any], *, body: str = "") -> Document:
    """Build the canonical Document for a raw page, item or database."""
    return Document(
        id=raw["id"],
        title=title_of(raw),
        kind=kind_of(raw),
        body=body,
        parent_id=parent_of(raw),
        last_edited=raw.get("last_edited_time"),
    )
