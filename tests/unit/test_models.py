"""Tests for domain models."""

import dataclasses

import pytest

from notion_retrieval.models.document import (
    Document,
    DocumentKind,
    DocumentType,
    SearchHit,
    page_url,
)


def test_page_url_strips_dashes() -> None:
    assert page_url("0123-4567") == "https://notion.so/01234567"


def test_document_url_derived_from_id() -> None:
    doc = Document(id="ab-cd", title="T", kind=DocumentKind.PAGE)
    assert doc.url == "https://notion.so/abcd"


def test_search_hit_url_derived_from_id() -> None:
    hit = SearchHit(document_id="ab-cd", title="T", kind=DocumentKind.COLLECTION)
    assert hit.url == "https://notion.so/abcd"
    assert hit.origin == "cache"


def test_document_is_immutable() -> None:
    doc = Document(id="x", title="T", kind=DocumentKind.PAGE)
    with pytest.raises(dataclasses.FrozenInstanceError):
        doc.title = "other"  # type: ignore[misc]


def test_enums_serialize_as_strings() -> None:
    assert str(DocumentKind.COLLECTION) == "collection"
    assert str(DocumentType.CONTACT_LIST) == "CONTACT_LIST"
