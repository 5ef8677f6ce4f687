"""Tests for configuration resolvers."""

import pytest

from notion_retrieval.config import (
    REFRESH_INTERVAL_SECONDS,
    format_notion_id,
    resolve_collection_ids,
    resolve_refresh_interval,
)


def test_format_notion_id_dashes_bare_ids() -> None:
    assert (
        format_notion_id("0123456789abcdef0123456789abcdef")
        == "01234567-89ab-cdef-0123-456789abcdef"
    )


def test_format_notion_id_leaves_dashed_ids_alone() -> None:
    dashed = "01234567-89ab-cdef-0123-456789abcdef"
    assert format_notion_id(dashed) == dashed


def test_collection_ids_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NOTION_DATABASE_IDS", "0123456789abcdef0123456789abcdef, db-two ,")
    assert resolve_collection_ids() == ["01234567-89ab-cdef-0123-456789abcdef", "db-two"]


def test_collection_ids_empty_when_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NOTION_DATABASE_IDS", raising=False)
    assert resolve_collection_ids() == []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("", REFRESH_INTERVAL_SECONDS),
        ("600", 600),
        ("5", 60),
        ("soon", REFRESH_INTERVAL_SECONDS),
    ],
)
def test_refresh_interval(monkeypatch: pytest.MonkeyPatch, raw: str, expected: int) -> None:
    monkeypatch.setenv("NOTION_REFRESH_INTERVAL", raw)
    assert resolve_refresh_interval() == expected
