"""Notion workspace cache with hierarchy discovery and two-stage retrieval."""

from notion_retrieval.api import NotionApi
from notion_retrieval.core.cache import DocumentCache
from notion_retrieval.core.retrieval import TwoStageRetrieval
from notion_retrieval.protocols import ApiProtocol, EscalationPolicy
from notion_retrieval.source import ContentSource

__all__ = [
    "ApiProtocol",
    "ContentSource",
    "DocumentCache",
    "EscalationPolicy",
    "NotionApi",
    "TwoStageRetrieval",
]
