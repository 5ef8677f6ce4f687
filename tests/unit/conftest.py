"""Shared test fixtures."""

import pytest

from notion_retrieval.core.cache import DocumentCache
from notion_retrieval.service import RetrievalService, build_retrieval_service
from notion_retrieval.source import ContentSource
from tests.unit.fakes import FakeApi, build_workspace


@pytest.fixture
def fake_api() -> FakeApi:
    return build_workspace()


@pytest.fixture
def source(fake_api: FakeApi) -> ContentSource:
    return ContentSource(fake_api, page_delay=0)


@pytest.fixture
def cache(source: ContentSource) -> DocumentCache:
    return DocumentCache(source, auto_refresh=False)


@pytest.fixture
def loaded_cache(cache: DocumentCache) -> DocumentCache:
    cache.initialize()
    return cache


@pytest.fixture
def service(fake_api: FakeApi) -> RetrievalService:
    return build_retrieval_service(fake_api, collection_ids=[], auto_refresh=False, page_delay=0)


@pytest.fixture
def loaded_service(service: RetrievalService) -> RetrievalService:
    service.cache.initialize()
    return service
