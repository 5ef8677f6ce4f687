"""Protocols for dependency injection."""

from typing import Any, Protocol, runtime_checkable

from notion_retrieval.models.document import Candidate


@runtime_checkable
class ApiProtocol(Protocol):
    """Protocol for Notion API clients."""

    @property
    def configured(self) -> bool:
        """Whether credentials are available."""
        ...

    def call(self, path: str, args: dict[str, Any], *, method: str = "POST") -> dict[str, Any]:
        """Invoke an API endpoint and return the JSON response."""
        ...


@runtime_checkable
class EscalationPolicy(Protocol):
    """Decides whether stage-1 previews suffice or the best candidate needs full detail."""

    def should_escalate(self, query: str, candidates: list[Candidate]) -> bool:
        """Return True to fetch stage-2 detail for the top candidate."""
        ...
