"""Policies deciding when stage-1 previews are not enough."""

from dataclasses import dataclass

from notion_retrieval.models.document import Candidate


class AlwaysEscalate:
    def should_escalate(self, query: str, candidates: list[Candidate]) -> bool:
        return bool(candidates)


class NeverEscalate:
    def should_escalate(self, query: str, candidates: list[Candidate]) -> bool:
        return False


@dataclass(frozen=True)
class ScoreThresholdEscalation:
    """Escalate only when the best candidate is a confident lexical match.

    With the default weights a title hit scores 2 and a body hit 1, so the
    default threshold asks for at least one title match or two body matches.
    """

    min_relevance: float = 2.0

    def should_escalate(self, query: str, candidates: list[Candidate]) -> bool:
        if not candidates:
            return False
        return max(c.relevance for c in candidates) >= self.min_relevance


POLICIES = {
    "always": AlwaysEscalate,
    "never": NeverEscalate,
    "threshold": ScoreThresholdEscalation,
}
