"""In-memory inverted index with weighted term-overlap ranking."""

import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Literal

Field = Literal["title", "body"]

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# Tokens of this length or shorter are never indexed.
MIN_TOKEN_LENGTH = 3


def tokenize(text: str) -> list[str]:
    """Lowercase, replace non-alphanumerics with spaces, drop short tokens."""
    if not text:
        return []
    return [t for t in _NON_ALNUM.sub(" ", text.lower()).split() if len(t) >= MIN_TOKEN_LENGTH]


@dataclass(frozen=True)
class ScoredId:
    id: str
    score: float


class InvertedIndex:
    """token -> set of document ids, kept separately for titles and bodies.

    Not safe for concurrent writes; the cache builds one per generation and
    only reads it once published.
    """

    def __init__(self) -> None:
        self._postings: dict[Field, dict[str, set[str]]] = {
            "title": defaultdict(set),
            "body": defaultdict(set),
        }
        # Insertion order of every id ever indexed (dict keeps order).
        self._seen: dict[str, None] = {}

    def index(self, field: Field, doc_id: str, text: str) -> None:
        self._seen.setdefault(doc_id, None)
        postings = self._postings[field]
        for token in tokenize(text):
            postings[token].add(doc_id)

    def postings(self, field: Field, token: str) -> frozenset[str]:
        return frozenset(self._postings[field].get(token, ()))

    @property
    def title_term_count(self) -> int:
        return len(self._postings["title"])

    @property
    def body_term_count(self) -> int:
        return len(self._postings["body"])

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._seen

    def search(
        self,
        query: str,
        *,
        max_results: int = 10,
        title_weight: float = 2,
        body_weight: float = 1,
    ) -> list[ScoredId]:
        """Rank ids by summed title/body weights over the query's tokens.

        A query with no indexable tokens returns the first `max_results`
        indexed ids (insertion order) with score 0. Ties are broken by id.
        """
        tokens = tokenize(query)
        if not tokens:
            return [ScoredId(doc_id, 0) for doc_id in list(self._seen)[:max_results]]

        scores: dict[str, float] = defaultdict(float)
        for token in tokens:
            for doc_id in self._postings["title"].get(token, ()):
                scores[doc_id] += title_weight
            for doc_id in self._postings["body"].get(token, ()):
                scores[doc_id] += body_weight

        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        return [ScoredId(doc_id, score) for doc_id, score in ranked[:max_results]]
