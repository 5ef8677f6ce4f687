"""Tests for the inverted index and its ranking."""

from notion_retrieval.core.search.index import InvertedIndex, ScoredId, tokenize


def test_tokenize_lowercases_splits_and_drops_short_tokens() -> None:
    assert tokenize("The HR-team's Q4 pay_roll plan!") == ["the", "team", "pay", "roll", "plan"]


def test_tokenize_empty() -> None:
    assert tokenize("") == []
    assert tokenize("a b c ??") == []


def test_title_match_outranks_body_match() -> None:
    index = InvertedIndex()
    index.index("title", "p1", "Payroll Policy")
    index.index("body", "p1", "Salaries are paid monthly")
    index.index("title", "p2", "Vacation")
    index.index("body", "p2", "Ask payroll first")

    assert index.search("payroll") == [ScoredId("p1", 2), ScoredId("p2", 1)]


def test_scores_sum_over_query_tokens() -> None:
    index = InvertedIndex()
    index.index("title", "a", "payroll policy")
    index.index("body", "a", "policy details")
    index.index("title", "b", "policy")

    results = index.search("payroll policy")

    assert results[0] == ScoredId("a", 5)
    assert results[1] == ScoredId("b", 2)


def test_ties_broken_by_id() -> None:
    index = InvertedIndex()
    for doc_id in ("zeta", "alpha", "mid"):
        index.index("body", doc_id, "shared words")

    assert [r.id for r in index.search("shared")] == ["alpha", "mid", "zeta"]


def test_search_is_deterministic() -> None:
    index = InvertedIndex()
    for i in range(20):
        index.index("body", f"d{i}", "common text")
    first = index.search("common", max_results=7)
    assert all(index.search("common", max_results=7) == first for _ in range(5))
    assert len(first) == 7


def test_empty_query_returns_insertion_order_with_zero_score() -> None:
    index = InvertedIndex()
    for doc_id in ("c", "a", "b"):
        index.index("title", doc_id, "")

    assert index.search("", max_results=2) == [ScoredId("c", 0), ScoredId("a", 0)]
    assert [r.id for r in index.search("to be")] == ["c", "a", "b"]


def test_unmatched_query_returns_nothing() -> None:
    index = InvertedIndex()
    index.index("title", "a", "payroll")
    assert index.search("vacation") == []


def test_reindexing_is_idempotent() -> None:
    index = InvertedIndex()
    index.index("title", "a", "payroll payroll")
    index.index("title", "a", "payroll")

    assert index.postings("title", "payroll") == frozenset({"a"})
    assert index.search("payroll") == [ScoredId("a", 2)]
    assert len(index) == 1


def test_term_counts_and_membership() -> None:
    index = InvertedIndex()
    index.index("title", "a", "Payroll Policy")
    index.index("body", "a", "monthly salaries monthly")

    assert index.title_term_count == 2
    assert index.body_term_count == 2
    assert "a" in index
    assert "b" not in index


def test_custom_weights() -> None:
    index = InvertedIndex()
    index.index("title", "t", "payroll")
    index.index("body", "b", "payroll")

    results = index.search("payroll", title_weight=1, body_weight=3)

    assert results == [ScoredId("b", 3), ScoredId("t", 1)]


def test_title_hit_excludes_unrelated_documents() -> None:
    index = InvertedIndex()
    index.index("title", "p1", "Payroll Policy")
    index.index("body", "p1", "employees are paid monthly")
    index.index("title", "p2", "Office Snacks")
    index.index("body", "p2", "we stock snacks weekly")

    assert index.search("payroll", title_weight=2, body_weight=1) == [ScoredId("p1", 2)]
