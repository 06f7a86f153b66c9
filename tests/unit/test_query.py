"""Unit tests for query preprocessing."""

import pytest

from docsearch.domain.query import preprocess_query


def test_camel_case_and_separators_are_split() -> None:
    """Camel-case boundaries, underscores and dots become token boundaries."""
    clean, tokens = preprocess_query("myDocument_Name.pdf")
    assert tokens == ["my", "document", "name", "pdf"]
    assert clean == "my document name pdf"


def test_single_character_tokens_are_dropped() -> None:
    clean, tokens = preprocess_query("a report b 2024")
    assert tokens == ["report", "2024"]
    assert clean == "report 2024"


def test_punctuation_except_apostrophe_becomes_space() -> None:
    clean, tokens = preprocess_query("Q3 (final), draft! user's-notes")
    assert tokens == ["q3", "final", "draft", "user's", "notes"]


@pytest.mark.parametrize("raw", ["", "   ", "a", "-_.", "!?"])
def test_query_without_significant_tokens_is_empty(raw: str) -> None:
    """An empty clean query means the request is a listing, not a search."""
    assert preprocess_query(raw) == ("", [])


def test_unicode_punctuation_is_normalized() -> None:
    clean, _ = preprocess_query("«Résumé»—Année")
    assert clean == "résumé année"


def test_preprocessing_is_deterministic() -> None:
    assert preprocess_query("Invoice-2024_Q1") == preprocess_query("Invoice-2024_Q1")
