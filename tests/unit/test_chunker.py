"""Unit tests for the sentence chunker."""

import pytest

from docsearch.application.ports.chunking_port import ChunkingError
from docsearch.infrastructure.chunkers.sentence_chunker_adapter import SentenceChunkerAdapter


def _normalized(text: str) -> str:
    return " ".join(text.split())


SAMPLE = (
    "The quarterly report is ready. Revenue grew by twelve percent!   Did costs rise? "
    "Yes, slightly.\n\nThe board meets next week to review   the numbers. "
) * 20


def test_empty_input_yields_no_chunks() -> None:
    chunker = SentenceChunkerAdapter(max_chunk_size=100)
    assert chunker.chunk_text("") == []
    assert chunker.chunk_text("   \n\t ") == []


def test_chunks_respect_max_size() -> None:
    chunker = SentenceChunkerAdapter(max_chunk_size=80)
    chunks = chunker.chunk_text(SAMPLE)
    assert len(chunks) > 1
    assert all(c.size <= 80 for c in chunks)
    assert all(c.size == len(c.text) for c in chunks)


def test_chunking_is_lossless_modulo_whitespace() -> None:
    chunker = SentenceChunkerAdapter(max_chunk_size=64)
    chunks = chunker.chunk_text(SAMPLE)
    assert " ".join(c.text for c in chunks) == _normalized(SAMPLE)


def test_indices_are_contiguous_from_start_index() -> None:
    chunker = SentenceChunkerAdapter(max_chunk_size=50)
    chunks = chunker.chunk_text(SAMPLE, start_index=7)
    assert [c.chunk_index for c in chunks] == list(range(7, 7 + len(chunks)))


def test_page_number_is_carried_through() -> None:
    chunker = SentenceChunkerAdapter(max_chunk_size=50)
    chunks = chunker.chunk_text(SAMPLE, page_number=3)
    assert {c.page_number for c in chunks} == {3}
    assert all(c.page_number is None for c in chunker.chunk_text(SAMPLE))


def test_long_sentence_is_split_on_words() -> None:
    """A sentence longer than the maximum is split on word boundaries."""
    sentence = " ".join(f"word{i}" for i in range(100)) + "."
    chunker = SentenceChunkerAdapter(max_chunk_size=40)
    chunks = chunker.chunk_text(sentence)
    assert len(chunks) > 1
    assert all(c.size <= 40 for c in chunks)
    assert " ".join(c.text for c in chunks) == sentence


def test_single_word_longer_than_max_is_emitted_whole() -> None:
    giant = "x" * 30
    chunker = SentenceChunkerAdapter(max_chunk_size=10)
    chunks = chunker.chunk_text(f"short. {giant} end.")
    assert [c.text for c in chunks] == ["short.", giant, "end."]


def test_short_text_is_a_single_chunk() -> None:
    chunker = SentenceChunkerAdapter(max_chunk_size=512)
    chunks = chunker.chunk_text("One sentence. Two sentences.")
    assert len(chunks) == 1
    assert chunks[0].text == "One sentence. Two sentences."
    assert chunks[0].chunk_index == 0


def test_text_without_terminal_punctuation_is_kept() -> None:
    chunker = SentenceChunkerAdapter(max_chunk_size=512)
    chunks = chunker.chunk_text("no punctuation at all")
    assert [c.text for c in chunks] == ["no punctuation at all"]


def test_dotted_tokens_are_not_sentence_boundaries() -> None:
    text = "Version 3.14 of report.pdf is out. See www.example.com now."
    chunker = SentenceChunkerAdapter(max_chunk_size=40)
    chunks = chunker.chunk_text(text)
    assert [c.text for c in chunks] == [
        "Version 3.14 of report.pdf is out.",
        "See www.example.com now.",
    ]
    assert " ".join(c.text for c in chunks) == text
    assert [c.text for c in SentenceChunkerAdapter(max_chunk_size=512).chunk_text(text)] == [text]


def test_non_positive_size_is_rejected() -> None:
    with pytest.raises(ChunkingError):
        SentenceChunkerAdapter(max_chunk_size=-1)
