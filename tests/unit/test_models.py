"""Unit tests for the domain models."""

import uuid
from datetime import datetime, timezone

import pytest

from docsearch.domain.models import Document, DocumentStatus, IngestionOutcome, total_pages


def test_new_document_is_pending() -> None:
    document = Document(id=uuid.uuid4(), user_id=uuid.uuid4(), created_at=datetime.now(timezone.utc))
    assert document.status == DocumentStatus.PENDING.value


@pytest.mark.parametrize(
    "total, limit, expected",
    [(45, 20, 3), (40, 20, 2), (1, 20, 1), (0, 20, 0), (10, 0, 0)],
)
def test_total_pages_rounds_up(total, limit, expected) -> None:
    assert total_pages(total, limit) == expected


def test_outcome_has_no_error_by_default() -> None:
    assert IngestionOutcome(document_id="doc-1").error is None
