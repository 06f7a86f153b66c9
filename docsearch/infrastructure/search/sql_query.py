# File: docsearch/infrastructure/search/sql_query.py
from typing import Any, List, Mapping, Optional

from docsearch.domain.models import Document, SearchRequest

DOCUMENTS_TABLE = "documents"

# search_vector is deliberately left out; it is an index column, not payload.
DOCUMENT_COLUMNS = (
    "id, user_id, title, description, file_name, original_file_name, file_size, "
    "file_type, mime_type, status, storage_path, storage_bucket, tags, "
    "view_count, download_count, created_at, updated_at"
)

SORTABLE_COLUMNS = {
    "date": "created_at",
    "title": "LOWER(title)",
    "size": "file_size",
    "views": "view_count",
    "downloads": "download_count",
}
DEFAULT_SORT_COLUMN = "created_at"

IGNORED_FILTER_VALUES = ("", "all")


def escape_like(value: str) -> str:
    """Escapes LIKE wildcards so a token matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(value: str) -> str:
    return f"%{escape_like(value)}%"


class SqlQuery:
    """
    Accumulates WHERE conditions and their positional ($n) parameters for a
    query against the documents table. Every query starts scoped to one user.
    """

    def __init__(self, user_id: Any):
        self.conditions: List[str] = []
        self.params: List[Any] = []
        self.where(f"user_id = {self.param(user_id)}")
        self.where("deleted_at IS NULL")

    def param(self, value: Any) -> str:
        self.params.append(value)
        return f"${len(self.params)}"

    def where(self, condition: str) -> "SqlQuery":
        self.conditions.append(condition)
        return self

    @property
    def where_sql(self) -> str:
        return " AND ".join(f"({c})" for c in self.conditions)

    def count_sql(self) -> str:
        return f"SELECT COUNT(*) FROM {DOCUMENTS_TABLE} WHERE {self.where_sql}"

    def page_sql(self, order_by: str, limit: int, offset: int, score_sql: Optional[str] = None) -> str:
        """
        Builds the page query. Must be called after every condition is added,
        since score, limit and offset parameters are appended after them.
        """
        columns = DOCUMENT_COLUMNS
        if score_sql:
            columns = f"{columns}, {score_sql} AS search_score"
        return (
            f"SELECT {columns} FROM {DOCUMENTS_TABLE} WHERE {self.where_sql} "
            f"ORDER BY {order_by} LIMIT {self.param(limit)} OFFSET {self.param(offset)}"
        )


def apply_filters(query: SqlQuery, request: SearchRequest) -> SqlQuery:
    if request.file_type is not None and request.file_type not in IGNORED_FILTER_VALUES:
        query.where(f"file_type = {query.param(request.file_type)}")
    if request.status is not None and request.status not in IGNORED_FILTER_VALUES:
        query.where(f"status = {query.param(request.status)}")
    for tag in request.tag_filters:
        query.where(f"tags ILIKE {query.param(contains_pattern(tag))}")
    return query


def build_order_by(sort_by: Optional[str], sort_dir: Optional[str]) -> str:
    column = SORTABLE_COLUMNS.get(sort_by or "", DEFAULT_SORT_COLUMN)
    direction = "ASC" if (sort_dir or "").lower() == "asc" else "DESC"
    return f"{column} {direction}"


def document_from_row(row: Mapping[str, Any]) -> Document:
    data = dict(row)
    for key in ("title", "description", "file_name", "original_file_name", "file_type", "mime_type", "tags"):
        if data.get(key) is None:
            data[key] = ""
    for key in ("file_size", "view_count", "download_count"):
        if data.get(key) is None:
            data[key] = 0
    if "search_score" in data:
        score = data.pop("search_score")
        data["score"] = float(score) if score is not None else None
    return Document.model_validate(data)
