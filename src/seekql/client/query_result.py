"""
Result types and row normalization

Rows coming back from the backend are not uniform: ids may be bytes or text,
metadata may be JSON text or raw bytes, and the distance column is named
differently by plain vector queries and by hybrid search. The helpers here
turn them into GetResult / QueryResult objects.
"""
import json
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .base_connection import BackendRow
from .codec import parse_vector_string
from .errors import SerializationError
from .meta_info import CollectionFieldNames, IncludeField

# Checked in this order, the first convertible value wins
DISTANCE_ALIASES = ("distance", "_distance", "_score", "score")

# Hybrid search rows may expose the vector under either name
HYBRID_EMBEDDING_COLUMNS = (CollectionFieldNames.EMBEDDING, "_embedding")


class _DictAccessMixin:
    """Lets results be read like the plain dicts Chroma returns: result["ids"]"""

    def __getitem__(self, key: str) -> Any:
        if key not in self.keys():
            raise KeyError(key)
        return getattr(self, key)

    def __contains__(self, key: str) -> bool:
        return key in self.keys() and getattr(self, key) is not None

    def get(self, key: str, default: Any = None) -> Any:
        value = getattr(self, key, None) if key in self.keys() else None
        return default if value is None else value

    def keys(self) -> List[str]:
        return [f.name for f in fields(self)]

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in self.keys()}

    def to_json(self) -> str:
        """Convert to JSON string"""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


@dataclass
class GetResult(_DictAccessMixin):
    """Rows fetched by id/filter; lists are parallel and correlated by index"""
    ids: List[str] = field(default_factory=list)
    documents: Optional[List[Optional[str]]] = None
    metadatas: Optional[List[Optional[Dict[str, Any]]]] = None
    embeddings: Optional[List[Optional[List[float]]]] = None

    def __len__(self) -> int:
        return len(self.ids)


@dataclass
class QueryResult(_DictAccessMixin):
    """
    Nearest-neighbour results: one outer slot per query vector or text.
    ``distances`` is always present; a slot with no matches holds empty lists.
    """
    ids: List[List[str]] = field(default_factory=list)
    distances: List[List[float]] = field(default_factory=list)
    documents: Optional[List[List[Optional[str]]]] = None
    metadatas: Optional[List[List[Optional[Dict[str, Any]]]]] = None
    embeddings: Optional[List[List[Optional[List[float]]]]] = None

    def __len__(self) -> int:
        return len(self.ids)

    @classmethod
    def from_get_result(cls, result: GetResult) -> "QueryResult":
        """Wrap fetched rows into a single slot with zero distances"""
        return cls(
            ids=[list(result.ids)],
            distances=[[0.0] * len(result.ids)],
            documents=None if result.documents is None else [list(result.documents)],
            metadatas=None if result.metadatas is None else [list(result.metadatas)],
            embeddings=None if result.embeddings is None else [list(result.embeddings)],
        )


# ==================== Column Decoders ====================

def id_from_row(row: BackendRow) -> str:
    """Raw bytes decoded as UTF-8, else the text value, else empty string"""
    try:
        raw = row.get_bytes(CollectionFieldNames.ID)
    except SerializationError:
        raw = None
    if raw is not None:
        return raw.decode("utf-8", errors="replace")
    try:
        text = row.get_string(CollectionFieldNames.ID)
    except SerializationError:
        text = None
    return text if text is not None else ""


def document_from_row(row: BackendRow) -> Optional[str]:
    try:
        text = row.get_string(CollectionFieldNames.DOCUMENT)
    except SerializationError:
        text = None
    if text is not None:
        return text
    try:
        raw = row.get_bytes(CollectionFieldNames.DOCUMENT)
    except SerializationError:
        return None
    return raw.decode("utf-8", errors="replace") if raw is not None else None


def metadata_from_row(row: BackendRow) -> Optional[Dict[str, Any]]:
    """JSON from the text value, then from raw bytes; None when neither parses"""
    value = row.raw(CollectionFieldNames.METADATA)
    if isinstance(value, dict):
        return value
    try:
        text = row.get_string(CollectionFieldNames.METADATA)
    except SerializationError:
        text = None
    if text is not None:
        try:
            return json.loads(text)
        except ValueError:
            pass
    try:
        raw = row.get_bytes(CollectionFieldNames.METADATA)
    except SerializationError:
        raw = None
    if raw is not None:
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            pass
    return None


def embedding_from_row(
    row: BackendRow,
    columns: Sequence[str] = (CollectionFieldNames.EMBEDDING,)
) -> Optional[List[float]]:
    for column in columns:
        value = row.raw(column)
        if value is None:
            continue
        if isinstance(value, (bytes, bytearray, memoryview)):
            value = bytes(value).decode("utf-8", errors="replace")
        if isinstance(value, str):
            return parse_vector_string(value)
        if isinstance(value, (list, tuple)):
            vector = []
            for item in value:
                try:
                    vector.append(float(item))
                except (TypeError, ValueError):
                    continue
            return vector
    return None


def distance_from_row(row: BackendRow) -> float:
    for alias in DISTANCE_ALIASES:
        if alias not in row:
            continue
        try:
            value = row.get_float(alias)
        except SerializationError:
            continue
        if value is not None:
            return value
    return 0.0


# ==================== Result Builders ====================

def build_get_result(rows: Iterable[BackendRow], include: Sequence[IncludeField]) -> GetResult:
    rows = list(rows)
    result = GetResult(ids=[id_from_row(row) for row in rows])
    if IncludeField.DOCUMENTS in include:
        result.documents = [document_from_row(row) for row in rows]
    if IncludeField.METADATAS in include:
        result.metadatas = [metadata_from_row(row) for row in rows]
    if IncludeField.EMBEDDINGS in include:
        result.embeddings = [embedding_from_row(row) for row in rows]
    return result


def build_query_result(
    row_groups: Sequence[Sequence[BackendRow]],
    include: Sequence[IncludeField],
    embedding_columns: Sequence[str] = (CollectionFieldNames.EMBEDDING,)
) -> QueryResult:
    """One slot per row group, in order; empty groups give empty slots"""
    result = QueryResult()
    if IncludeField.DOCUMENTS in include:
        result.documents = []
    if IncludeField.METADATAS in include:
        result.metadatas = []
    if IncludeField.EMBEDDINGS in include:
        result.embeddings = []

    for rows in row_groups:
        result.ids.append([id_from_row(row) for row in rows])
        result.distances.append([distance_from_row(row) for row in rows])
        if result.documents is not None:
            result.documents.append([document_from_row(row) for row in rows])
        if result.metadatas is not None:
            result.metadatas.append([metadata_from_row(row) for row in rows])
        if result.embeddings is not None:
            result.embeddings.append([embedding_from_row(row, embedding_columns) for row in rows])
    return result


def empty_query_result(include: Sequence[IncludeField], n_slots: int = 1) -> QueryResult:
    return build_query_result([[] for _ in range(n_slots)], include)


def hybrid_rows_to_query_result(rows: Sequence[BackendRow], include: Sequence[IncludeField]) -> QueryResult:
    """Hybrid search returns a single ranked list, i.e. one slot"""
    return build_query_result([rows], include, embedding_columns=HYBRID_EMBEDDING_COLUMNS)
