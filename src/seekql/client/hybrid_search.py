"""
Hybrid search parameter assembly

Hybrid search is executed by the engine's DBMS_HYBRID_SEARCH package, which
takes a single JSON document (search_parm):

    {
        "query": {...},   # full-text / scalar part
        "knn":   {...},   # vector part
        "rank":  {...},   # fusion, e.g. {"rrf": {...}}
        "size":  10
    }

This module turns typed HybridQuery / HybridKnn / HybridRank objects (or the
equivalent dictionaries) into that document. Execution lives in the client.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .dml_utils import embed_documents, normalize_embeddings, validate_dimension
from .errors import EmbeddingError, InvalidInputError, SqlError
from .filter_builder import FilterBuilder
from .filters import DocFilter, Filter, WhereDocumentParam, WhereParam, as_doc_filter, as_filter
from .meta_info import CollectionFieldNames

logger = logging.getLogger(__name__)

DEFAULT_KNN_K = 10

# Server error code for "Invalid argument" raised by DBMS_HYBRID_SEARCH
INVALID_ARGUMENT_ERROR_CODE = 1210


@dataclass(frozen=True)
class HybridQuery:
    """Full-text / scalar part of a hybrid search"""
    where: Optional[Filter] = None
    where_document: Optional[DocFilter] = None

    def __post_init__(self):
        object.__setattr__(self, "where", as_filter(self.where))
        object.__setattr__(self, "where_document", as_doc_filter(self.where_document))

    @classmethod
    def from_dict(cls, value: Dict[str, Any]) -> "HybridQuery":
        # n_results is accepted for compatibility; the query part has no own size
        unknown = set(value) - {"where", "where_document", "n_results"}
        if unknown:
            raise InvalidInputError(f"Unknown query keys: {sorted(unknown)}")
        return cls(where=value.get("where"), where_document=value.get("where_document"))


@dataclass(frozen=True)
class HybridKnn:
    """
    Vector part of a hybrid search.
    query_embeddings take precedence over query_texts; only the first one is used.
    """
    query_texts: Optional[List[str]] = None
    query_embeddings: Optional[List[List[float]]] = None
    where: Optional[Filter] = None
    n_results: Optional[int] = None

    def __post_init__(self):
        texts = self.query_texts
        if isinstance(texts, str):
            texts = [texts]
        object.__setattr__(self, "query_texts", None if texts is None else list(texts))
        object.__setattr__(self, "query_embeddings", normalize_embeddings(self.query_embeddings))
        object.__setattr__(self, "where", as_filter(self.where))
        if self.n_results is not None and (isinstance(self.n_results, bool) or not isinstance(self.n_results, int) or self.n_results <= 0):
            raise InvalidInputError(f"knn n_results must be a positive integer, got {self.n_results!r}")

    @classmethod
    def from_dict(cls, value: Dict[str, Any]) -> "HybridKnn":
        unknown = set(value) - {"query_texts", "query_embeddings", "where", "n_results"}
        if unknown:
            raise InvalidInputError(f"Unknown knn keys: {sorted(unknown)}")
        return cls(
            query_texts=value.get("query_texts"),
            query_embeddings=value.get("query_embeddings"),
            where=value.get("where"),
            n_results=value.get("n_results"),
        )


@dataclass(frozen=True)
class HybridRank:
    """
    Rank fusion configuration: reciprocal rank fusion via ``rrf()`` or any
    prebuilt rank JSON via ``from_raw()``.
    """
    method: str = "rrf"
    rank_window_size: Optional[int] = None
    rank_constant: Optional[int] = None
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False)

    @classmethod
    def rrf(cls, rank_window_size: Optional[int] = None, rank_constant: Optional[int] = None) -> "HybridRank":
        return cls(method="rrf", rank_window_size=rank_window_size, rank_constant=rank_constant)

    @classmethod
    def from_raw(cls, value: Dict[str, Any]) -> "HybridRank":
        return cls(method="raw", raw=value)

    @classmethod
    def from_dict(cls, value: Dict[str, Any]) -> "HybridRank":
        if set(value) == {"rrf"} and isinstance(value["rrf"], dict):
            params = value["rrf"]
            if set(params) <= {"rank_window_size", "rank_constant"}:
                return cls.rrf(**params)
        return cls.from_raw(value)

    def to_dict(self) -> Dict[str, Any]:
        if self.method == "raw":
            return self.raw
        params = {}
        if self.rank_window_size is not None:
            params["rank_window_size"] = self.rank_window_size
        if self.rank_constant is not None:
            params["rank_constant"] = self.rank_constant
        return {"rrf": params}


QueryParam = Union[None, HybridQuery, Dict[str, Any]]
KnnParam = Union[None, HybridKnn, Dict[str, Any]]
RankParam = Union[None, HybridRank, Dict[str, Any]]


def as_hybrid_query(query: QueryParam) -> Optional[HybridQuery]:
    if query is None or isinstance(query, HybridQuery):
        return query
    if isinstance(query, dict):
        return HybridQuery.from_dict(query)
    raise InvalidInputError(f"query must be a HybridQuery or dict, got {type(query).__name__}")


def as_hybrid_knn(knn: KnnParam) -> Optional[HybridKnn]:
    if knn is None or isinstance(knn, HybridKnn):
        return knn
    if isinstance(knn, dict):
        return HybridKnn.from_dict(knn)
    raise InvalidInputError(f"knn must be a HybridKnn or dict, got {type(knn).__name__}")


def as_hybrid_rank(rank: RankParam) -> Optional[HybridRank]:
    if rank is None or isinstance(rank, HybridRank):
        return rank
    if isinstance(rank, dict):
        return HybridRank.from_dict(rank)
    raise InvalidInputError(f"rank must be a HybridRank or dict, got {type(rank).__name__}")


# ==================== Expressions ====================

def build_query_expression(
    where: WhereParam = None,
    where_document: WhereDocumentParam = None,
    unwrap_single: bool = True,
) -> Optional[Dict[str, Any]]:
    """
    Build the "query" part

    - metadata only: a single range/term node is used as is, anything else
      is wrapped in bool.filter
    - document (+ metadata): {"bool": {"must": [doc], "filter": [...]}}
    - document only: the query_string node
    """
    filter_conditions = FilterBuilder.build_search_filter(where)
    doc_query = FilterBuilder.build_document_query(where_document)

    if doc_query is None:
        if not filter_conditions:
            return None
        if unwrap_single and len(filter_conditions) == 1:
            condition = filter_conditions[0]
            if "range" in condition or "term" in condition:
                return condition
        return {"bool": {"filter": filter_conditions}}

    if filter_conditions:
        return {"bool": {"must": [doc_query], "filter": filter_conditions}}
    return doc_query


def _resolve_query_vector(
    query_embeddings: Optional[List[List[float]]],
    query_texts: Optional[List[str]],
    dimension: int,
    embedding_function: Any,
) -> List[float]:
    if query_embeddings is not None:
        if not query_embeddings:
            raise InvalidInputError("knn.query_embeddings must not be empty")
        vector = query_embeddings[0]
    elif query_texts is not None:
        if not query_texts:
            raise InvalidInputError("knn.query_texts must not be empty")
        if embedding_function is None:
            raise EmbeddingError(
                "knn.query_texts provided but collection has no embedding_function; "
                "provide query_embeddings or set embedding_function."
            )
        generated = embed_documents(embedding_function, [query_texts[0]])
        if not generated:
            raise InvalidInputError("embedding_function returned empty embeddings for knn.query_texts")
        vector = generated[0]
    else:
        raise InvalidInputError("knn requires either query_embeddings or query_texts")

    validate_dimension(vector, dimension)
    return [float(v) for v in vector]


def build_knn_expression(knn: HybridKnn, dimension: int, embedding_function: Any = None) -> Dict[str, Any]:
    """
    Build the "knn" part. The query vector is resolved and its dimension
    checked before anything is sent to the server.
    """
    query_vector = _resolve_query_vector(knn.query_embeddings, knn.query_texts, dimension, embedding_function)
    expr: Dict[str, Any] = {
        "field": CollectionFieldNames.EMBEDDING,
        "k": knn.n_results if knn.n_results is not None else DEFAULT_KNN_K,
        "query_vector": query_vector,
    }
    filter_conditions = FilterBuilder.build_search_filter(knn.where)
    if filter_conditions:
        expr["filter"] = filter_conditions
    return expr


def build_rank_expression(rank: HybridRank) -> Dict[str, Any]:
    return rank.to_dict()


def build_search_parm(
    query: Optional[HybridQuery],
    knn: Optional[HybridKnn],
    rank: Optional[HybridRank],
    n_results: int,
    dimension: int,
    embedding_function: Any = None,
) -> Optional[Dict[str, Any]]:
    """
    Assemble search_parm from typed parts

    Returns:
        The search_parm dict, or None when no part produced anything
    """
    search_parm: Dict[str, Any] = {}

    if query is not None:
        query_expr = build_query_expression(query.where, query.where_document)
        if query_expr is not None:
            search_parm["query"] = query_expr

    if knn is not None:
        search_parm["knn"] = build_knn_expression(knn, dimension, embedding_function)

    if rank is not None:
        search_parm["rank"] = build_rank_expression(rank)

    if not search_parm:
        return None
    search_parm["size"] = n_results
    return search_parm


def build_text_search_parm(
    queries: Sequence[str],
    where: WhereParam,
    where_document: WhereDocumentParam,
    n_results: int,
    dimension: int,
    embedding_function: Any = None,
) -> Optional[Dict[str, Any]]:
    """
    Assemble search_parm for a text-query hybrid search

    The metadata filter restricts both the query part (always wrapped in
    bool.filter) and the knn part built from the first query text, with
    k = n_results.
    """
    search_parm: Dict[str, Any] = {}

    query_expr = build_query_expression(where, where_document, unwrap_single=False)
    if query_expr is not None:
        search_parm["query"] = query_expr

    if queries:
        if embedding_function is None:
            raise EmbeddingError(
                "Hybrid search requires embedding_function for text queries; "
                "provide search_params with knn.query_vector or set embedding_function."
            )
        query_vector = _resolve_query_vector(None, list(queries), dimension, embedding_function)
        knn_expr: Dict[str, Any] = {
            "field": CollectionFieldNames.EMBEDDING,
            "k": n_results,
            "query_vector": query_vector,
        }
        filter_conditions = FilterBuilder.build_search_filter(where)
        if filter_conditions:
            knn_expr["filter"] = filter_conditions
        search_parm["knn"] = knn_expr

    if not search_parm:
        return None
    search_parm["size"] = n_results
    return search_parm


def to_search_parm_json(search_parm: Optional[Dict[str, Any]]) -> str:
    """Serialize search_parm ("" when there is nothing to search)"""
    if not search_parm:
        return ""
    return json.dumps(search_parm, ensure_ascii=False)


def is_invalid_argument_error(error: BaseException) -> bool:
    """True for the engine's rejection of a search_parm it cannot handle"""
    if not isinstance(error, SqlError):
        return False
    if error.code == INVALID_ARGUMENT_ERROR_CODE:
        return True
    message = str(error).lower()
    return "invalid argument" in message or str(INVALID_ARGUMENT_ERROR_CODE) in message
