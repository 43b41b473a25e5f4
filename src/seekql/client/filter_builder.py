"""
Filter compilers

One filter AST, two targets:
- SQL WHERE clauses with %s placeholders for plain get/query/delete statements
- JSON query nodes for the DBMS_HYBRID_SEARCH engine

SQL values are always bound as parameters, never inlined.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .filters import (
    Filter, Eq, Ne, Gt, Gte, Lt, Lte, In, Nin, And, Or, Not,
    DocFilter, Contains, Regex, DocAnd, DocOr,
    WhereParam, WhereDocumentParam, as_filter, as_doc_filter,
)
from .meta_info import CollectionFieldNames

logger = logging.getLogger(__name__)


@dataclass
class SqlWhere:
    """
    Compiled WHERE clause.

    ``clause`` is either "" or starts with "WHERE "; ``params`` holds one value
    per %s placeholder, ordered ids, then metadata, then document.
    """
    clause: str = ""
    params: List[Any] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.clause


class FilterBuilder:
    """Build SQL WHERE clauses and hybrid search query nodes from filters"""

    # Comparison operators mapping
    COMPARISON_OPS = {
        Eq: "=",
        Ne: "!=",
        Gt: ">",
        Gte: ">=",
        Lt: "<",
        Lte: "<=",
    }

    RANGE_OPS = {
        Gt: "gt",
        Gte: "gte",
        Lt: "lt",
        Lte: "lte",
    }

    # ==================== SQL ====================

    @staticmethod
    def build_where_clause(
        where: WhereParam = None,
        where_document: WhereDocumentParam = None,
        ids: Optional[Sequence[str]] = None,
    ) -> SqlWhere:
        """
        Build a complete WHERE clause from ids, metadata filter and document filter

        Examples:
            build_where_clause(Eq("category", "AI"), Contains("python"), ["a"])
            -> SqlWhere("WHERE _id IN (%s) AND JSON_EXTRACT(metadata, '$.category') = %s
                         AND MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE)",
                        ["a", "AI", "python"])
        """
        clauses: List[str] = []
        params: List[Any] = []

        if ids:
            placeholders = ", ".join(["%s"] * len(ids))
            clauses.append(f"{CollectionFieldNames.ID} IN ({placeholders})")
            params.extend(str(id_val) for id_val in ids)

        meta_clause, meta_params = FilterBuilder.build_metadata_filter(where)
        if meta_clause:
            clauses.append(meta_clause)
            params.extend(meta_params)

        doc_clause, doc_params = FilterBuilder.build_document_filter(where_document)
        if doc_clause:
            clauses.append(doc_clause)
            params.extend(doc_params)

        if not clauses:
            return SqlWhere()
        return SqlWhere(clause=f"WHERE {' AND '.join(clauses)}", params=params)

    @staticmethod
    def build_metadata_filter(
        where: WhereParam,
        metadata_column: str = CollectionFieldNames.METADATA
    ) -> Tuple[str, List[Any]]:
        """
        Build a WHERE fragment for metadata filtering

        Examples:
            Gte("age", 18)
            -> ("JSON_EXTRACT(metadata, '$.age') >= %s", [18])

            {"$and": [{"age": {"$gte": 18}}, {"city": "Beijing"}]}
            -> ("(JSON_EXTRACT(metadata, '$.age') >= %s AND JSON_EXTRACT(metadata, '$.city') = %s)", [18, "Beijing"])
        """
        node = as_filter(where)
        if node is None:
            return "", []
        return FilterBuilder._build_condition(node, metadata_column)

    @staticmethod
    def build_document_filter(
        where_document: WhereDocumentParam,
        document_column: str = CollectionFieldNames.DOCUMENT
    ) -> Tuple[str, List[Any]]:
        """
        Build a WHERE fragment for document filtering

        Examples:
            Contains("python")
            -> ("MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE)", ["python"])

            Regex("^hello.*world$")
            -> ("document REGEXP %s", ["^hello.*world$"])
        """
        node = as_doc_filter(where_document)
        if node is None:
            return "", []
        return FilterBuilder._build_document_condition(node, document_column)

    @staticmethod
    def _build_condition(node: Filter, metadata_column: str) -> Tuple[str, List[Any]]:
        """Recursively compile a metadata filter; an empty fragment means no predicate"""
        node_type = type(node)

        if node_type in FilterBuilder.COMPARISON_OPS:
            sql_op = FilterBuilder.COMPARISON_OPS[node_type]
            return f"JSON_EXTRACT({metadata_column}, '$.{node.field}') {sql_op} %s", [node.value]

        if isinstance(node, (In, Nin)):
            if not node.values:
                return "", []
            placeholders = ", ".join(["%s"] * len(node.values))
            keyword = "IN" if isinstance(node, In) else "NOT IN"
            return (
                f"JSON_EXTRACT({metadata_column}, '$.{node.field}') {keyword} ({placeholders})",
                list(node.values),
            )

        if isinstance(node, (And, Or)):
            sub_clauses = []
            params: List[Any] = []
            for child in node.filters:
                sub_clause, sub_params = FilterBuilder._build_condition(child, metadata_column)
                if sub_clause:
                    sub_clauses.append(sub_clause)
                    params.extend(sub_params)
            if not sub_clauses:
                return "", []
            joiner = " AND " if isinstance(node, And) else " OR "
            return f"({joiner.join(sub_clauses)})", params

        if isinstance(node, Not):
            sub_clause, sub_params = FilterBuilder._build_condition(node.inner, metadata_column)
            if not sub_clause:
                return "", []
            return f"NOT ({sub_clause})", sub_params

        raise TypeError(f"Unsupported filter node: {node!r}")

    @staticmethod
    def _build_document_condition(node: DocFilter, document_column: str) -> Tuple[str, List[Any]]:
        """Build document filter condition"""
        if isinstance(node, Contains):
            # Full-text search using MATCH AGAINST
            return f"MATCH({document_column}) AGAINST (%s IN NATURAL LANGUAGE MODE)", [node.text]

        if isinstance(node, Regex):
            return f"{document_column} REGEXP %s", [node.pattern]

        if isinstance(node, (DocAnd, DocOr)):
            sub_clauses = []
            params: List[Any] = []
            for child in node.filters:
                sub_clause, sub_params = FilterBuilder._build_document_condition(child, document_column)
                if sub_clause:
                    sub_clauses.append(sub_clause)
                    params.extend(sub_params)
            if not sub_clauses:
                return "", []
            joiner = " AND " if isinstance(node, DocAnd) else " OR "
            return f"({joiner.join(sub_clauses)})", params

        raise TypeError(f"Unsupported document filter node: {node!r}")

    # ==================== Hybrid Search DSL ====================

    @staticmethod
    def _meta_path(field_name: str) -> str:
        return f"(JSON_EXTRACT({CollectionFieldNames.METADATA}, '$.{field_name}'))"

    @staticmethod
    def build_search_filter(where: WhereParam) -> List[Dict[str, Any]]:
        """
        Compile a metadata filter into hybrid search filter conditions

        Returns a list of condition nodes (empty when there is no filter).

        Examples:
            Eq("category", "AI")
            -> [{"term": {"(JSON_EXTRACT(metadata, '$.category'))": "AI"}}]

            And([Eq("category", "AI"), Gte("score", 90)])
            -> [{"bool": {"must": [{"term": ...}, {"range": ...}]}}]
        """
        node = as_filter(where)
        if node is None:
            return []
        return FilterBuilder._build_search_conditions(node)

    @staticmethod
    def _build_search_conditions(node: Filter) -> List[Dict[str, Any]]:
        node_type = type(node)

        if node_type is Eq:
            return [{"term": {FilterBuilder._meta_path(node.field): node.value}}]

        if node_type is Ne:
            term = {"term": {FilterBuilder._meta_path(node.field): node.value}}
            return [{"bool": {"must_not": [term]}}]

        if node_type in FilterBuilder.RANGE_OPS:
            range_op = FilterBuilder.RANGE_OPS[node_type]
            return [{"range": {FilterBuilder._meta_path(node.field): {range_op: node.value}}}]

        # Empty membership lists compile to no predicate, as in build_where_clause
        if node_type in (In, Nin) and not node.values:
            return []

        if node_type is In:
            return [{"terms": {FilterBuilder._meta_path(node.field): list(node.values)}}]

        if node_type is Nin:
            terms = {"terms": {FilterBuilder._meta_path(node.field): list(node.values)}}
            return [{"bool": {"must_not": [terms]}}]

        if isinstance(node, (And, Or)):
            conditions: List[Dict[str, Any]] = []
            for child in node.filters:
                conditions.extend(FilterBuilder._build_search_conditions(child))
            if len(conditions) <= 1:
                return conditions
            key = "must" if isinstance(node, And) else "should"
            return [{"bool": {key: conditions}}]

        if isinstance(node, Not):
            inner = FilterBuilder._build_search_conditions(node.inner)
            if not inner:
                return []
            return [{"bool": {"must_not": inner}}]

        raise TypeError(f"Unsupported filter node: {node!r}")

    @staticmethod
    def build_document_query(where_document: WhereDocumentParam) -> Optional[Dict[str, Any]]:
        """
        Compile a document filter into a query_string node

        DocAnd joins its Contains terms with a space, DocOr with " OR ".
        Regex has no query_string representation and compiles to None.

        Examples:
            Contains("machine learning")
            -> {"query_string": {"fields": ["document"], "query": "machine learning"}}
        """
        node = as_doc_filter(where_document)
        if node is None:
            return None

        if isinstance(node, Contains):
            query = node.text
        elif isinstance(node, (DocAnd, DocOr)):
            texts = [child.text for child in node.filters if isinstance(child, Contains)]
            if len(texts) < len(node.filters):
                logger.debug("Nested or regex document conditions are dropped from the hybrid search query")
            if not texts:
                return None
            query = (" " if isinstance(node, DocAnd) else " OR ").join(texts)
        elif isinstance(node, Regex):
            logger.debug(f"Regex document filter '{node.pattern}' is not supported by hybrid search, dropped")
            return None
        else:
            raise TypeError(f"Unsupported document filter node: {node!r}")

        return {"query_string": {"fields": [CollectionFieldNames.DOCUMENT], "query": query}}
