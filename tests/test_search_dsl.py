"""
Hybrid search DSL compilation tests - metadata filters to term/range/terms
nodes, document filters to query_string
"""
from seekql.client.filter_builder import FilterBuilder
from seekql.client.filters import (
    And, Contains, DocAnd, DocOr, Eq, Gt, Gte, In, Lte, Ne, Nin, Not, Or, Regex,
)
from seekql.client.hybrid_search import build_query_expression


def path(field: str) -> str:
    return f"(JSON_EXTRACT(metadata, '$.{field}'))"


class TestSearchFilter:
    """Metadata filter -> filter condition list"""

    def test_single_eq_is_term(self):
        assert FilterBuilder.build_search_filter(Eq("category", "AI")) == [
            {"term": {path("category"): "AI"}}
        ]

    def test_range_and_terms(self):
        assert FilterBuilder.build_search_filter(Gte("score", 90)) == [
            {"range": {path("score"): {"gte": 90}}}
        ]
        assert FilterBuilder.build_search_filter(In("tag", ["a", "b"])) == [
            {"terms": {path("tag"): ["a", "b"]}}
        ]

    def test_negations(self):
        assert FilterBuilder.build_search_filter(Ne("year", 2020)) == [
            {"bool": {"must_not": [{"term": {path("year"): 2020}}]}}
        ]
        assert FilterBuilder.build_search_filter(Nin("tag", ["x"])) == [
            {"bool": {"must_not": [{"terms": {path("tag"): ["x"]}}]}}
        ]

    def test_and_of_two_is_bool_must(self):
        result = FilterBuilder.build_search_filter(And([Eq("category", "AI"), Gt("year", 2020)]))
        assert result == [{
            "bool": {"must": [
                {"term": {path("category"): "AI"}},
                {"range": {path("year"): {"gt": 2020}}},
            ]}
        }]

    def test_single_child_is_unwrapped(self):
        assert FilterBuilder.build_search_filter(Or([Lte("x", 1)])) == [
            {"range": {path("x"): {"lte": 1}}}
        ]

    def test_or_and_not(self):
        node = Or([Eq("a", 1), Not(Eq("b", 2))])
        assert FilterBuilder.build_search_filter(node) == [{
            "bool": {"should": [
                {"term": {path("a"): 1}},
                {"bool": {"must_not": [{"term": {path("b"): 2}}]}},
            ]}
        }]

    def test_no_filter(self):
        assert FilterBuilder.build_search_filter(None) == []

    def test_empty_membership_is_no_condition(self):
        """Same meaning as in build_where_clause: an empty list filters nothing"""
        assert FilterBuilder.build_search_filter(In("a", [])) == []
        assert FilterBuilder.build_search_filter(Nin("a", [])) == []
        assert FilterBuilder.build_search_filter(Not(In("a", []))) == []
        assert FilterBuilder.build_search_filter(And((In("a", []), Eq("b", 1)))) == [
            {"term": {path("b"): 1}}
        ]


class TestDocumentQuery:
    """Document filter -> query_string node"""

    def test_contains(self):
        assert FilterBuilder.build_document_query(Contains("machine learning")) == {
            "query_string": {"fields": ["document"], "query": "machine learning"}
        }

    def test_and_joins_with_space(self):
        node = DocAnd([Contains("machine"), Contains("learning")])
        assert FilterBuilder.build_document_query(node)["query_string"]["query"] == "machine learning"

    def test_or_joins_with_or(self):
        node = DocOr([Contains("python"), Contains("rust")])
        assert FilterBuilder.build_document_query(node)["query_string"]["query"] == "python OR rust"

    def test_regex_is_dropped(self):
        assert FilterBuilder.build_document_query(Regex("^a")) is None
        node = DocAnd([Regex("^a"), Contains("b")])
        assert FilterBuilder.build_document_query(node)["query_string"]["query"] == "b"


class TestQueryExpression:
    """Combined query part of search_parm"""

    def test_metadata_only_single_condition(self):
        assert build_query_expression(Eq("a", 1)) == {"term": {path("a"): 1}}

    def test_metadata_only_wrapped_when_requested(self):
        assert build_query_expression(Eq("a", 1), unwrap_single=False) == {
            "bool": {"filter": [{"term": {path("a"): 1}}]}
        }

    def test_document_and_metadata(self):
        expr = build_query_expression({"a": 1}, {"$contains": "ml"})
        assert expr == {
            "bool": {
                "must": [{"query_string": {"fields": ["document"], "query": "ml"}}],
                "filter": [{"term": {path("a"): 1}}],
            }
        }

    def test_nothing(self):
        assert build_query_expression(None, None) is None
