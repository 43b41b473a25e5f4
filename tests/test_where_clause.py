"""
SQL WHERE clause compilation tests
"""
from seekql.client.filter_builder import FilterBuilder, SqlWhere
from seekql.client.filters import (
    And, Contains, DocAnd, DocOr, Eq, Gte, In, Lt, Ne, Nin, Not, Or, Regex,
)


def meta(field: str) -> str:
    return f"JSON_EXTRACT(metadata, '$.{field}')"


MATCH = "MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE)"


class TestMetadataFilter:
    """Metadata predicates compile to JSON_EXTRACT comparisons with bound values"""

    def test_comparisons(self):
        assert FilterBuilder.build_metadata_filter(Eq("category", "AI")) == (f"{meta('category')} = %s", ["AI"])
        assert FilterBuilder.build_metadata_filter(Ne("year", 2020)) == (f"{meta('year')} != %s", [2020])
        assert FilterBuilder.build_metadata_filter(Gte("score", 9.5)) == (f"{meta('score')} >= %s", [9.5])

    def test_membership(self):
        clause, params = FilterBuilder.build_metadata_filter(In("tag", ["a", "b"]))
        assert clause == f"{meta('tag')} IN (%s, %s)"
        assert params == ["a", "b"]

        clause, params = FilterBuilder.build_metadata_filter(Nin("tag", ["c"]))
        assert clause == f"{meta('tag')} NOT IN (%s)"
        assert params == ["c"]

    def test_empty_membership_is_no_predicate(self):
        """An empty IN list must never produce "IN ()" """
        assert FilterBuilder.build_metadata_filter(In("tag", [])) == ("", [])

    def test_boolean_nesting(self):
        node = Or([And([Eq("a", 1), Lt("b", 2)]), Not(Eq("c", 3))])
        clause, params = FilterBuilder.build_metadata_filter(node)
        assert clause == (
            f"(({meta('a')} = %s AND {meta('b')} < %s) OR NOT ({meta('c')} = %s))"
        )
        assert params == [1, 2, 3]

    def test_empty_children_are_skipped(self):
        node = And([In("tag", []), Eq("a", 1)])
        assert FilterBuilder.build_metadata_filter(node) == (f"({meta('a')} = %s)", [1])

    def test_all_children_empty_gives_no_predicate(self):
        node = Or([In("tag", []), Not(Nin("x", []))])
        assert FilterBuilder.build_metadata_filter(node) == ("", [])

    def test_dictionary_input(self):
        clause, params = FilterBuilder.build_metadata_filter({"age": {"$gte": 18}, "city": "Beijing"})
        assert clause == f"({meta('age')} >= %s AND {meta('city')} = %s)"
        assert params == [18, "Beijing"]


class TestDocumentFilter:
    """Document predicates: full-text MATCH and REGEXP"""

    def test_contains(self):
        assert FilterBuilder.build_document_filter(Contains("python")) == (MATCH, ["python"])

    def test_regex(self):
        assert FilterBuilder.build_document_filter(Regex("^a.*z$")) == ("document REGEXP %s", ["^a.*z$"])

    def test_nested(self):
        node = DocOr([Contains("a"), DocAnd([Contains("b"), Regex("c")])])
        clause, params = FilterBuilder.build_document_filter(node)
        assert clause == f"({MATCH} OR ({MATCH} AND document REGEXP %s))"
        assert params == ["a", "b", "c"]


class TestWhereClause:
    """Full clause assembly: ids, then metadata, then document"""

    def test_no_filters(self):
        result = FilterBuilder.build_where_clause()
        assert result == SqlWhere()
        assert result.is_empty

    def test_all_parts(self):
        result = FilterBuilder.build_where_clause(Eq("category", "AI"), Contains("python"), ["a", "b"])
        assert result.clause == (
            f"WHERE _id IN (%s, %s) AND {meta('category')} = %s AND {MATCH}"
        )
        assert result.params == ["a", "b", "AI", "python"]

    def test_ids_bound_as_strings(self):
        result = FilterBuilder.build_where_clause(ids=[1, 2])
        assert result.params == ["1", "2"]

    def test_filter_that_compiles_to_nothing(self):
        result = FilterBuilder.build_where_clause(In("tag", []))
        assert result.is_empty
        assert result.params == []
