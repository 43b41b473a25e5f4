"""
Filter AST tests - dictionary parsing, operator overloads and validation
"""
import numpy as np
import pytest

from seekql.client.errors import InvalidInputError
from seekql.client.filters import (
    DOCUMENT,
    K,
    And,
    Contains,
    DocAnd,
    DocOr,
    Eq,
    Gt,
    Gte,
    In,
    Lt,
    Ne,
    Nin,
    Not,
    Or,
    Regex,
    as_doc_filter,
    as_filter,
    combine_filters,
    parse_where,
    parse_where_document,
)


class TestParseWhere:
    """Chroma-style metadata dictionaries"""

    def test_plain_value_is_equality(self):
        """A bare value means $eq"""
        assert parse_where({"category": "AI"}) == Eq("category", "AI")

    def test_operator_dictionary(self):
        """Several operators on one field are AND-ed"""
        node = parse_where({"score": {"$gte": 90, "$lt": 100}})
        assert node == And((Gte("score", 90), Lt("score", 100)))

    def test_membership_operators(self):
        assert parse_where({"tag": {"$in": ["a", "b"]}}) == In("tag", ("a", "b"))
        assert parse_where({"tag": {"$nin": ["c"]}}) == Nin("tag", ("c",))

    def test_logical_operators(self):
        node = parse_where({
            "$or": [
                {"category": "AI"},
                {"$not": {"year": {"$gt": 2020}}},
            ]
        })
        assert node == Or((Eq("category", "AI"), Not(Gt("year", 2020))))

    def test_multiple_keys_are_anded(self):
        node = parse_where({"category": "AI", "year": {"$ne": 2019}})
        assert node == And((Eq("category", "AI"), Ne("year", 2019)))

    def test_empty_dictionary_is_no_filter(self):
        assert parse_where({}) is None
        assert parse_where({"$and": []}) is None

    def test_unknown_operators_rejected(self):
        with pytest.raises(InvalidInputError):
            parse_where({"$xor": []})
        with pytest.raises(InvalidInputError):
            parse_where({"score": {"$between": [1, 2]}})

    def test_in_requires_list(self):
        with pytest.raises(InvalidInputError):
            parse_where({"tag": {"$in": "a"}})

    def test_non_scalar_value_rejected(self):
        with pytest.raises(InvalidInputError):
            parse_where({"tag": {"$eq": {"nested": 1}}})

    def test_numpy_scalars_are_unwrapped(self):
        """Values read from numpy arrays become plain Python scalars"""
        node = Eq("n", np.int64(3))
        assert node == Eq("n", 3)
        assert type(node.value) is int
        assert type(Gt("x", np.float32(0.5)).value) is float
        assert Eq("flag", np.bool_(True)).value is True
        assert In("n", np.array([1, 2])).values == (1, 2)
        assert parse_where({"n": {"$gte": np.int32(7)}}) == Gte("n", 7)


class TestParseWhereDocument:
    """Document filter dictionaries"""

    def test_string_means_contains(self):
        assert parse_where_document("python") == Contains("python")

    def test_operators(self):
        assert parse_where_document({"$contains": "ml"}) == Contains("ml")
        assert parse_where_document({"$regex": "^a"}) == Regex("^a")

    def test_nested(self):
        node = parse_where_document({"$or": [{"$contains": "a"}, {"$contains": "b"}]})
        assert node == DocOr((Contains("a"), Contains("b")))

    def test_unknown_operator(self):
        with pytest.raises(InvalidInputError):
            parse_where_document({"$startswith": "a"})


class TestFilterHelpers:
    """Fluent builders and coercion helpers"""

    def test_k_comparisons(self):
        assert (K("year") >= 2020) == Gte("year", 2020)
        assert (K("category") == "AI") == Eq("category", "AI")
        assert K("tag").is_in(["x", "y"]) == In("tag", ("x", "y"))
        assert K("tag").not_in(["z"]) == Nin("tag", ("z",))

    def test_operators_build_boolean_nodes(self):
        node = (K("a") == 1) & ~(K("b") < 2) | (K("c") != 3)
        assert node == Or((And((Eq("a", 1), Not(Lt("b", 2)))), Ne("c", 3)))

    def test_document_builder(self):
        node = DOCUMENT.contains("a") & DOCUMENT.regex("b")
        assert node == DocAnd((Contains("a"), Regex("b")))

    def test_as_filter_accepts_both_forms(self):
        assert as_filter(None) is None
        assert as_filter(Eq("a", 1)) == Eq("a", 1)
        assert as_filter({"a": 1}) == Eq("a", 1)
        with pytest.raises(InvalidInputError):
            as_filter("a = 1")

    def test_as_doc_filter(self):
        assert as_doc_filter("text") == Contains("text")
        with pytest.raises(InvalidInputError):
            as_doc_filter(42)

    def test_combine_filters(self):
        assert combine_filters(None, None) is None
        assert combine_filters(Eq("a", 1), None) == Eq("a", 1)
        assert combine_filters(None, Eq("b", 2)) == Eq("b", 2)
        assert combine_filters(Eq("a", 1), Eq("b", 2)) == And((Eq("a", 1), Eq("b", 2)))

    def test_children_must_be_filters(self):
        with pytest.raises(InvalidInputError):
            And([Eq("a", 1), {"b": 2}])
        with pytest.raises(InvalidInputError):
            Not("a")

    def test_nodes_are_immutable(self):
        node = Eq("a", 1)
        with pytest.raises(AttributeError):
            node.value = 2
