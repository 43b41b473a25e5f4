"""
Collection DQL tests - query, get, peek and count
"""
import pytest

from seekql.client.errors import EmbeddingError, InvalidInputError, SqlError

QUERY_SQL = (
    "SELECT _id, document, metadata, l2_distance(embedding, %s) AS distance "
    "FROM `c$v1$docs` ORDER BY l2_distance(embedding, %s) APPROXIMATE LIMIT %s"
)


class TestCollectionQuery:
    """Vector similarity search, one statement per query vector"""

    def test_single_vector(self, client, collection):
        client.respond("APPROXIMATE", [
            {"_id": b"a", "document": "first", "metadata": '{"k": 1}', "distance": 0.1},
            {"_id": b"b", "document": None, "metadata": None, "distance": 0.4},
        ])

        results = collection.query(query_embeddings=[1.0, 2.0, 3.0], n_results=2)

        assert client.calls == [(QUERY_SQL, ["[1,2,3]", "[1,2,3]", 2])]
        assert results["ids"] == [["a", "b"]]
        assert results["distances"] == [[0.1, 0.4]]
        assert results["documents"] == [["first", None]]
        assert results["metadatas"] == [[{"k": 1}, None]]
        assert results.embeddings is None

    def test_k_vectors_give_k_slots(self, client, collection):
        client.respond("APPROXIMATE", [{"_id": b"a", "distance": 0.0}])
        results = collection.query(query_embeddings=[[1, 2, 3], [4, 5, 6]], include=["embeddings"])
        assert len(client.calls) == 2
        assert results.ids == [["a"], []]
        assert results.embeddings == [[None], []]
        assert results.documents is None

    def test_where_parameters_between_vectors(self, client, collection):
        collection.query(query_embeddings=[1, 2, 3], n_results=5, where={"a": 1}, where_document="ml")
        sql, params = client.calls[0]
        assert sql == (
            "SELECT _id, document, metadata, l2_distance(embedding, %s) AS distance FROM `c$v1$docs` "
            "WHERE JSON_EXTRACT(metadata, '$.a') = %s "
            "AND MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE) "
            "ORDER BY l2_distance(embedding, %s) APPROXIMATE LIMIT %s"
        )
        assert params == ["[1,2,3]", 1, "ml", "[1,2,3]", 5]

    def test_distance_function_follows_collection(self, client, bare_collection):
        bare_collection.query(query_embeddings=[1, 0, 0])
        assert "cosine_distance(embedding, %s)" in client.calls[0][0]

    def test_query_texts(self, client, collection, embedding_function):
        collection.query(query_texts="hello", n_results=1)
        assert embedding_function.calls == [["hello"]]
        assert client.calls[0][1] == ["[5,1,0]", "[5,1,0]", 1]

    def test_query_texts_without_embedding_function(self, client, bare_collection):
        with pytest.raises(EmbeddingError):
            bare_collection.query(query_texts=["hello"])
        assert client.calls == []

    def test_invalid_requests_before_io(self, client, collection):
        with pytest.raises(InvalidInputError):
            collection.query()
        with pytest.raises(InvalidInputError):
            collection.query(query_embeddings=[])
        with pytest.raises(InvalidInputError):
            collection.query(query_embeddings=[1, 2, 3], n_results=0)
        with pytest.raises(InvalidInputError, match="dimension"):
            collection.query(query_embeddings=[[1, 2, 3], [1, 2]])
        assert client.calls == []

    def test_backend_errors_propagate(self, client, collection):
        client.respond("APPROXIMATE", SqlError("Unknown column", 1054))
        with pytest.raises(SqlError) as exc_info:
            collection.query(query_embeddings=[1, 2, 3])
        assert exc_info.value.code == 1054


class TestCollectionGet:
    """Filtered fetch with LIMIT / OFFSET handling"""

    def test_get_all(self, client, collection):
        collection.get()
        assert client.calls == [("SELECT _id, document, metadata FROM `c$v1$docs`", [])]

    def test_limit_without_offset(self, client, collection):
        collection.get(limit=5)
        sql, params = client.calls[0]
        assert sql.endswith(" LIMIT %s")
        assert "OFFSET" not in sql
        assert params == [5]

    def test_offset_without_limit(self, client, collection):
        collection.get(offset=3)
        sql, params = client.calls[0]
        assert sql.endswith(" LIMIT 18446744073709551615 OFFSET %s")
        assert params == [3]

    def test_limit_and_offset(self, client, collection):
        collection.get(ids=["a"], limit=2, offset=1, include=["embeddings"])
        sql, params = client.calls[0]
        assert sql == "SELECT _id, embedding FROM `c$v1$docs` WHERE _id IN (%s) LIMIT %s OFFSET %s"
        assert params == ["a", 2, 1]

    def test_rows_are_normalized(self, client, collection):
        client.respond("SELECT", [
            {"_id": b"a", "document": "doc", "metadata": b'{"k": 1}'},
        ])
        result = collection.get(ids="a")
        assert result.ids == ["a"]
        assert result.documents == ["doc"]
        assert result.metadatas == [{"k": 1}]

    def test_negative_limit(self, client, collection):
        with pytest.raises(InvalidInputError):
            collection.get(limit=-1)
        assert client.calls == []

    def test_peek_returns_all_fields(self, client, collection):
        client.respond("SELECT", [{"_id": b"a", "document": "d", "metadata": None, "embedding": "[1,2,3]"}])
        result = collection.peek(limit=3)
        assert client.calls[0][0].startswith("SELECT _id, document, metadata, embedding FROM `c$v1$docs`")
        assert client.calls[0][1] == [3, 0]
        assert result.embeddings == [[1.0, 2.0, 3.0]]


class TestCollectionCount:

    def test_count(self, client, collection):
        client.respond("COUNT(*)", [{"cnt": 42}])
        assert collection.count() == 42
        assert client.calls == [("SELECT COUNT(*) AS cnt FROM `c$v1$docs`", None)]

    def test_count_without_rows(self, client, collection):
        assert collection.count() == 0

    def test_count_unreadable(self, client, collection):
        client.respond("COUNT(*)", [{"cnt": "many"}])
        assert collection.count() == 0
