"""
End-to-end tests against a running seekdb / OceanBase server

Configured via SERVER_HOST / SERVER_PORT / SERVER_TENANT / SERVER_DATABASE /
SERVER_USER / SERVER_PASSWORD; skipped when SERVER_HOST is not set.
"""
import os
import time

import pytest

import seekql
from seekql import HNSWConfiguration, HybridKnn, HybridQuery, HybridRank, K, DOCUMENT

pytestmark = pytest.mark.skipif(
    not os.environ.get("SERVER_HOST"),
    reason="SERVER_HOST is not set",
)


@pytest.fixture
def client():
    client = seekql.Client()
    yield client
    client.close()


@pytest.fixture
def collection(client):
    name = f"test_collection_{int(time.time() * 1000)}"
    collection = client.create_collection(
        name,
        configuration=HNSWConfiguration(dimension=3, distance="l2"),
        embedding_function=None,
    )
    yield collection
    try:
        client.delete_collection(name)
    except seekql.NotFoundError:
        pass


class TestServerRoundTrip:
    """Real statements through pymysql"""

    def test_collection_lifecycle(self, client, collection):
        assert client.has_collection(collection.name)
        fetched = client.get_collection(collection.name, embedding_function=None)
        assert fetched.dimension == 3
        assert fetched.distance == seekql.DistanceMetric.L2
        assert collection.name in client.list_collection_names()

    def test_add_query_get_delete(self, collection):
        collection.add(
            ids=["1", "2", "3"],
            embeddings=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]],
            documents=["machine learning basics", "cooking pasta", "deep learning models"],
            metadatas=[{"category": "AI", "year": 2021}, {"category": "food", "year": 2019}, {"category": "AI", "year": 2023}],
        )
        assert collection.count() == 3

        results = collection.query(query_embeddings=[1.0, 0.1, 0.0], n_results=2, include=["embeddings"])
        assert results.ids[0][0] == "1"
        assert len(results.embeddings[0][0]) == 3

        fetched = collection.get(where=(K("category") == "AI") & (K("year") >= 2022))
        assert fetched.ids == ["3"]

        collection.update(ids="2", metadatas={"category": "AI", "year": 2024})
        collection.upsert(ids=["4"], embeddings=[[1.0, 1.0, 0.0]], documents=["new row"])
        assert collection.count() == 4
        assert collection.get(ids="2").metadatas == [{"category": "AI", "year": 2024}]

        collection.delete(where={"category": "food"})
        collection.delete(ids=["4"])
        assert collection.count() == 3

    def test_hybrid_search(self, collection):
        collection.add(
            ids=["1", "2"],
            embeddings=[[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]],
            documents=["vector search engine", "relational database"],
            metadatas=[{"tag": "search"}, {"tag": "db"}],
        )
        results = collection.hybrid_search(
            query=HybridQuery(where_document=DOCUMENT.contains("vector")),
            knn=HybridKnn(query_embeddings=[[1.0, 0.0, 0.0]], n_results=2),
            rank=HybridRank.rrf(),
            n_results=2,
        )
        assert len(results.ids) == 1
        assert "1" in results.ids[0]
