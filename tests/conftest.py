"""
Shared fixtures: a recording fake backend and a deterministic embedding function
"""
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest

# Add project path
project_root = Path(__file__).resolve().parent.parent
if str(project_root / "src") not in sys.path:
    sys.path.insert(0, str(project_root / "src"))

from seekql.client.base_connection import BackendRow
from seekql.client.client_base import BaseClient
from seekql.client.collection import Collection
from seekql.client.database import Database


class RecordingClient(BaseClient):
    """
    In-memory backend that records every statement and replays scripted results.

    ``script`` entries are ``(needle, result)``: the first entry whose needle is a
    substring of the SQL is consumed. A result that is an exception instance is
    raised, anything else is a list of row dicts. Unmatched statements return no rows.
    """

    def __init__(self, script: Optional[List[tuple]] = None):
        self.calls: List[tuple] = []
        self.script: List[tuple] = list(script or [])
        self._connection = None

    def respond(self, needle: str, result: Any) -> "RecordingClient":
        self.script.append((needle, result))
        return self

    def _replay(self, sql: str) -> List[BackendRow]:
        for i, (needle, result) in enumerate(self.script):
            if needle in sql:
                del self.script[i]
                if isinstance(result, BaseException):
                    raise result
                return [BackendRow(row) for row in result]
        return []

    def statements(self, prefix: str = "") -> List[tuple]:
        """Recorded (sql, params) pairs whose SQL starts with prefix"""
        return [call for call in self.calls if call[0].startswith(prefix)]

    # ==================== BaseConnection ====================

    def _ensure_connection(self) -> Any:
        return self

    def is_connected(self) -> bool:
        return False

    def _cleanup(self):
        pass

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> None:
        self.calls.append((sql, params))
        self._replay(sql)

    def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[BackendRow]:
        self.calls.append((sql, params))
        return self._replay(sql)

    def get_raw_connection(self) -> Any:
        return None

    @property
    def mode(self) -> str:
        return "RecordingClient"

    # ==================== AdminAPI ====================

    def create_database(self, name: str, tenant: str = "test") -> None:
        self.execute(f"CREATE DATABASE `{name}`")

    def get_database(self, name: str, tenant: str = "test") -> Database:
        return Database(name=name, tenant=tenant)

    def delete_database(self, name: str, tenant: str = "test") -> None:
        self.execute(f"DROP DATABASE `{name}`")

    def list_databases(self, limit=None, offset=None, tenant: str = "test") -> Sequence[Database]:
        return []


class FakeEmbeddingFunction:
    """Maps each document to [len(doc), 1, 0, ...] and records the calls"""

    def __init__(self, dimension: int = 3):
        self._dimension = dimension
        self.calls: List[List[str]] = []

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed_documents(self, documents: List[str]) -> List[List[float]]:
        self.calls.append(list(documents))
        return [
            [float(len(doc)), 1.0] + [0.0] * (self._dimension - 2)
            for doc in documents
        ]


def row(**values: Any) -> Dict[str, Any]:
    """Row dict; use _id= for the id column"""
    return dict(values)


@pytest.fixture
def client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def embedding_function() -> FakeEmbeddingFunction:
    return FakeEmbeddingFunction(dimension=3)


@pytest.fixture
def collection(client, embedding_function) -> Collection:
    return Collection(
        client=client,
        name="docs",
        dimension=3,
        distance="l2",
        embedding_function=embedding_function,
    )


@pytest.fixture
def bare_collection(client) -> Collection:
    """Collection without an embedding function"""
    return Collection(client=client, name="vecs", dimension=3, distance="cosine")
