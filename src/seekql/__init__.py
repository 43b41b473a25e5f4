"""
seekql - vector collections on seekdb / OceanBase over SQL

Collections store documents, metadata and embeddings in one table and support
vector similarity search, metadata / full-text filtering and hybrid search.

Examples:
    >>> import seekql

    >>> client = seekql.Client(
    ...     host='localhost',
    ...     port=2881,
    ...     tenant="sys",
    ...     database="test",
    ...     user="root",
    ...     password="pass"
    ... )
    >>> collection = client.get_or_create_collection("articles")
    >>> collection.add(ids=["1"], documents=["Vector search on SQL"], metadatas=[{"year": 2024}])
    >>> results = collection.query(query_texts=["vector databases"], where={"year": {"$gte": 2020}})

    >>> # Admin client - Database management
    >>> admin = seekql.AdminClient(host='localhost', port=2881, tenant="sys", user="root")
    >>> admin.create_database("new_db")
"""
import importlib.metadata

from .client import (
    BaseConnection,
    BaseClient,
    ClientAPI,
    HNSWConfiguration,
    DistanceMetric,
    ServerConfig,
    DEFAULT_VECTOR_DIMENSION,
    DEFAULT_DISTANCE_METRIC,
    EmbeddingFunction,
    DefaultEmbeddingFunction,
    get_default_embedding_function,
    RemoteServerClient,
    Client,
    Collection,
    AdminAPI,
    AdminClient,
    Database,
    GetResult,
    QueryResult,
    HybridQuery,
    HybridKnn,
    HybridRank,
    IncludeField,
    Filter,
    DocFilter,
    Eq, Ne, Gt, Gte, Lt, Lte, In, Nin, And, Or, Not,
    Contains, Regex, DocAnd, DocOr,
    K,
    DOCUMENT,
    SeekqlError,
    InvalidInputError,
    ConfigError,
    NotFoundError,
    EmbeddingError,
    SerializationError,
    SqlError,
    BackendConnectionError,
)

try:
  __version__ = importlib.metadata.version("seekql")
except importlib.metadata.PackageNotFoundError:
  __version__ = "0.0.1.dev1"

__all__ = [
    'BaseConnection',
    'BaseClient',
    'ClientAPI',
    'HNSWConfiguration',
    'DistanceMetric',
    'ServerConfig',
    'DEFAULT_VECTOR_DIMENSION',
    'DEFAULT_DISTANCE_METRIC',
    'EmbeddingFunction',
    'DefaultEmbeddingFunction',
    'get_default_embedding_function',
    'RemoteServerClient',
    'Client',
    'Collection',
    'AdminAPI',
    'AdminClient',
    'Database',
    'GetResult',
    'QueryResult',
    'HybridQuery',
    'HybridKnn',
    'HybridRank',
    'IncludeField',
    'Filter',
    'DocFilter',
    'Eq', 'Ne', 'Gt', 'Gte', 'Lt', 'Lte', 'In', 'Nin', 'And', 'Or', 'Not',
    'Contains', 'Regex', 'DocAnd', 'DocOr',
    'K',
    'DOCUMENT',
    'SeekqlError',
    'InvalidInputError',
    'ConfigError',
    'NotFoundError',
    'EmbeddingError',
    'SerializationError',
    'SqlError',
    'BackendConnectionError',
]
