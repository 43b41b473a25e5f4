"""
seekql client package

Two entry points, each wrapping a RemoteServerClient:

- Client(): collections (create, get, query, hybrid search ...)
- AdminClient(): databases (create, get, list, delete)

Neither connects until the first statement is sent.
"""

import os
import logging
from dataclasses import replace
from typing import Optional

from .base_connection import BackendRow, BaseConnection
from .client_base import BaseClient, ClientAPI
from .configuration import (
    DEFAULT_DISTANCE_METRIC,
    DEFAULT_SERVER_PORT,
    DEFAULT_VECTOR_DIMENSION,
    DistanceMetric,
    HNSWConfiguration,
    ServerConfig,
)
from .embedding_function import (
    EmbeddingFunction,
    DefaultEmbeddingFunction,
    get_default_embedding_function
)
from .client_seekdb_server import RemoteServerClient
from .collection import Collection
from .database import Database
from .admin_client import AdminAPI, _AdminClientProxy, _ClientProxy
from .errors import (
    BackendConnectionError,
    ConfigError,
    EmbeddingError,
    InvalidInputError,
    NotFoundError,
    SeekqlError,
    SerializationError,
    SqlError,
)
from .filters import (
    DOCUMENT,
    K,
    And,
    Contains,
    DocAnd,
    DocFilter,
    DocOr,
    Eq,
    Filter,
    Gt,
    Gte,
    In,
    Lt,
    Lte,
    Ne,
    Nin,
    Not,
    Or,
    Regex,
)
from .hybrid_search import HybridKnn, HybridQuery, HybridRank
from .meta_info import IncludeField
from .query_result import GetResult, QueryResult

logger = logging.getLogger(__name__)

__all__ = [
    'BackendRow',
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
    'IncludeField',
    'GetResult',
    'QueryResult',
    'HybridQuery',
    'HybridKnn',
    'HybridRank',
    'Filter',
    'Eq', 'Ne', 'Gt', 'Gte', 'Lt', 'Lte', 'In', 'Nin', 'And', 'Or', 'Not',
    'DocFilter',
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


def _server_config(
    host: Optional[str],
    port: Optional[int],
    tenant: str,
    database: str,
    user: Optional[str],
    password: str,
) -> ServerConfig:
    """Explicit parameters win; without a host everything comes from SERVER_* variables"""
    password = password or os.environ.get("SEEKDB_PASSWORD", "")

    if host is None:
        config = ServerConfig.from_env()
        if password and not config.password:
            config = replace(config, password=password)
        return config

    return ServerConfig(
        host=host,
        port=DEFAULT_SERVER_PORT if port is None else port,
        tenant=tenant,
        database=database,
        user="root" if user is None else user,
        password=password,
    )


def Client(
    host: Optional[str] = None,
    port: Optional[int] = None,
    tenant: str = "sys",
    database: str = "test",
    user: Optional[str] = None,
    password: str = "",
    **kwargs
) -> _ClientProxy:
    """
    Connect to a server for collection work

    Args:
        host: server address; when omitted, every setting comes from the
              SERVER_HOST, SERVER_PORT, SERVER_TENANT, SERVER_DATABASE,
              SERVER_USER and SERVER_PASSWORD variables
        port: 2881 unless given
        tenant: "sys" on seekdb, a user tenant such as "test" on OceanBase
        database: schema holding the collection tables
        user: login without the tenant part, "root" unless given
        password: falls back to SEEKDB_PASSWORD
        **kwargs: forwarded to pymysql.connect

    Raises:
        ConfigError: no host given and SERVER_HOST unset

    Examples:
        >>> client = Client(host="127.0.0.1", database="demo")
        >>> docs = client.get_or_create_collection("docs")
    """
    config = _server_config(host, port, tenant, database, user, password)
    logger.debug(f"Client for {config.user}@{config.tenant} at {config.host}:{config.port}/{config.database}")
    return _ClientProxy(RemoteServerClient.from_config(config, **kwargs))


def AdminClient(
    host: Optional[str] = None,
    port: Optional[int] = None,
    tenant: str = "sys",
    user: Optional[str] = None,
    password: str = "",
    **kwargs
) -> _AdminClientProxy:
    """
    Connect to a server for database administration

    Same settings as Client() minus the database: the session always opens
    information_schema.

    Examples:
        >>> admin = AdminClient(host="127.0.0.1")
        >>> admin.create_database("demo")
    """
    config = replace(_server_config(host, port, tenant, "information_schema", user, password),
                     database="information_schema")
    logger.debug(f"AdminClient for {config.user}@{config.tenant} at {config.host}:{config.port}")
    return _AdminClientProxy(RemoteServerClient.from_config(config, **kwargs))
