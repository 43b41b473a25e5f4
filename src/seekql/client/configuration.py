"""
Configuration objects for collections and server connections
"""
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Default embedding function (DefaultEmbeddingFunction) produces 384-dim embeddings
DEFAULT_VECTOR_DIMENSION = 384
DEFAULT_DISTANCE_METRIC = 'cosine'
DEFAULT_SERVER_PORT = 2881


class DistanceMetric(str, Enum):
    """Distance metric of a collection's vector index"""

    L2 = 'l2'
    COSINE = 'cosine'
    INNER_PRODUCT = 'inner_product'

    @property
    def sql_function(self) -> str:
        """SQL distance function used for ORDER BY on the embedding column"""
        return _SQL_DISTANCE_FUNCTIONS[self]

    @classmethod
    def parse(cls, value: Union[str, "DistanceMetric"]) -> "DistanceMetric":
        """
        Parse a metric name. Accepts the enum itself, its value (case-insensitive)
        and the short alias 'ip' for inner_product.

        Raises:
            ConfigError: if the name is not a known metric
        """
        if isinstance(value, DistanceMetric):
            return value
        if not isinstance(value, str):
            raise ConfigError(f"distance must be a string, got {type(value).__name__}")
        name = value.strip().lower()
        if name == 'ip':
            return cls.INNER_PRODUCT
        for metric in cls:
            if metric.value == name:
                return metric
        raise ConfigError(
            f"distance must be one of {[m.value for m in cls]}, got {value!r}"
        )

    def __str__(self) -> str:
        return self.value


_SQL_DISTANCE_FUNCTIONS = {
    DistanceMetric.L2: 'l2_distance',
    DistanceMetric.COSINE: 'cosine_distance',
    DistanceMetric.INNER_PRODUCT: 'inner_product',
}


@dataclass
class HNSWConfiguration:
    """
    HNSW (Hierarchical Navigable Small World) index configuration

    Args:
        dimension: Vector dimension (number of elements in each vector)
        distance: Distance metric for similarity calculation ('l2', 'cosine', 'inner_product')
    """
    dimension: int
    distance: Union[str, DistanceMetric] = DistanceMetric.L2

    def __post_init__(self):
        if isinstance(self.dimension, bool) or not isinstance(self.dimension, int):
            raise ConfigError(f"dimension must be an integer, got {type(self.dimension).__name__}")
        if self.dimension <= 0:
            raise ConfigError(f"dimension must be positive, got {self.dimension}")
        self.distance = DistanceMetric.parse(self.distance)


@dataclass
class ServerConfig:
    """
    Connection settings for a remote seekdb / OceanBase server.

    ``from_env`` reads them from SERVER_* environment variables, which is how
    the integration tests and examples are configured.
    """
    host: str
    port: int = DEFAULT_SERVER_PORT
    tenant: str = "sys"
    database: str = "test"
    user: str = "root"
    password: str = ""

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ServerConfig":
        """
        Build a ServerConfig from environment variables

        Variables:
            SERVER_HOST (required), SERVER_PORT (default 2881), SERVER_TENANT (default 'sys'),
            SERVER_DATABASE (default 'test'), SERVER_USER (default 'root'),
            SERVER_PASSWORD (falls back to SEEKDB_PASSWORD)

        Raises:
            ConfigError: if SERVER_HOST is missing or SERVER_PORT is not a number
        """
        env = os.environ if environ is None else environ

        host = env.get("SERVER_HOST")
        if not host:
            raise ConfigError(
                "SERVER_HOST is not set. Provide host explicitly or export SERVER_HOST."
            )

        raw_port = env.get("SERVER_PORT", str(DEFAULT_SERVER_PORT))
        try:
            port = int(raw_port)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"SERVER_PORT must be an integer, got {raw_port!r}") from e

        password = env.get("SERVER_PASSWORD") or env.get("SEEKDB_PASSWORD", "")

        config = cls(
            host=host,
            port=port,
            tenant=env.get("SERVER_TENANT", "sys"),
            database=env.get("SERVER_DATABASE", "test"),
            user=env.get("SERVER_USER", "root"),
            password=password,
        )
        logger.debug(f"Loaded server config from environment: {config.user}@{config.tenant}@{config.host}:{config.port}/{config.database}")
        return config


class _NotProvided:
    """Sentinel to distinguish "parameter not provided" from an explicit None"""

    def __repr__(self) -> str:
        return "<not provided>"


_NOT_PROVIDED = _NotProvided()
