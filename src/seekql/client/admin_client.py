"""
Database administration contract and the two user-facing proxies

Client() hands out a _ClientProxy that only knows collections, AdminClient()
an _AdminClientProxy that only knows databases. Both wrap the same kind of
BaseClient and own its connection.
"""
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, TYPE_CHECKING

from .configuration import _NOT_PROVIDED
from .database import Database

if TYPE_CHECKING:
    from .client_base import BaseClient
    from .collection import Collection

# Tenant assumed by admin calls that do not name one
DEFAULT_TENANT = "test"


class AdminAPI(ABC):
    """Database operations, scoped to a tenant"""

    @abstractmethod
    def create_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        """Create `name` if it does not exist yet"""
        pass

    @abstractmethod
    def get_database(self, name: str, tenant: str = DEFAULT_TENANT) -> Database:
        """
        Look up one database

        Raises:
            NotFoundError: no schema called `name`
        """
        pass

    @abstractmethod
    def delete_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        """Drop `name`; dropping a missing database is not an error"""
        pass

    @abstractmethod
    def list_databases(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        tenant: str = DEFAULT_TENANT
    ) -> Sequence[Database]:
        """
        Page through the databases visible to the tenant

        Args:
            limit: page size, all remaining rows when None
            offset: rows to skip before the page starts
        """
        pass


class _ServerProxy:
    """Owns a BaseClient: closing the proxy closes its connection"""

    _label = "Proxy"

    def __init__(self, server: "BaseClient") -> None:
        self._server = server

    def close(self) -> None:
        self._server.close()

    def __enter__(self):
        self._server.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return self._server.__exit__(exc_type, exc_val, exc_tb)

    def __repr__(self):
        return f"<{self._label} server={self._server}>"


class _AdminClientProxy(_ServerProxy, AdminAPI):
    """What AdminClient() returns. Collection methods are deliberately absent."""

    _label = "AdminClient"

    def create_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        self._server.create_database(name, tenant=tenant)

    def get_database(self, name: str, tenant: str = DEFAULT_TENANT) -> Database:
        return self._server.get_database(name, tenant=tenant)

    def delete_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        self._server.delete_database(name, tenant=tenant)

    def list_databases(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        tenant: str = DEFAULT_TENANT
    ) -> Sequence[Database]:
        return self._server.list_databases(limit, offset, tenant=tenant)


class _ClientProxy(_ServerProxy):
    """What Client() returns. Database methods are deliberately absent."""

    _label = "Client"

    def create_collection(
        self,
        name: str,
        configuration: Any = _NOT_PROVIDED,
        embedding_function: Any = _NOT_PROVIDED,
        **kwargs
    ) -> "Collection":
        return self._server.create_collection(name, configuration, embedding_function, **kwargs)

    def get_collection(self, name: str, embedding_function: Any = _NOT_PROVIDED) -> "Collection":
        return self._server.get_collection(name, embedding_function)

    def get_or_create_collection(
        self,
        name: str,
        configuration: Any = _NOT_PROVIDED,
        embedding_function: Any = _NOT_PROVIDED,
        **kwargs
    ) -> "Collection":
        return self._server.get_or_create_collection(name, configuration, embedding_function, **kwargs)

    def delete_collection(self, name: str) -> None:
        self._server.delete_collection(name)

    def has_collection(self, name: str) -> bool:
        return self._server.has_collection(name)

    def list_collections(self) -> List["Collection"]:
        return self._server.list_collections()

    def list_collection_names(self) -> List[str]:
        return self._server.list_collection_names()

    def count_collection(self) -> int:
        return self._server.count_collection()
