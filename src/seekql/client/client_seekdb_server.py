"""
pymysql backend for seekdb and OceanBase servers

Logins are tenant-qualified (`user@tenant`). The connection is opened on the
first statement and runs in autocommit mode; pymysql errors are translated
into seekql errors before they leave this module.
"""
import logging
from typing import Any, List, Optional, Sequence

import pymysql
from pymysql.cursors import DictCursor

from .admin_client import DEFAULT_TENANT
from .base_connection import BackendRow, SqlParams
from .client_base import BaseClient, MAX_LIMIT
from .configuration import DEFAULT_SERVER_PORT, ServerConfig
from .database import Database
from .errors import BackendConnectionError, InvalidInputError, NotFoundError, SqlError

logger = logging.getLogger(__name__)

# Client-side codes: can't connect, server has gone away, lost connection
CONNECTION_LOST_CODES = {2003, 2006, 2013}
# Table doesn't exist, unknown database
NOT_FOUND_CODES = {1146, 1049}

_SCHEMATA_SELECT = (
    "SELECT SCHEMA_NAME, DEFAULT_CHARACTER_SET_NAME, DEFAULT_COLLATION_NAME "
    "FROM information_schema.SCHEMATA"
)


def quote_identifier(name: str) -> str:
    """Backtick-quote an identifier, doubling embedded backticks"""
    return "`" + name.replace("`", "``") + "`"


def translate_error(error: pymysql.MySQLError) -> Exception:
    """Map a pymysql error onto the seekql error hierarchy"""
    code = error.args[0] if error.args and isinstance(error.args[0], int) else None
    message = str(error.args[1]) if len(error.args) > 1 else str(error)
    if code in CONNECTION_LOST_CODES or isinstance(error, pymysql.err.InterfaceError):
        return BackendConnectionError(message)
    if code in NOT_FOUND_CODES:
        return NotFoundError(message)
    return SqlError(message, code)


class RemoteServerClient(BaseClient):
    """
    Collections and databases on a remote seekdb / OceanBase server

    Nothing touches the network until the first statement runs.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = DEFAULT_SERVER_PORT,
        tenant: str = "sys",
        database: str = "test",
        user: str = "root",
        password: str = "",
        charset: str = "utf8mb4",
        **kwargs
    ):
        """
        Args:
            host, port: server endpoint
            tenant: OceanBase tenant; seekdb servers use "sys"
            database: schema to open
            user: login without the tenant part
            **kwargs: passed through to pymysql.connect
        """
        self.host = host
        self.port = port
        self.tenant = tenant
        self.database = database
        self.user = user
        self.password = password
        self.charset = charset
        self.kwargs = kwargs
        self.full_user = f"{user}@{tenant}"
        self._connection = None

        logger.debug(f"RemoteServerClient for {self._address()} as {self.full_user}")

    @classmethod
    def from_config(cls, config: ServerConfig, **kwargs) -> "RemoteServerClient":
        return cls(
            host=config.host,
            port=config.port,
            tenant=config.tenant,
            database=config.database,
            user=config.user,
            password=config.password,
            **kwargs
        )

    @classmethod
    def from_env(cls, **kwargs) -> "RemoteServerClient":
        """Client configured from SERVER_* environment variables"""
        return cls.from_config(ServerConfig.from_env(), **kwargs)

    def _address(self) -> str:
        return f"{self.host}:{self.port}/{self.database}"

    # ==================== Connection ====================

    def _ensure_connection(self) -> pymysql.Connection:
        if self.is_connected():
            return self._connection
        try:
            self._connection = pymysql.connect(
                host=self.host,
                port=self.port,
                user=self.full_user,
                password=self.password,
                database=self.database,
                charset=self.charset,
                cursorclass=DictCursor,
                autocommit=True,
                **self.kwargs
            )
        except pymysql.MySQLError as e:
            raise BackendConnectionError(f"Cannot connect to {self._address()} as {self.full_user}: {e}") from e
        logger.info(f"✅ Connected to {self._address()}")
        return self._connection

    def _cleanup(self):
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.close()
        except pymysql.MySQLError as e:
            logger.debug(f"Ignoring error while closing connection: {e}")
        logger.info(f"Disconnected from {self._address()}")

    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.open

    def _run(self, sql: str, params: SqlParams, fetch: bool) -> Optional[list]:
        connection = self._ensure_connection()
        try:
            with connection.cursor() as cursor:
                # No parameters means no %-interpolation, so literal % survives
                cursor.execute(sql, params or None)
                return cursor.fetchall() if fetch else None
        except pymysql.MySQLError as e:
            raise translate_error(e) from e

    def execute(self, sql: str, params: SqlParams = None) -> None:
        self._run(sql, params, fetch=False)

    def fetch_all(self, sql: str, params: SqlParams = None) -> List[BackendRow]:
        return [BackendRow(row) for row in self._run(sql, params, fetch=True) or ()]

    def get_raw_connection(self) -> pymysql.Connection:
        """The underlying pymysql connection, opened if necessary"""
        return self._ensure_connection()

    @property
    def mode(self) -> str:
        return "RemoteServerClient"

    # ==================== Databases ====================
    # A login is bound to one tenant, so every database lives in self.tenant.

    def _check_tenant(self, tenant: str) -> None:
        if tenant not in (self.tenant, DEFAULT_TENANT):
            logger.warning(f"Ignoring tenant '{tenant}': this connection is logged into tenant '{self.tenant}'")

    def create_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        self._check_tenant(tenant)
        self.execute(f"CREATE DATABASE IF NOT EXISTS {quote_identifier(name)}")
        logger.info(f"✅ Database '{name}' created in tenant '{self.tenant}'")

    def get_database(self, name: str, tenant: str = DEFAULT_TENANT) -> Database:
        """
        Raises:
            NotFoundError: when information_schema has no such schema
        """
        self._check_tenant(tenant)
        rows = self.fetch_all(f"{_SCHEMATA_SELECT} WHERE SCHEMA_NAME = %s", [name])
        if not rows:
            raise NotFoundError(f"Database '{name}' does not exist in tenant '{self.tenant}'")
        return Database.from_row(rows[0], tenant=self.tenant)

    def delete_database(self, name: str, tenant: str = DEFAULT_TENANT) -> None:
        self._check_tenant(tenant)
        self.execute(f"DROP DATABASE IF EXISTS {quote_identifier(name)}")
        logger.info(f"✅ Database '{name}' dropped from tenant '{self.tenant}'")

    def list_databases(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        tenant: str = DEFAULT_TENANT
    ) -> Sequence[Database]:
        """
        Databases of the connection's tenant, paged like Collection.get

        Raises:
            InvalidInputError: limit or offset is not a non-negative integer
        """
        for label, value in (("limit", limit), ("offset", offset)):
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                raise InvalidInputError(f"{label} must be a non-negative integer, got {value!r}")
        self._check_tenant(tenant)

        sql = _SCHEMATA_SELECT
        params: List[Any] = []
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        if offset is not None:
            if limit is None:
                sql += f" LIMIT {MAX_LIMIT}"
            sql += " OFFSET %s"
            params.append(offset)

        databases = [Database.from_row(row, tenant=self.tenant) for row in self.fetch_all(sql, params)]
        logger.debug(f"Listed {len(databases)} database(s) in tenant '{self.tenant}'")
        return databases

    def __repr__(self):
        state = "connected" if self.is_connected() else "disconnected"
        return f"<RemoteServerClient {self.full_user}@{self._address()} {state}>"
