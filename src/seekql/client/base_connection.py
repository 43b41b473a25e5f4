"""
Statement execution contract and result rows

A connection executes parameterized SQL and hands rows back as BackendRow
objects, which give typed, column-name based access to the values.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from .errors import NotFoundError, SerializationError

SqlParams = Optional[Sequence[Any]]


class BackendRow:
    """
    One result row keyed by column name.

    Accessors return None when the column is absent or NULL and raise
    SerializationError when the value has an incompatible type.
    """

    def __init__(self, values: Dict[str, Any]):
        self._values = dict(values)
        self._ordered = list(self._values.values())

    def __contains__(self, column: str) -> bool:
        return column in self._values

    def __getitem__(self, column: str) -> Any:
        return self._values[column]

    def __repr__(self) -> str:
        return f"BackendRow({self._values!r})"

    def __eq__(self, other):
        if isinstance(other, BackendRow):
            return self._values == other._values
        return NotImplemented

    def keys(self) -> List[str]:
        return list(self._values.keys())

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def raw(self, column: str) -> Any:
        return self._values.get(column)

    def get_bytes(self, column: str) -> Optional[bytes]:
        value = self._values.get(column)
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise SerializationError(
            f"Column '{column}' is {type(value).__name__}, expected bytes"
        )

    def get_string(self, column: str) -> Optional[str]:
        value = self._values.get(column)
        if value is None:
            return None
        if isinstance(value, str):
            return value
        raise SerializationError(
            f"Column '{column}' is {type(value).__name__}, expected str"
        )

    def get_float(self, column: str) -> Optional[float]:
        value = self._values.get(column)
        if value is None:
            return None
        if isinstance(value, bool):
            raise SerializationError(f"Column '{column}' is bool, expected a number")
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"Column '{column}' value {value!r} is not a number"
            ) from e

    def get_int(self, column: str) -> Optional[int]:
        value = self._values.get(column)
        if value is None:
            return None
        if isinstance(value, bool):
            raise SerializationError(f"Column '{column}' is bool, expected an integer")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"Column '{column}' value {value!r} is not an integer"
            ) from e

    def get_string_by_index(self, index: int) -> Optional[str]:
        if index < 0 or index >= len(self._ordered):
            return None
        value = self._ordered[index]
        if value is None:
            return None
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        if isinstance(value, str):
            return value
        raise SerializationError(
            f"Column #{index} is {type(value).__name__}, expected str"
        )


class BaseConnection(ABC):
    """
    What a backend has to provide: one lazily opened connection that runs
    parameterized SQL. Usable as a context manager that closes it on exit.
    """

    # ==================== Connection ====================

    @abstractmethod
    def _ensure_connection(self) -> Any:
        """Open the connection unless it is already open, and return it"""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Whether a connection is currently open"""
        pass

    @abstractmethod
    def _cleanup(self):
        """Close the connection if one is open; safe to call repeatedly"""
        pass

    # ==================== Statement Execution ====================

    @abstractmethod
    def execute(self, sql: str, params: SqlParams = None) -> None:
        """Execute a statement that returns no rows (DDL/DML, SET ...)"""
        pass

    @abstractmethod
    def fetch_all(self, sql: str, params: SqlParams = None) -> List[BackendRow]:
        """Execute a query and return all rows"""
        pass

    def fetch_one(self, sql: str, params: SqlParams = None) -> BackendRow:
        """
        Execute a query and return its first row

        Raises:
            NotFoundError: if the query returned no rows
        """
        rows = self.fetch_all(sql, params)
        if not rows:
            raise NotFoundError("Query returned no rows")
        return rows[0]

    @abstractmethod
    def get_raw_connection(self) -> Any:
        """The driver connection, for statements this API does not cover"""
        pass

    @property
    @abstractmethod
    def mode(self) -> str:
        """Name of the backend, e.g. 'RemoteServerClient'"""
        pass

    def close(self) -> None:
        """Close the underlying connection"""
        self._cleanup()

    # ==================== with-statement ====================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._cleanup()

    def __del__(self):
        """Close a connection that was never closed explicitly"""
        try:
            if hasattr(self, '_connection') and self.is_connected():
                self._cleanup()
        except Exception:
            # Module globals may already be gone at interpreter shutdown
            pass
