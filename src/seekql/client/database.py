"""
Database model definition
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .base_connection import BackendRow


@dataclass
class Database:
    """
    Database object representing a database (schema) on the server.

    Note:
        tenant is the tenant of the client that listed the database; the
        server scopes databases to the connected tenant.
    """
    name: str
    tenant: Optional[str] = None
    charset: Optional[str] = None
    collation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_row(cls, row: BackendRow, tenant: Optional[str] = None) -> "Database":
        """Build from an information_schema.SCHEMATA row"""
        return cls(
            name=row.get_string("SCHEMA_NAME"),
            tenant=tenant,
            charset=row.get_string("DEFAULT_CHARACTER_SET_NAME"),
            collation=row.get_string("DEFAULT_COLLATION_NAME"),
        )

    def __repr__(self):
        if self.tenant:
            return f"<Database name={self.name} tenant={self.tenant}>"
        return f"<Database name={self.name}>"

    def __str__(self):
        return self.name

    def __hash__(self):
        return hash((self.name, self.tenant))
