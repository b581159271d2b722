"""Schema discovery through the MySQL catalog."""

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from dbbrowser.schemas.table import ColumnInfo, ForeignKeyInfo

logger = logging.getLogger(__name__)

# Column names that usually hold a human-readable label, in order of preference
DESCRIPTIVE_COLUMN_NAMES = (
    "name",
    "nazwa",
    "username",
    "login",
    "title",
    "tytul",
    "label",
    "etykieta",
    "full_name",
    "display_name",
    "nazwisko",
    "imie",
)

COLUMNS_QUERY = text("""
    SELECT column_name, data_type, column_type, is_nullable,
           column_default, column_key
    FROM information_schema.columns
    WHERE table_schema = DATABASE() AND table_name = :table_name
    ORDER BY ordinal_position
""")

FOREIGN_KEYS_QUERY = text("""
    SELECT column_name, referenced_table_name, referenced_column_name
    FROM information_schema.key_column_usage
    WHERE table_schema = DATABASE()
      AND table_name = :table_name
      AND referenced_table_name IS NOT NULL
    ORDER BY constraint_name, ordinal_position
""")


def pick_descriptive_column(columns: Sequence[str]) -> Optional[str]:
    """
    Choose the column that best represents a row to a human.

    The first preferred name present wins (case-insensitive); otherwise the
    second column, since tables usually lead with a surrogate key, or the only
    column of a single-column table.
    """
    by_lower = {}
    for column in columns:
        by_lower.setdefault(column.lower(), column)
    for preferred in DESCRIPTIVE_COLUMN_NAMES:
        if preferred in by_lower:
            return by_lower[preferred]

    if len(columns) >= 2:
        return columns[1]
    if columns:
        return columns[0]
    return None


def declared_type_name(data_type: str, column_type: str) -> str:
    """Type name used to decode a column; ``tinyint(1)`` is a boolean."""
    if column_type and column_type.lower().startswith("tinyint(1)"):
        return "BOOLEAN"
    return data_type.upper()


def _as_text(value) -> Optional[str]:
    # information_schema may hand back bytes on older servers
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return value


class SchemaIntrospector:
    """Reads tables, columns and foreign keys over an open connection."""

    def __init__(self, conn: AsyncConnection):
        self.conn = conn

    async def list_tables(self) -> List[str]:
        """List all tables of the current schema, in server order."""
        result = await self.conn.execute(text("SHOW TABLES"))
        return [_as_text(row[0]) for row in result.fetchall()]

    async def get_table_schema(self, table_name: str) -> List[ColumnInfo]:
        """Get column information for a table, in declaration order."""
        result = await self.conn.execute(COLUMNS_QUERY, {"table_name": table_name})
        return [
            ColumnInfo(
                name=_as_text(row[0]),
                type=_as_text(row[1]),
                column_type=_as_text(row[2]),
                nullable=_as_text(row[3]) == "YES",
                default=None if row[4] is None else str(_as_text(row[4])),
                primary_key=_as_text(row[5]) == "PRI",
            )
            for row in result.fetchall()
        ]

    async def list_columns(self, table_name: str) -> List[str]:
        """List column names of a table, in declaration order."""
        return [column.name for column in await self.get_table_schema(table_name)]

    async def column_types(self, table_name: str) -> Dict[str, str]:
        """Map each column of a table to its decode type name."""
        return {
            column.name: declared_type_name(column.type, column.column_type)
            for column in await self.get_table_schema(table_name)
        }

    async def resolve_descriptive_column(
        self, referenced_table: str, referenced_column: str
    ) -> str:
        """Descriptive column of a referenced table, or the key column itself."""
        try:
            columns = await self.list_columns(referenced_table)
        except SQLAlchemyError as exc:
            logger.warning(
                f"Cannot read columns of '{referenced_table}', "
                f"showing '{referenced_column}' instead: {exc}"
            )
            return referenced_column

        descriptive = pick_descriptive_column(columns)
        if descriptive is None:
            logger.warning(
                f"Table '{referenced_table}' exposes no columns, "
                f"showing '{referenced_column}' instead"
            )
            return referenced_column
        return descriptive

    async def list_foreign_keys(self, table_name: str) -> Dict[str, ForeignKeyInfo]:
        """
        Map each foreign-key column of a table to its reference.

        Composite keys yield one entry per column.
        """
        result = await self.conn.execute(
            FOREIGN_KEYS_QUERY, {"table_name": table_name}
        )
        foreign_keys: Dict[str, ForeignKeyInfo] = {}
        for row in result.fetchall():
            column_name = _as_text(row[0])
            referenced_table = _as_text(row[1])
            referenced_column = _as_text(row[2])
            descriptive = await self.resolve_descriptive_column(
                referenced_table, referenced_column
            )
            foreign_keys[column_name] = ForeignKeyInfo(
                column_name=column_name,
                referenced_table=referenced_table,
                referenced_column=referenced_column,
                descriptive_column=descriptive,
                join_alias=f"{column_name}__{descriptive}",
            )
        return foreign_keys
