"""Table browsing operations over the active connection."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from dbbrowser.connection import ConnectionHolder
from dbbrowser.core.exceptions import QueryExecutionError, ValidationError
from dbbrowser.core.logging_config import SQL_LOGGER_NAME
from dbbrowser.schemas.table import (
    ColumnInfo,
    ForeignKeyInfo,
    ForeignKeyValue,
    MutationResult,
    TableDescription,
)
from dbbrowser.services import query_builder
from dbbrowser.services.codec import JsonValue, decode_row
from dbbrowser.services.introspector import SchemaIntrospector, declared_type_name
from dbbrowser.services.query_builder import IdentifierWhitelist

logger = logging.getLogger(__name__)
sql_logger = logging.getLogger(SQL_LOGGER_NAME)


@contextmanager
def database_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures as ``QueryExecutionError``."""
    try:
        yield
    except SQLAlchemyError as exc:
        detail = str(getattr(exc, "orig", None) or exc)
        logger.error(f"{operation} failed: {detail}")
        raise QueryExecutionError(operation, detail) from exc


def _display_text(value: JsonValue) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _browsable_foreign_keys(
    whitelist: IdentifierWhitelist,
    table_name: str,
    columns: Iterable[str],
    foreign_keys: Dict[str, ForeignKeyInfo],
) -> Dict[str, ForeignKeyInfo]:
    """
    Keep the foreign keys that can be joined when listing rows.

    Keys into another schema are dropped, and so are keys whose join alias
    would shadow a real column of the table.
    """
    columns = set(columns)
    browsable = {}
    for name, fk in foreign_keys.items():
        if fk.referenced_table not in whitelist.tables:
            logger.warning(
                f"Skipping foreign key '{table_name}.{fk.column_name}': "
                f"'{fk.referenced_table}' is outside the current schema"
            )
            continue
        if fk.join_alias in columns:
            logger.warning(
                f"Skipping foreign key '{table_name}.{fk.column_name}': "
                f"alias '{fk.join_alias}' is already a column"
            )
            continue
        browsable[name] = fk
    return browsable


class TableService:
    """
    Public operations of the browser.

    Every call fetches a fresh table whitelist before touching an identifier,
    so schema changes made by other clients are always honoured.
    """

    def __init__(self, holder: ConnectionHolder):
        self.holder = holder

    async def _execute(self, conn: AsyncConnection, sql: str, params: Dict[str, Any]):
        sql_logger.debug(f"{sql} -- params: {sorted(params)}")
        return await conn.execute(text(sql), params)

    async def _whitelist(
        self, introspector: SchemaIntrospector, table_name: str
    ) -> Tuple[IdentifierWhitelist, List[ColumnInfo]]:
        """Whitelist holding every table plus the columns of ``table_name``."""
        whitelist = IdentifierWhitelist(await introspector.list_tables())
        whitelist.require_table(table_name)
        fields = await introspector.get_table_schema(table_name)
        whitelist.add_columns(table_name, [field.name for field in fields])
        return whitelist, fields

    async def list_tables(self) -> List[str]:
        """List all tables in the connected database."""
        engine = await self.holder.snapshot()
        with database_errors("list_tables"):
            async with engine.connect() as conn:
                return await SchemaIntrospector(conn).list_tables()

    async def list_columns(self, table_name: str) -> List[str]:
        """List column names of a table in declaration order."""
        return [field.name for field in await self.get_table_schema(table_name)]

    async def get_table_schema(self, table_name: str) -> List[ColumnInfo]:
        """Get column information for a table."""
        engine = await self.holder.snapshot()
        with database_errors("get_table_schema"):
            async with engine.connect() as conn:
                _, fields = await self._whitelist(SchemaIntrospector(conn), table_name)
                return fields

    async def describe_table(self, table_name: str) -> TableDescription:
        """Get columns and resolved foreign keys of a table."""
        engine = await self.holder.snapshot()
        with database_errors("describe_table"):
            async with engine.connect() as conn:
                introspector = SchemaIntrospector(conn)
                whitelist, fields = await self._whitelist(introspector, table_name)
                foreign_keys = _browsable_foreign_keys(
                    whitelist,
                    table_name,
                    [field.name for field in fields],
                    await introspector.list_foreign_keys(table_name),
                )

        primary_key = next((field.name for field in fields if field.primary_key), None)
        return TableDescription(
            name=table_name,
            columns=[field.name for field in fields],
            foreign_keys=foreign_keys,
            fields=fields,
            primary_key=primary_key,
        )

    async def count_rows(self, table_name: str) -> int:
        """Get total row count for a table."""
        engine = await self.holder.snapshot()
        with database_errors("count_rows"):
            async with engine.connect() as conn:
                whitelist = IdentifierWhitelist(
                    await SchemaIntrospector(conn).list_tables()
                )
                sql, params = query_builder.build_count(whitelist, table_name)
                result = await self._execute(conn, sql, params)
                return result.scalar() or 0

    async def _joinable_foreign_keys(
        self,
        introspector: SchemaIntrospector,
        whitelist: IdentifierWhitelist,
        table_name: str,
        column_types: Dict[str, str],
    ) -> List[ForeignKeyInfo]:
        """Foreign keys of a table, registering referenced columns and types."""
        joinable = []
        foreign_keys = _browsable_foreign_keys(
            whitelist,
            table_name,
            list(column_types),
            await introspector.list_foreign_keys(table_name),
        )
        for fk in foreign_keys.values():
            try:
                referenced_types = await introspector.column_types(fk.referenced_table)
            except SQLAlchemyError as exc:
                logger.warning(f"Cannot read types of '{fk.referenced_table}': {exc}")
                referenced_types = {}
            whitelist.add_columns(fk.referenced_table, referenced_types)
            # Catalog metadata is trusted for the key column itself
            whitelist.add_columns(fk.referenced_table, [fk.referenced_column])
            column_types[fk.join_alias] = referenced_types.get(
                fk.descriptive_column, ""
            )
            joinable.append(fk)
        return joinable

    async def list_rows(self, table_name: str) -> List[Dict[str, JsonValue]]:
        """
        Fetch every row of a table with foreign keys resolved to labels.

        Each foreign key ``C`` adds a ``C__<descriptive column>`` value, null
        for null or dangling keys.

        Raises:
            DecodeError: If any cell cannot be decoded; no rows are returned
        """
        engine = await self.holder.snapshot()
        with database_errors("list_rows"):
            async with engine.connect() as conn:
                introspector = SchemaIntrospector(conn)
                whitelist, fields = await self._whitelist(introspector, table_name)
                column_types = {
                    field.name: declared_type_name(field.type, field.column_type)
                    for field in fields
                }
                foreign_keys = await self._joinable_foreign_keys(
                    introspector, whitelist, table_name, column_types
                )
                sql, params = query_builder.build_joined_select(
                    whitelist, table_name, foreign_keys
                )
                result = await self._execute(conn, sql, params)
                columns = list(result.keys())
                rows = result.fetchall()

        return [decode_row(dict(zip(columns, row)), column_types) for row in rows]

    async def list_foreign_key_values(
        self, fk: ForeignKeyInfo
    ) -> List[ForeignKeyValue]:
        """List candidate rows of a referenced table, ordered by label."""
        engine = await self.holder.snapshot()
        with database_errors("list_foreign_key_values"):
            async with engine.connect() as conn:
                whitelist, fields = await self._whitelist(
                    SchemaIntrospector(conn), fk.referenced_table
                )
                sql, params = query_builder.build_foreign_key_values_select(
                    whitelist, fk
                )
                result = await self._execute(conn, sql, params)
                rows = result.fetchall()

        types = {
            field.name: declared_type_name(field.type, field.column_type)
            for field in fields
        }
        values = []
        for row in rows:
            decoded = decode_row(
                {"id": row[0], "display": row[1]},
                {
                    "id": types[fk.referenced_column],
                    "display": types[fk.descriptive_column],
                },
            )
            values.append(
                ForeignKeyValue(
                    id=decoded["id"], display=_display_text(decoded["display"])
                )
            )
        return values

    async def _mutate(self, operation: str, table_name: str, build) -> MutationResult:
        engine = await self.holder.snapshot()
        with database_errors(operation):
            async with engine.begin() as conn:
                whitelist, _ = await self._whitelist(
                    SchemaIntrospector(conn), table_name
                )
                sql, params = build(whitelist)
                result = await self._execute(conn, sql, params)

        last_insert_id: Optional[int] = None
        if operation == "insert_row":
            last_insert_id = result.lastrowid or None
        logger.info(f"{operation} on '{table_name}' affected {result.rowcount} row(s)")
        return MutationResult(
            affected_rows=result.rowcount, last_insert_id=last_insert_id
        )

    async def insert_row(
        self, table_name: str, record: Mapping[str, Any]
    ) -> MutationResult:
        """Insert one record into a table."""
        if not record:
            raise ValidationError("Cannot insert an empty record")
        return await self._mutate(
            "insert_row",
            table_name,
            lambda wl: query_builder.build_insert(wl, table_name, record),
        )

    async def update_row(
        self,
        table_name: str,
        row_id: Any,
        pk_column: str,
        record: Mapping[str, Any],
    ) -> MutationResult:
        """Update the row whose ``pk_column`` equals ``row_id``."""
        if not record:
            raise ValidationError("Cannot update an empty record")
        return await self._mutate(
            "update_row",
            table_name,
            lambda wl: query_builder.build_update(
                wl, table_name, pk_column, row_id, record
            ),
        )

    async def delete_row(
        self, table_name: str, row_id: Any, pk_column: str
    ) -> MutationResult:
        """Delete the row whose ``pk_column`` equals ``row_id``."""
        return await self._mutate(
            "delete_row",
            table_name,
            lambda wl: query_builder.build_delete(wl, table_name, pk_column, row_id),
        )
