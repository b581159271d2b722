"""Dynamic SQL construction for tables discovered at runtime.

Identifiers cannot be bound as parameters, so every table or column name is
checked against an ``IdentifierWhitelist`` built from freshly fetched catalog
data before it is quoted into the statement. Values are always bound.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from dbbrowser.core.exceptions import UnknownTableError, ValidationError
from dbbrowser.schemas.table import ForeignKeyInfo
from dbbrowser.services.codec import encode_value

Statement = Tuple[str, Dict[str, Any]]

MAIN_TABLE_ALIAS = "main_table"


class IdentifierWhitelist:
    """Live set of table and column names that may appear in SQL text."""

    def __init__(
        self,
        tables: Iterable[str],
        columns: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self.tables = set(tables)
        self.columns: Dict[str, set] = {}
        for table, names in (columns or {}).items():
            self.add_columns(table, names)

    def add_columns(self, table: str, names: Iterable[str]) -> None:
        """Register the column list of a table."""
        self.columns.setdefault(table, set()).update(names)

    def require_table(self, table: str) -> str:
        """Return ``table`` or raise if it is not a known table."""
        if table not in self.tables:
            raise UnknownTableError(table)
        return table

    def require_column(self, table: str, column: str) -> str:
        """Return ``column`` or raise if ``table`` has no such column."""
        self.require_table(table)
        if column not in self.columns.get(table, ()):
            raise ValidationError(f"Unknown column '{column}' in table '{table}'")
        return column


def quote_identifier(name: str) -> str:
    """Backtick-quote an identifier that already passed the whitelist."""
    return "`" + name.replace("`", "``") + "`"


def _require_record(record: Mapping[str, Any], action: str) -> None:
    if not record:
        raise ValidationError(f"Cannot {action} an empty record")


def build_select(whitelist: IdentifierWhitelist, table: str) -> Statement:
    """SELECT every row of a table."""
    whitelist.require_table(table)
    return f"SELECT * FROM {quote_identifier(table)}", {}


def build_count(whitelist: IdentifierWhitelist, table: str) -> Statement:
    """Count the rows of a table."""
    whitelist.require_table(table)
    return f"SELECT COUNT(*) FROM {quote_identifier(table)}", {}


def build_joined_select(
    whitelist: IdentifierWhitelist,
    table: str,
    foreign_keys: Sequence[ForeignKeyInfo],
) -> Statement:
    """
    SELECT every row of a table with each foreign key resolved to its label.

    One LEFT JOIN per foreign key, aliased ``jt{index}`` in discovery order,
    projecting only the descriptive column under the key's join alias. Rows
    with a null or dangling key are kept.

    Args:
        whitelist: Identifiers valid for this call
        table: Table to read
        foreign_keys: Outgoing foreign keys of ``table``

    Returns:
        SQL text and (empty) parameters
    """
    whitelist.require_table(table)
    if not foreign_keys:
        return build_select(whitelist, table)

    projections = [f"{MAIN_TABLE_ALIAS}.*"]
    joins: List[str] = []
    for index, fk in enumerate(foreign_keys):
        alias = f"jt{index}"
        whitelist.require_column(table, fk.column_name)
        whitelist.require_column(fk.referenced_table, fk.referenced_column)
        whitelist.require_column(fk.referenced_table, fk.descriptive_column)

        projections.append(
            f"{alias}.{quote_identifier(fk.descriptive_column)} "
            f"AS {quote_identifier(fk.join_alias)}"
        )
        joins.append(
            f"LEFT JOIN {quote_identifier(fk.referenced_table)} AS {alias} "
            f"ON {MAIN_TABLE_ALIAS}.{quote_identifier(fk.column_name)} = "
            f"{alias}.{quote_identifier(fk.referenced_column)}"
        )

    sql = (
        f"SELECT {', '.join(projections)} "
        f"FROM {quote_identifier(table)} AS {MAIN_TABLE_ALIAS} "
        + " ".join(joins)
    )
    return sql, {}


def build_foreign_key_values_select(
    whitelist: IdentifierWhitelist, fk: ForeignKeyInfo
) -> Statement:
    """List ``(id, display)`` pairs of a referenced table, ordered by label."""
    table = whitelist.require_table(fk.referenced_table)
    id_column = whitelist.require_column(table, fk.referenced_column)
    display_column = whitelist.require_column(table, fk.descriptive_column)
    sql = (
        f"SELECT {quote_identifier(id_column)} AS id, "
        f"{quote_identifier(display_column)} AS display "
        f"FROM {quote_identifier(table)} "
        f"ORDER BY {quote_identifier(display_column)} ASC"
    )
    return sql, {}


def build_insert(
    whitelist: IdentifierWhitelist, table: str, record: Mapping[str, Any]
) -> Statement:
    """INSERT one record; one bound parameter per value."""
    _require_record(record, "insert")
    whitelist.require_table(table)

    columns: List[str] = []
    placeholders: List[str] = []
    params: Dict[str, Any] = {}
    for index, (column, value) in enumerate(record.items()):
        whitelist.require_column(table, column)
        columns.append(quote_identifier(column))
        placeholders.append(f":v{index}")
        params[f"v{index}"] = encode_value(value)

    sql = (
        f"INSERT INTO {quote_identifier(table)} ({', '.join(columns)}) "
        f"VALUES ({', '.join(placeholders)})"
    )
    return sql, params


def build_update(
    whitelist: IdentifierWhitelist,
    table: str,
    pk_column: str,
    row_id: Any,
    record: Mapping[str, Any],
) -> Statement:
    """UPDATE one row identified by its primary key."""
    _require_record(record, "update")
    whitelist.require_table(table)
    whitelist.require_column(table, pk_column)

    assignments: List[str] = []
    params: Dict[str, Any] = {}
    for index, (column, value) in enumerate(record.items()):
        whitelist.require_column(table, column)
        assignments.append(f"{quote_identifier(column)} = :v{index}")
        params[f"v{index}"] = encode_value(value)
    params["row_id"] = encode_value(row_id)

    sql = (
        f"UPDATE {quote_identifier(table)} SET {', '.join(assignments)} "
        f"WHERE {quote_identifier(pk_column)} = :row_id"
    )
    return sql, params


def build_delete(
    whitelist: IdentifierWhitelist, table: str, pk_column: str, row_id: Any
) -> Statement:
    """DELETE one row identified by its primary key."""
    whitelist.require_table(table)
    whitelist.require_column(table, pk_column)
    sql = (
        f"DELETE FROM {quote_identifier(table)} "
        f"WHERE {quote_identifier(pk_column)} = :row_id"
    )
    return sql, {"row_id": encode_value(row_id)}
