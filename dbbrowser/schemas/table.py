"""Table schemas for introspection and row operations."""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel


class ColumnInfo(BaseModel):
    """Column information schema."""

    name: str
    type: str
    column_type: str
    nullable: bool
    default: Optional[str] = None
    primary_key: bool = False


class ForeignKeyInfo(BaseModel):
    """One outgoing foreign key of a table, with its resolved label column."""

    column_name: str
    referenced_table: str
    referenced_column: str
    descriptive_column: str
    join_alias: str


class ForeignKeyValue(BaseModel):
    """Candidate row of a referenced table."""

    id: Union[int, float, str, bool, None]
    display: str


class TableDescription(BaseModel):
    """Columns and foreign keys of a table."""

    name: str
    columns: List[str]
    foreign_keys: Dict[str, ForeignKeyInfo]
    fields: List[ColumnInfo]
    primary_key: Optional[str] = None


class MutationResult(BaseModel):
    """Outcome of an insert, update or delete."""

    affected_rows: int
    last_insert_id: Optional[int] = None

