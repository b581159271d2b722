"""Pydantic schemas for request/response validation."""

from dbbrowser.schemas.connection import ConnectionStatus, ConnectRequest
from dbbrowser.schemas.table import (
    ColumnInfo,
    ForeignKeyInfo,
    ForeignKeyValue,
    MutationResult,
    TableDescription,
)

__all__ = [
    "ConnectRequest",
    "ConnectionStatus",
    "ColumnInfo",
    "ForeignKeyInfo",
    "ForeignKeyValue",
    "MutationResult",
    "TableDescription",
]
