"""Table browsing endpoints."""

from typing import Any, Dict, List, Union

from fastapi import APIRouter, Body, Query, status

from dbbrowser.api.deps import Tables
from dbbrowser.schemas.table import ColumnInfo, MutationResult, TableDescription

router = APIRouter(prefix="/tables", tags=["tables"])

RowId = Union[int, str]


@router.get("/", response_model=List[str])
async def list_tables(service: Tables) -> List[str]:
    """List all tables of the connected database."""
    return await service.list_tables()


@router.get("/{table_name}", response_model=TableDescription)
async def describe_table(table_name: str, service: Tables) -> TableDescription:
    """Get columns and foreign keys of a table."""
    return await service.describe_table(table_name)


@router.get("/{table_name}/schema", response_model=List[ColumnInfo])
async def get_table_schema(table_name: str, service: Tables) -> List[ColumnInfo]:
    """Get column schema for a table."""
    return await service.get_table_schema(table_name)


@router.get("/{table_name}/count")
async def count_rows(table_name: str, service: Tables) -> Dict[str, int]:
    """Get the number of rows in a table."""
    return {"count": await service.count_rows(table_name)}


@router.get("/{table_name}/rows")
async def list_rows(table_name: str, service: Tables) -> List[Dict[str, Any]]:
    """Get every row of a table with foreign keys resolved to labels."""
    return await service.list_rows(table_name)


@router.post(
    "/{table_name}/rows",
    response_model=MutationResult,
    status_code=status.HTTP_201_CREATED,
)
async def insert_row(
    table_name: str,
    service: Tables,
    record: Dict[str, Any] = Body(...),
) -> MutationResult:
    """Insert a record."""
    return await service.insert_row(table_name, record)


@router.put("/{table_name}/rows/{row_id}", response_model=MutationResult)
async def update_row(
    table_name: str,
    row_id: RowId,
    service: Tables,
    pk_column: str = Query(...),
    record: Dict[str, Any] = Body(...),
) -> MutationResult:
    """Update the row whose primary key equals ``row_id``."""
    return await service.update_row(table_name, row_id, pk_column, record)


@router.delete("/{table_name}/rows/{row_id}", response_model=MutationResult)
async def delete_row(
    table_name: str,
    row_id: RowId,
    service: Tables,
    pk_column: str = Query(...),
) -> MutationResult:
    """Delete the row whose primary key equals ``row_id``."""
    return await service.delete_row(table_name, row_id, pk_column)
