"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends

from dbbrowser.connection import ConnectionHolder
from dbbrowser.database import get_holder
from dbbrowser.services.table_service import TableService


def get_table_service(
    holder: Annotated[ConnectionHolder, Depends(get_holder)],
) -> TableService:
    """Dependency to get a table service bound to the shared holder."""
    return TableService(holder)


Holder = Annotated[ConnectionHolder, Depends(get_holder)]
Tables = Annotated[TableService, Depends(get_table_service)]
