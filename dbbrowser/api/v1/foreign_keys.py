"""Foreign-key candidate endpoints."""

from typing import List

from fastapi import APIRouter

from dbbrowser.api.deps import Tables
from dbbrowser.schemas.table import ForeignKeyInfo, ForeignKeyValue

router = APIRouter(prefix="/foreign-keys", tags=["foreign-keys"])


@router.post("/values", response_model=List[ForeignKeyValue])
async def list_foreign_key_values(
    fk: ForeignKeyInfo, service: Tables
) -> List[ForeignKeyValue]:
    """List candidate values for a foreign-key column, ordered by label."""
    return await service.list_foreign_key_values(fk)
