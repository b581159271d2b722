"""Connection endpoints."""

from fastapi import APIRouter, status

from dbbrowser.api.deps import Holder
from dbbrowser.schemas.connection import ConnectionStatus, ConnectRequest

router = APIRouter(prefix="/connection", tags=["connection"])


def _status(holder) -> ConnectionStatus:
    return ConnectionStatus(connected=holder.is_connected, database=holder.database)


@router.get("", response_model=ConnectionStatus)
async def get_connection(holder: Holder) -> ConnectionStatus:
    """Report whether a database is connected."""
    return _status(holder)


@router.post("", response_model=ConnectionStatus)
async def connect(details: ConnectRequest, holder: Holder) -> ConnectionStatus:
    """Connect to a database, replacing any current connection."""
    await holder.connect(
        details.host,
        details.port,
        details.user,
        details.password,
        details.database,
    )
    return _status(holder)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect(holder: Holder) -> None:
    """Close the current connection, if any."""
    await holder.disconnect()
