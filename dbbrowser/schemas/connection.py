"""Connection schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class ConnectRequest(BaseModel):
    """Discrete connection fields entered on the login form."""

    host: str = Field(..., min_length=1)
    port: int = Field(default=3306, ge=1, le=65535)
    user: str = Field(..., min_length=1)
    password: str = ""
    database: str = Field(..., min_length=1)


class ConnectionStatus(BaseModel):
    """Current connection state."""

    connected: bool
    database: Optional[str] = None
