"""API v1 router - aggregates all endpoint routers."""

from fastapi import APIRouter

from dbbrowser.api.v1.connection import router as connection_router
from dbbrowser.api.v1.foreign_keys import router as foreign_keys_router
from dbbrowser.api.v1.tables import router as tables_router

api_router = APIRouter()

api_router.include_router(connection_router)
api_router.include_router(tables_router)
api_router.include_router(foreign_keys_router)


@api_router.get("/")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Database Browser API",
        "endpoints": {
            "connection": "/api/v1/connection",
            "tables": "/api/v1/tables",
            "foreign-keys": "/api/v1/foreign-keys",
        },
    }
