"""Process-wide connection holder."""

from dbbrowser.config import get_settings
from dbbrowser.connection import ConnectionHolder

settings = get_settings()

holder = ConnectionHolder(pool_size=settings.DB_POOL_SIZE)


def get_holder() -> ConnectionHolder:
    """Dependency to get the shared connection holder."""
    return holder
