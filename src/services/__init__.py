"""Services module for the mold registry."""

from services.database import (
    check_connection,
    get_session_factory,
    run_migrations_sync,
)

__all__ = [
    "check_connection",
    "get_session_factory",
    "run_migrations_sync",
]
