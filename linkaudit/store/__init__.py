"""Job store package.

Public re-exports so callers can write::

    from linkaudit.store import JobStore, create_store
"""

from __future__ import annotations

from typing import Optional

from linkaudit.config import Settings, settings as default_settings
from linkaudit.store.base import (
    InvalidTransitionError,
    JobAlreadyExistsError,
    JobNotFoundError,
    JobStore,
    JobStoreError,
    ResultAlreadySavedError,
)
from linkaudit.store.memory import InMemoryJobStore
from linkaudit.store.sqlite import SqliteJobStore

STORE_BACKENDS = ("memory", "sqlite")


def create_store(settings: Optional[Settings] = None) -> JobStore:
    """Build the store selected by ``settings.store_backend``.

    Raises:
        ValueError: If the backend name is not one of :data:`STORE_BACKENDS`.
    """
    settings = settings or default_settings
    backend = settings.store_backend.lower()

    if backend == "memory":
        return InMemoryJobStore()
    if backend == "sqlite":
        from linkaudit.db import get_connection, init_db

        conn = get_connection(settings.db_path)
        init_db(conn)
        return SqliteJobStore(conn)
    raise ValueError(
        f"Unknown store backend {settings.store_backend!r}; expected one of {STORE_BACKENDS}"
    )


__all__ = [
    "JobStore",
    "InMemoryJobStore",
    "SqliteJobStore",
    "create_store",
    "STORE_BACKENDS",
    "JobStoreError",
    "JobNotFoundError",
    "JobAlreadyExistsError",
    "InvalidTransitionError",
    "ResultAlreadySavedError",
]
