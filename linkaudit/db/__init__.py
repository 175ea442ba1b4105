"""Database layer package.

Public re-exports so callers can write::

    from linkaudit.db import get_connection, init_db
"""

from linkaudit.db.connection import get_connection
from linkaudit.db.migrations import init_db

__all__ = ["get_connection", "init_db"]
