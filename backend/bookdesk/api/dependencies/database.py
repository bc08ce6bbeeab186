# backend/bookdesk/api/dependencies/database.py
"""
Per-request database session.

The tenant context and every service resolved for a request share this one
session. Tests override this dependency to hand routes their own session.
"""

from typing import Iterator

from sqlalchemy.orm import Session

from ... import database


def get_db() -> Iterator[Session]:
    """One session per request; committed on success, rolled back on error."""
    yield from database.get_db()
