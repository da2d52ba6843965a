"""
FastAPI dependencies.
"""

from datetime import date

from subtrack.database import get_db
from subtrack.services.scheduler import local_today

__all__ = ["get_db", "get_today"]


def get_today() -> date:
    """
    Dependency for the calendar date used by due-date windows.
    Overridden in tests to pin "today".
    """
    return local_today()
