"""
BaseService -- shared shape of kernel services.

A kernel service is handed the caller's ``Session`` and issues flushes and
statements on it.  It never commits or rolls back: the module service that
called it decides, so a posting can span many catalog writes and still be a
single transaction.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """Holds the caller's session as ``self.session``."""

    def __init__(self, session: Session):
        self.session = session
