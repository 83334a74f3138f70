"""Workers run by the `.Application` scheduler."""

from .base import Worker
from .database import DatabaseWorker

__all__ = ["Worker", "DatabaseWorker"]
