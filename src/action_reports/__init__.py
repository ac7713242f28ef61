"""Search and normalize archived web analytics action reports."""

from .api import ActionsApi
from .errors import ActionReportsError, ArchiveNotFoundError, UnsupportedShapeError

__all__ = ["ActionsApi", "ActionReportsError", "ArchiveNotFoundError", "UnsupportedShapeError"]
