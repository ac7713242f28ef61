"""Exception hierarchy shared by the action report modules."""


class ActionReportsError(Exception):
    """Base class for errors raised by this package."""


class UnsupportedShapeError(ActionReportsError):
    """Raised when a report value is neither a table nor a period collection.

    Also raised when a path search needs to descend below a row that has no
    sub-table reference. Neither case is reported as an empty result.
    """


class ArchiveNotFoundError(ActionReportsError, LookupError):
    """Raised by a gateway when no archive exists for the requested coordinates."""


__all__ = ["ActionReportsError", "ArchiveNotFoundError", "UnsupportedShapeError"]
