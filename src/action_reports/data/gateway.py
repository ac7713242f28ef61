"""Interface to the archive store that serves aggregated reports."""

from collections.abc import Sequence
from typing import Protocol

from .models import QueryCoordinates, Report


class ArchiveGateway(Protocol):
    """Anything that can materialize archived reports on demand."""

    def fetch(self, coordinates: QueryCoordinates) -> Report:
        """Return the report table (or collection of tables) at ``coordinates``."""
        ...

    def fetch_numeric(
        self,
        names: Sequence[str],
        *,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Return one row of archived numeric records per period."""
        ...


__all__ = ["ArchiveGateway"]
