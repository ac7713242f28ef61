"""Archived report data structures and archive gateways."""

from .client import ArchiveHttpClient
from .gateway import ArchiveGateway
from .models import (
    Period,
    PeriodCollection,
    QueryCoordinates,
    Report,
    ReportTable,
    ResultKind,
    Row,
    dump_report,
    kind_of,
    load_report,
)
from .snapshot import ArchiveSnapshot

__all__ = [
    "ArchiveGateway",
    "ArchiveHttpClient",
    "ArchiveSnapshot",
    "Period",
    "PeriodCollection",
    "QueryCoordinates",
    "Report",
    "ReportTable",
    "ResultKind",
    "Row",
    "dump_report",
    "kind_of",
    "load_report",
]
