"""Archive gateway backed by a JSON snapshot of previously fetched reports."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog
from attrs import define, field

from ..errors import ArchiveNotFoundError
from .models import (
    QueryCoordinates,
    QueryCoordinatesSchema,
    Report,
    ReportTable,
    dump_report,
    load_report,
)

logger = structlog.get_logger(__name__)

NumericKey = tuple[str, str, str, str | None]


def _numeric_key(site_id: str, period: str, date: str, segment: str | None) -> NumericKey:
    return (str(site_id), period, date, segment or None)


@define(slots=True)
class ArchiveSnapshot:
    """Serve reports from stored payloads.

    Payloads are kept in their serialized form and decoded on every fetch so
    that each query receives fresh tables it may mutate freely.
    """

    archives: dict[QueryCoordinates, dict[str, Any]] = field(factory=dict)
    numeric: dict[NumericKey, dict[str, Any]] = field(factory=dict)

    @classmethod
    def from_file(cls, path: str | Path) -> ArchiveSnapshot:
        """Load a snapshot written by :meth:`write`."""
        document = json.loads(Path(path).read_text())
        snapshot = cls.from_document(document)
        logger.debug(
            "snapshot.loaded",
            path=str(path),
            archives=len(snapshot.archives),
            numeric=len(snapshot.numeric),
        )
        return snapshot

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> ArchiveSnapshot:
        """Build a snapshot from its decoded JSON document."""
        schema = QueryCoordinatesSchema()
        snapshot = cls()
        for entry in document.get("archives", []):
            coordinates = schema.load(entry["coordinates"])
            snapshot.archives[coordinates] = entry["report"]
        for entry in document.get("numeric", []):
            key = _numeric_key(
                entry["site_id"], entry["period"], entry["date"], entry.get("segment")
            )
            snapshot.numeric[key] = entry["report"]
        return snapshot

    def add(self, coordinates: QueryCoordinates, report: Report | dict[str, Any]) -> None:
        """Store a report (or its payload) under ``coordinates``."""
        payload = report if isinstance(report, dict) else dump_report(report)
        self.archives[coordinates] = payload

    def add_numeric(
        self,
        report: Report | dict[str, Any],
        *,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> None:
        """Store the numeric records table for one site/period/date."""
        payload = report if isinstance(report, dict) else dump_report(report)
        self.numeric[_numeric_key(site_id, period, date, segment)] = payload

    def fetch(self, coordinates: QueryCoordinates) -> Report:
        """Return a fresh copy of the report stored under ``coordinates``."""
        try:
            payload = self.archives[coordinates]
        except KeyError:
            logger.warning("snapshot.archive_missing", coordinates=str(coordinates))
            raise ArchiveNotFoundError(f"No archive stored for {coordinates}") from None
        return load_report(payload)

    def fetch_numeric(
        self,
        names: Sequence[str],
        *,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Return the stored numeric table restricted to ``names``."""
        key = _numeric_key(site_id, period, date, segment)
        try:
            payload = self.numeric[key]
        except KeyError:
            logger.warning("snapshot.numeric_missing", key=key)
            raise ArchiveNotFoundError(f"No numeric records stored for {key}") from None
        report = load_report(payload)
        report.filter(ReportTable.keep_columns, names)
        return report

    def to_document(self) -> dict[str, Any]:
        """Return the JSON document representation of the snapshot."""
        schema = QueryCoordinatesSchema()
        return {
            "archives": [
                {"coordinates": schema.dump(coordinates), "report": payload}
                for coordinates, payload in self.archives.items()
            ],
            "numeric": [
                {
                    "site_id": site_id,
                    "period": period,
                    "date": date,
                    "segment": segment,
                    "report": payload,
                }
                for (site_id, period, date, segment), payload in self.numeric.items()
            ],
        }

    def write(self, path: str | Path) -> None:
        """Serialize the snapshot to disk."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(self.to_document(), indent=2))
        logger.debug("snapshot.written", path=str(target))


__all__ = ["ArchiveSnapshot"]
