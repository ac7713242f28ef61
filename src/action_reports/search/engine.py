"""Resolve a label path against archived report tables, fetching sub-tables while descending."""

from __future__ import annotations

from collections.abc import Sequence
from typing import cast

import structlog
from attrs import define

from ..data.gateway import ArchiveGateway
from ..data.models import (
    PeriodCollection,
    QueryCoordinates,
    Report,
    ReportTable,
    ResultKind,
    kind_of,
)
from ..errors import UnsupportedShapeError

logger = structlog.get_logger(__name__)


@define(slots=True)
class PathSearch:
    """Find the single row chain matching a label path.

    A collection fetched at the root is searched entry by entry and keeps
    every key. Collections met further down are treated as one logical path:
    the first entry yielding a row wins.
    """

    gateway: ArchiveGateway

    def search(
        self,
        coordinates: QueryCoordinates,
        segments: Sequence[str],
        *,
        root: Report | None = None,
    ) -> Report:
        """Return the row matching ``segments`` (or an empty table) for every root entry."""
        path = tuple(segments)
        if not path:
            raise ValueError("A label path needs at least one segment.")
        log = logger.bind(dataset=coordinates.dataset, path=list(path))
        if root is None:
            root = self.gateway.fetch(coordinates)
        if kind_of(root) is ResultKind.MULTI:
            collection = cast(PeriodCollection, root)
            result = collection.empty_clone()
            for key, table in collection.items():
                result.add_table(self._resolve(coordinates, table, path), key)
            log.debug("search.collection_resolved", entries=len(result), rows=result.row_count)
            return result
        resolved = self._resolve(coordinates, root, path)
        log.debug("search.table_resolved", rows=resolved.row_count)
        return resolved

    def _resolve(
        self,
        coordinates: QueryCoordinates,
        report: Report,
        path: tuple[str, ...],
    ) -> ReportTable:
        if kind_of(report) is ResultKind.MULTI:
            for key, table in cast(PeriodCollection, report).items():
                resolved = self._resolve(coordinates, table, path)
                if resolved.row_count > 0:
                    logger.debug("search.nested_match", key=key)
                    return resolved
            return ReportTable()

        table = cast(ReportTable, report)
        label, remaining = path[0], path[1:]
        row = table.get_row_from_label(label)
        if row is None:
            logger.debug("search.label_missing", label=label, subtable_id=coordinates.subtable_id)
            return ReportTable(metadata=table.copy_metadata())

        if not remaining:
            result = ReportTable(metadata=table.copy_metadata())
            result.add_row(row)
            return result

        if row.subtable_id is None:
            raise UnsupportedShapeError(
                f"Row {label!r} has no sub-table but {len(remaining)} path segment(s) remain"
            )
        child = coordinates.for_subtable(row.subtable_id, table.period)
        logger.debug(
            "search.descend",
            label=label,
            subtable_id=row.subtable_id,
            date=child.date,
            remaining=len(remaining),
        )
        return self._resolve(child, self.gateway.fetch(child), remaining)


__all__ = ["PathSearch"]
