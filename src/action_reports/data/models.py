"""Report tables, period collections and query coordinates for archived action reports."""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterator
from datetime import date
from enum import Enum
from typing import Any, ClassVar, TypeAlias

import marshmallow as ma
from attrs import define, evolve, field

from ..errors import UnsupportedShapeError
from .archives import SUMMARY_ROW_ID


class ResultKind(Enum):
    """Tag carried by every report value so callers can branch without isinstance checks."""

    SINGLE = "table"
    MULTI = "collection"


def _strip(value: str) -> str:
    """Trim surrounding whitespace from a field."""
    return value.strip()


def _to_date(value: date | str) -> date:
    """Accept ISO date strings as well as :class:`date` objects."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def _optional_int(value: int | str | None) -> int | None:
    """Coerce sub-table ids, treating empty or false-y placeholders as absent."""
    if value is None or value == "" or value is False:
        return None
    return int(value)


def _metric_key(key: int | str) -> int | str:
    """Archived column ids arrive as strings from JSON; restore integer ids."""
    if isinstance(key, str) and key.lstrip("-").isdigit():
        return int(key)
    return key


@define(slots=True, frozen=True)
class Period:
    """Time span a report table was archived for."""

    label: str = field(converter=_strip)
    date_start: date = field(converter=_to_date)
    date_end: date = field(converter=_to_date)

    def date_range(self) -> str:
        """Return the ``start,end`` date parameter that selects exactly this period."""
        return f"{self.date_start.isoformat()},{self.date_end.isoformat()}"


@define(slots=True)
class Row:
    """One labelled row of aggregated metrics.

    ``subtable_id`` references the child table in the archive. The child is
    fetched through a gateway on demand and is not owned by the row.
    """

    label: str = field(converter=str)
    metrics: dict[int | str, Any] = field(factory=dict)
    metadata: dict[str, Any] = field(factory=dict)
    subtable_id: int | None = field(default=None, converter=_optional_int)

    def get_metric(self, column: int | str, default: Any = None) -> Any:
        """Return a metric value or ``default`` when the column is absent."""
        return self.metrics.get(column, default)

    def set_metric(self, column: int | str, value: Any) -> None:
        """Insert or overwrite a metric value."""
        self.metrics[column] = value

    def delete_metric(self, column: int | str) -> None:
        """Remove a metric column if present."""
        self.metrics.pop(column, None)

    def is_summary(self) -> bool:
        """Return True when this is the reserved aggregate-of-others row."""
        return self.label == str(SUMMARY_ROW_ID)

    def sum_row(self, other: Row, aggregations: dict[str, str] | None = None) -> None:
        """Merge the numeric metrics of ``other`` into this row.

        Columns default to addition; ``aggregations`` maps a column to ``min``
        or ``max``. Non-numeric values and metadata keep this row's values.
        """
        aggregations = aggregations or {}
        for column, value in other.metrics.items():
            if not is_number(value):
                self.metrics.setdefault(column, value)
                continue
            current = self.metrics.get(column)
            if not is_number(current):
                self.metrics[column] = value
                continue
            operation = aggregations.get(str(column), "sum")
            if operation == "min":
                self.metrics[column] = min(current, value)
            elif operation == "max":
                self.metrics[column] = max(current, value)
            else:
                self.metrics[column] = current + value
        for key, value in other.metadata.items():
            self.metadata.setdefault(key, value)
        if self.subtable_id is None:
            self.subtable_id = other.subtable_id


def is_number(value: Any) -> bool:
    """Return True for int/float metrics (booleans excluded)."""
    return isinstance(value, int | float) and not isinstance(value, bool)


TableFilter: TypeAlias = Callable[..., None]


@define(slots=True)
class ReportTable:
    """Ordered rows of one report for one period, site and segment.

    The summary row is kept apart from ``rows`` and always iterates last.
    ``subtables`` holds the already-loaded children of an expanded report,
    keyed by the sub-table id stored on the parent row.
    """

    kind: ClassVar[ResultKind] = ResultKind.SINGLE

    rows: list[Row] = field(factory=list)
    metadata: dict[str, Any] = field(factory=dict)
    summary_row: Row | None = None
    subtables: dict[int, ReportTable] = field(factory=dict)
    _queued_filters: list[tuple[TableFilter, tuple[Any, ...], dict[str, Any]]] = field(
        factory=list, init=False, repr=False, eq=False
    )

    def __len__(self) -> int:
        return len(self.rows) + (1 if self.summary_row is not None else 0)

    @property
    def row_count(self) -> int:
        """Number of rows including the summary row."""
        return len(self)

    @property
    def period(self) -> Period | None:
        """Period the table was archived for, when known."""
        return self.metadata.get("period")

    def all_rows(self) -> Iterator[Row]:
        """Yield ordinary rows followed by the summary row."""
        yield from self.rows
        if self.summary_row is not None:
            yield self.summary_row

    def add_row(self, row: Row) -> None:
        """Append a row; the reserved summary id replaces the current summary row."""
        if row.is_summary():
            self.summary_row = row
            return
        self.rows.append(row)

    def get_row_from_label(self, label: str) -> Row | None:
        """Return the row whose label equals ``label`` exactly, if any."""
        for row in self.all_rows():
            if row.label == label:
                return row
        return None

    def delete_rows(self, doomed: list[Row]) -> None:
        """Remove the given row objects, including the summary row."""
        ids = {id(row) for row in doomed}
        self.rows = [row for row in self.rows if id(row) not in ids]
        if self.summary_row is not None and id(self.summary_row) in ids:
            self.summary_row = None

    def delete_summary_row(self) -> None:
        """Drop the summary row."""
        self.summary_row = None

    def delete_column(self, column: int | str) -> None:
        """Remove a metric column from every row."""
        for row in self.all_rows():
            row.delete_metric(column)

    def keep_columns(self, columns: Collection[int | str]) -> None:
        """Remove every metric column not listed in ``columns``."""
        keep = set(columns)
        for row in self.all_rows():
            for column in [column for column in row.metrics if column not in keep]:
                row.delete_metric(column)

    def subtable_for(self, row: Row) -> ReportTable | None:
        """Return the loaded child table of ``row`` when the report was expanded."""
        if row.subtable_id is None:
            return None
        return self.subtables.get(row.subtable_id)

    def copy_metadata(self) -> dict[str, Any]:
        """Return a shallow copy of the table metadata."""
        return dict(self.metadata)

    def filter(self, table_filter: TableFilter, *args: Any, **kwargs: Any) -> None:
        """Apply ``table_filter`` to this table immediately."""
        table_filter(self, *args, **kwargs)

    def queue_filter(self, table_filter: TableFilter, *args: Any, **kwargs: Any) -> None:
        """Defer ``table_filter`` until :meth:`apply_queued_filters` runs."""
        self._queued_filters.append((table_filter, args, kwargs))

    def apply_queued_filters(self) -> None:
        """Run queued filters once, in the order they were queued."""
        queued, self._queued_filters = self._queued_filters, []
        for table_filter, args, kwargs in queued:
            table_filter(self, *args, **kwargs)


@define(slots=True)
class PeriodCollection:
    """Ordered mapping of period (or site) keys to report values."""

    kind: ClassVar[ResultKind] = ResultKind.MULTI

    key_name: str = "date"
    tables: dict[str, Report] = field(factory=dict)
    metadata: dict[str, Any] = field(factory=dict)

    def __len__(self) -> int:
        return len(self.tables)

    @property
    def row_count(self) -> int:
        """Total number of rows across every entry."""
        return sum(table.row_count for table in self.tables.values())

    def add_table(self, table: Report, key: str) -> None:
        """Add or replace the entry stored under ``key``."""
        self.tables[key] = table

    def get_table(self, key: str) -> Report:
        """Return the entry stored under ``key``."""
        return self.tables[key]

    def items(self) -> Iterator[tuple[str, Report]]:
        """Iterate over ``(key, report)`` pairs in key order."""
        yield from self.tables.items()

    def empty_clone(self) -> PeriodCollection:
        """Return a collection with the same key name and metadata but no entries."""
        return PeriodCollection(key_name=self.key_name, metadata=dict(self.metadata))

    def filter(self, table_filter: TableFilter, *args: Any, **kwargs: Any) -> None:
        """Apply ``table_filter`` to every entry, in key order."""
        for table in self.tables.values():
            table.filter(table_filter, *args, **kwargs)

    def queue_filter(self, table_filter: TableFilter, *args: Any, **kwargs: Any) -> None:
        """Queue ``table_filter`` on every entry."""
        for table in self.tables.values():
            table.queue_filter(table_filter, *args, **kwargs)

    def apply_queued_filters(self) -> None:
        """Flush queued filters on every entry."""
        for table in self.tables.values():
            table.apply_queued_filters()


Report: TypeAlias = ReportTable | PeriodCollection


def kind_of(report: object) -> ResultKind:
    """Return the tag of a report value, rejecting anything that is not tagged."""
    kind = getattr(type(report), "kind", None)
    if not isinstance(kind, ResultKind):
        raise UnsupportedShapeError(
            f"Report value of type {type(report).__name__} is neither a table nor a collection"
        )
    return kind


@define(slots=True, frozen=True, kw_only=True)
class QueryCoordinates:
    """Everything needed to fetch one archived report.

    Descending into a sub-table derives new coordinates; instances are never
    mutated.
    """

    dataset: str
    site_id: str = field(converter=str)
    period: str
    date: str
    segment: str | None = None
    expanded: bool = False
    subtable_id: int | None = field(default=None, converter=_optional_int)
    depth: int | None = field(default=None, converter=_optional_int)

    def for_subtable(self, subtable_id: int, period: Period | None = None) -> QueryCoordinates:
        """Coordinates of a child table, pinned to ``period`` when given."""
        if period is None:
            return evolve(self, subtable_id=subtable_id)
        return evolve(self, subtable_id=subtable_id, date=period.date_range())

    def with_dataset(self, dataset: str) -> QueryCoordinates:
        """Same coordinates against another archived record."""
        return evolve(self, dataset=dataset)

    def to_params(self) -> dict[str, str]:
        """Render the coordinates as archive HTTP query parameters."""
        params = {
            "idSite": self.site_id,
            "period": self.period,
            "date": self.date,
            "expanded": "1" if self.expanded else "0",
        }
        if self.segment:
            params["segment"] = self.segment
        if self.subtable_id is not None:
            params["idSubtable"] = str(self.subtable_id)
        if self.depth is not None:
            params["depth"] = str(self.depth)
        return params


class PeriodSchema(ma.Schema):
    """Marshmallow schema for :class:`Period`."""

    label = ma.fields.Str(required=True)
    date_start = ma.fields.Date(required=True)
    date_end = ma.fields.Date(required=True)

    @ma.post_load
    def make_period(self, data: dict[str, Any], **kwargs: object) -> Period:
        """Instantiate :class:`Period` from validated payloads."""
        return Period(**data)


class RowSchema(ma.Schema):
    """Marshmallow schema for :class:`Row`."""

    class Meta:
        unknown = ma.EXCLUDE

    label = ma.fields.Raw(required=True)
    metrics = ma.fields.Dict(load_default=dict)
    metadata = ma.fields.Dict(load_default=dict)
    subtable_id = ma.fields.Int(allow_none=True, load_default=None)

    @ma.post_load
    def make_row(self, data: dict[str, Any], **kwargs: object) -> Row:
        """Instantiate :class:`Row`, restoring integer column ids."""
        metrics = {_metric_key(key): value for key, value in data["metrics"].items()}
        return Row(
            label=data["label"],
            metrics=metrics,
            metadata=data["metadata"],
            subtable_id=data["subtable_id"],
        )


class ReportTableSchema(ma.Schema):
    """Marshmallow schema for :class:`ReportTable` payloads (``kind: table``)."""

    class Meta:
        unknown = ma.EXCLUDE

    rows = ma.fields.List(ma.fields.Nested(RowSchema), load_default=list)
    summary_row = ma.fields.Nested(RowSchema, allow_none=True, load_default=None)
    metadata = ma.fields.Dict(load_default=dict)
    period = ma.fields.Nested(PeriodSchema, allow_none=True, load_default=None)
    subtables = ma.fields.Dict(
        keys=ma.fields.Str(),
        values=ma.fields.Nested(lambda: ReportTableSchema()),
        load_default=dict,
    )

    @ma.pre_dump
    def split_period(self, table: ReportTable, **kwargs: object) -> dict[str, Any]:
        """Serialize the period separately from the plain metadata values."""
        metadata = {key: value for key, value in table.metadata.items() if key != "period"}
        return {
            "rows": table.rows,
            "summary_row": table.summary_row,
            "metadata": metadata,
            "period": table.period,
            "subtables": {str(key): value for key, value in table.subtables.items()},
        }

    @ma.post_load
    def make_table(self, data: dict[str, Any], **kwargs: object) -> ReportTable:
        """Instantiate :class:`ReportTable` from validated payloads."""
        metadata = dict(data["metadata"])
        if data["period"] is not None:
            metadata["period"] = data["period"]
        table = ReportTable(
            metadata=metadata,
            subtables={int(key): value for key, value in data["subtables"].items()},
        )
        for row in data["rows"]:
            table.add_row(row)
        if data["summary_row"] is not None:
            table.summary_row = data["summary_row"]
        return table


class ReportField(ma.fields.Field):
    """Field holding either kind of report, dispatched on the payload's ``kind``."""

    def _serialize(self, value: Any, attr: str | None, obj: Any, **kwargs: Any) -> Any:
        if value is None:
            return None
        return dump_report(value)

    def _deserialize(self, value: Any, attr: str | None, data: Any, **kwargs: Any) -> Report:
        if not isinstance(value, dict):
            raise ma.ValidationError("Report payload must be an object.")
        return load_report(value)


class CollectionEntrySchema(ma.Schema):
    """One ``key -> report`` entry of a period collection."""

    key = ma.fields.Str(required=True)
    report = ReportField(required=True)


class PeriodCollectionSchema(ma.Schema):
    """Marshmallow schema for :class:`PeriodCollection` payloads (``kind: collection``)."""

    class Meta:
        unknown = ma.EXCLUDE

    key_name = ma.fields.Str(load_default="date")
    metadata = ma.fields.Dict(load_default=dict)
    entries = ma.fields.List(ma.fields.Nested(CollectionEntrySchema), load_default=list)

    @ma.pre_dump
    def flatten_entries(self, collection: PeriodCollection, **kwargs: object) -> dict[str, Any]:
        """Expose the ordered mapping as a list so key order survives JSON."""
        return {
            "key_name": collection.key_name,
            "metadata": collection.metadata,
            "entries": [{"key": key, "report": report} for key, report in collection.items()],
        }

    @ma.post_load
    def make_collection(self, data: dict[str, Any], **kwargs: object) -> PeriodCollection:
        """Instantiate :class:`PeriodCollection`, preserving entry order."""
        collection = PeriodCollection(key_name=data["key_name"], metadata=data["metadata"])
        for entry in data["entries"]:
            collection.add_table(entry["report"], entry["key"])
        return collection


class QueryCoordinatesSchema(ma.Schema):
    """Marshmallow schema for :class:`QueryCoordinates`."""

    dataset = ma.fields.Str(required=True)
    site_id = ma.fields.Raw(required=True)
    period = ma.fields.Str(required=True)
    date = ma.fields.Str(required=True)
    segment = ma.fields.Str(allow_none=True, load_default=None)
    expanded = ma.fields.Bool(load_default=False)
    subtable_id = ma.fields.Int(allow_none=True, load_default=None)
    depth = ma.fields.Int(allow_none=True, load_default=None)

    @ma.post_load
    def make_coordinates(self, data: dict[str, Any], **kwargs: object) -> QueryCoordinates:
        """Instantiate :class:`QueryCoordinates` from validated payloads."""
        return QueryCoordinates(**data)


def load_report(payload: dict[str, Any]) -> Report:
    """Deserialize a report payload, dispatching on its ``kind`` tag."""
    kind = payload.get("kind", ResultKind.SINGLE.value)
    if kind == ResultKind.SINGLE.value:
        return ReportTableSchema().load(payload)
    if kind == ResultKind.MULTI.value:
        return PeriodCollectionSchema().load(payload)
    raise UnsupportedShapeError(f"Unsupported report kind {kind!r}")


def dump_report(report: Report) -> dict[str, Any]:
    """Serialize a report into a JSON-friendly payload tagged with its kind."""
    kind = kind_of(report)
    if kind is ResultKind.SINGLE:
        payload = ReportTableSchema().dump(report)
    else:
        payload = PeriodCollectionSchema().dump(report)
    return {"kind": kind.value, **payload}


__all__ = [
    "Period",
    "PeriodCollection",
    "PeriodCollectionSchema",
    "PeriodSchema",
    "QueryCoordinates",
    "QueryCoordinatesSchema",
    "Report",
    "ReportTable",
    "ReportTableSchema",
    "ResultKind",
    "Row",
    "RowSchema",
    "dump_report",
    "is_number",
    "kind_of",
    "load_report",
]
