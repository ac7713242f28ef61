"""Global test configuration, fixtures and report builders."""

from datetime import date
from typing import Any

import pytest
import structlog

from action_reports.data.archives import PAGE_URLS
from action_reports.data.models import Period, PeriodCollection, QueryCoordinates, ReportTable, Row
from action_reports.data.snapshot import ArchiveSnapshot


def make_row(label: str, visits: Any = None, subtable_id: int | None = None, **metrics: Any) -> Row:
    """Build a row; ``visits`` lands in the ``nb_visits`` column when given."""
    metadata = metrics.pop("metadata", {})
    if visits is not None:
        metrics["nb_visits"] = visits
    return Row(label=label, metrics=metrics, metadata=metadata, subtable_id=subtable_id)


def make_table(*rows: Row, period: Period | None = None, **metadata: Any) -> ReportTable:
    """Build a report table, optionally tagged with a period."""
    table = ReportTable(metadata=dict(metadata))
    if period is not None:
        table.metadata["period"] = period
    for row in rows:
        table.add_row(row)
    return table


def day(iso: str) -> Period:
    """A one-day period."""
    return Period(label="day", date_start=date.fromisoformat(iso), date_end=date.fromisoformat(iso))


def make_collection(tables: dict[str, Any], key_name: str = "date") -> PeriodCollection:
    """Build a period collection keeping the given key order."""
    collection = PeriodCollection(key_name=key_name)
    for key, table in tables.items():
        collection.add_table(table, key)
    return collection


def coordinates(**overrides: Any) -> QueryCoordinates:
    """Page URL coordinates for site 1 on a single day unless overridden."""
    values: dict[str, Any] = {
        "dataset": PAGE_URLS,
        "site_id": "1",
        "period": "day",
        "date": "2024-03-01",
    }
    values.update(overrides)
    return QueryCoordinates(**values)


@pytest.fixture
def archive() -> ArchiveSnapshot:
    """An empty in-memory archive."""
    return ArchiveSnapshot()


@pytest.fixture(autouse=True)
def reset_structlog():
    """Keep logging configuration from leaking between tests."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
