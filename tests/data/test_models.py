"""Unit tests for the report data models and their schemas."""

from datetime import date

import pytest

from action_reports.data.archives import INDEX_NB_VISITS
from action_reports.data.models import (
    Period,
    PeriodCollection,
    ReportTable,
    ResultKind,
    Row,
    _metric_key,
    _optional_int,
    dump_report,
    is_number,
    kind_of,
    load_report,
)
from action_reports.errors import UnsupportedShapeError
from tests.conftest import coordinates, day, make_collection, make_row, make_table


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, None),
        ("", None),
        (False, None),
        ("7", 7),
        (7, 7),
    ],
)
def test_optional_int(value, expected):
    """Test the _optional_int helper function."""
    assert _optional_int(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2", 2),
        ("-1", -1),
        ("nb_visits", "nb_visits"),
        (3, 3),
    ],
)
def test_metric_key(value, expected):
    """Test the _metric_key helper function."""
    assert _metric_key(value) == expected


def test_period_date_range():
    """A period renders as the start,end date parameter."""
    period = Period(label=" week ", date_start="2024-03-04", date_end=date(2024, 3, 10))
    assert period.label == "week"
    assert period.date_range() == "2024-03-04,2024-03-10"


def test_summary_row_is_kept_apart_and_last():
    """The reserved summary row never mixes with ordinary rows."""
    table = ReportTable()
    table.add_row(Row(label=-1, metrics={"nb_visits": 1}))
    table.add_row(make_row("a", 5))
    table.add_row(make_row("b", 3))

    assert [row.label for row in table.rows] == ["a", "b"]
    assert [row.label for row in table.all_rows()] == ["a", "b", "-1"]
    assert len(table) == 3

    table.add_row(Row(label="-1", metrics={"nb_visits": 9}))
    assert table.summary_row.get_metric("nb_visits") == 9
    assert len(table) == 3


def test_get_row_from_label_is_exact():
    """Label lookup does not match prefixes or case variants."""
    table = make_table(make_row("docs"), make_row("/docs.html"))
    assert table.get_row_from_label("docs").label == "docs"
    assert table.get_row_from_label("doc") is None
    assert table.get_row_from_label("Docs") is None


def test_delete_rows_and_columns():
    """Rows are removed by identity and columns from every row."""
    keep = make_row("keep", 1, nb_hits=2)
    drop = make_row("drop", 1, nb_hits=3)
    table = make_table(keep, drop, Row(label="-1", metrics={"nb_hits": 1}))

    table.delete_rows([drop, table.summary_row])
    assert table.rows == [keep]
    assert table.summary_row is None

    table.delete_column("nb_hits")
    assert keep.metrics == {"nb_visits": 1}


def test_keep_columns_includes_summary_row():
    """Only the listed columns survive, on the summary row too."""
    table = make_table(
        make_row("a", 1, nb_hits=2, extra=3), Row(label="-1", metrics={"nb_hits": 1, "extra": 1})
    )
    table.filter(ReportTable.keep_columns, ["nb_hits"])
    assert table.rows[0].metrics == {"nb_hits": 2}
    assert table.summary_row.metrics == {"nb_hits": 1}


@pytest.mark.parametrize(
    "value, expected", [(3, True), (0.5, True), (True, False), ("3", False), (None, False)]
)
def test_is_number(value, expected):
    """Booleans are not metric values."""
    assert is_number(value) is expected


def test_sum_row_sums_numbers_and_applies_aggregations():
    """Numbers are summed unless an aggregation says otherwise."""
    first = make_row(
        "a", 2, min_time_generation=0.5, max_time_generation=1.0, metadata={"url": "x"}
    )
    other = make_row(
        "a", 3, min_time_generation=0.2, max_time_generation=2.0, extra=4, metadata={"url": "y"}
    )
    other.subtable_id = 9

    first.sum_row(other, {"min_time_generation": "min", "max_time_generation": "max"})

    assert first.get_metric("nb_visits") == 5
    assert first.get_metric("min_time_generation") == 0.2
    assert first.get_metric("max_time_generation") == 2.0
    assert first.get_metric("extra") == 4
    assert first.metadata == {"url": "x"}
    assert first.subtable_id == 9


def test_queued_filters_run_once_in_order():
    """Deferred filters wait for the flush and do not run twice."""
    calls = []
    table = make_table(make_row("a", 1))
    table.queue_filter(lambda t, tag: calls.append(tag), "first")
    table.queue_filter(lambda t, tag: calls.append(tag), "second")
    table.filter(lambda t: calls.append("eager"))

    assert calls == ["eager"]
    table.apply_queued_filters()
    table.apply_queued_filters()
    assert calls == ["eager", "first", "second"]


def test_collection_empty_clone_and_filters():
    """The empty clone keeps key name and metadata; filters reach every entry."""
    collection = make_collection(
        {"2024-03-01": make_table(make_row("a", 1)), "2024-03-02": make_table(make_row("b", 2))},
        key_name="date",
    )
    collection.metadata["site"] = "1"

    clone = collection.empty_clone()
    assert clone.key_name == "date"
    assert clone.metadata == {"site": "1"}
    assert len(clone) == 0

    collection.filter(lambda t: t.rows.clear())
    assert collection.row_count == 0


def test_kind_of_rejects_untagged_values():
    """Only tables and collections are report values."""
    assert kind_of(ReportTable()) is ResultKind.SINGLE
    assert kind_of(PeriodCollection()) is ResultKind.MULTI
    with pytest.raises(UnsupportedShapeError):
        kind_of({"rows": []})


def test_coordinates_for_subtable_pins_period():
    """Descending replaces the sub-table id and, with a period, the date."""
    base = coordinates(date="last7")
    child = base.for_subtable(12)
    pinned = base.for_subtable(12, day("2024-03-02"))

    assert base.subtable_id is None
    assert child.subtable_id == 12 and child.date == "last7"
    assert pinned.date == "2024-03-02,2024-03-02"
    assert coordinates(site_id=3).site_id == "3"


def test_coordinates_to_params():
    """Optional coordinates only appear when set."""
    params = coordinates(segment="browserCode==FF", subtable_id=4, depth=2).to_params()
    assert params == {
        "idSite": "1",
        "period": "day",
        "date": "2024-03-01",
        "expanded": "0",
        "segment": "browserCode==FF",
        "idSubtable": "4",
        "depth": "2",
    }


def test_load_table_payload():
    """Table payloads restore integer column ids, period and sub-tables."""
    payload = {
        "kind": "table",
        "metadata": {"site": "1"},
        "period": {"label": "day", "date_start": "2024-03-01", "date_end": "2024-03-01"},
        "rows": [
            {"label": "docs", "metrics": {"2": 7}, "subtable_id": 3},
            {"label": "/index", "metrics": {"2": 4}, "metadata": {"url": "http://e.org/"}},
        ],
        "summary_row": {"label": "-1", "metrics": {"2": 1}},
        "subtables": {"3": {"rows": [{"label": "/a.html", "metrics": {"2": 7}}]}},
    }

    table = load_report(payload)

    assert isinstance(table, ReportTable)
    assert table.period == day("2024-03-01")
    assert table.metadata["site"] == "1"
    assert table.rows[0].get_metric(INDEX_NB_VISITS) == 7
    assert table.rows[0].subtable_id == 3
    assert table.summary_row.get_metric(INDEX_NB_VISITS) == 1
    assert table.subtables[3].rows[0].label == "/a.html"


def test_load_collection_payload_keeps_key_order():
    """Collection entries come back in payload order, nested kinds included."""
    payload = {
        "kind": "collection",
        "key_name": "idSite",
        "entries": [
            {"key": "3", "report": {"kind": "table", "rows": []}},
            {"key": "1", "report": {"kind": "collection", "entries": []}},
        ],
    }

    collection = load_report(payload)

    assert isinstance(collection, PeriodCollection)
    assert collection.key_name == "idSite"
    assert list(collection.tables) == ["3", "1"]
    assert kind_of(collection.get_table("1")) is ResultKind.MULTI


def test_load_unknown_kind_is_unsupported():
    """Unknown report kinds are a shape error, not an empty report."""
    with pytest.raises(UnsupportedShapeError, match="Unsupported report kind"):
        load_report({"kind": "matrix"})


def test_dump_then_load_preserves_report():
    """A dumped collection loads back into an equal collection."""
    table = make_table(
        make_row("docs", 3, subtable_id=2, metadata={"url": "http://e.org/docs/"}),
        Row(label="-1", metrics={"nb_visits": 1}),
        period=day("2024-03-01"),
        site="1",
    )
    table.subtables[2] = make_table(make_row("/a.html", 3))
    collection = make_collection({"2024-03-01": table, "2024-03-02": ReportTable()})

    payload = dump_report(collection)

    assert payload["kind"] == "collection"
    assert payload["entries"][0]["report"]["period"]["date_start"] == "2024-03-01"
    assert load_report(payload) == collection
