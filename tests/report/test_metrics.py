"""Unit tests for derived metrics."""

import pytest

from action_reports.data.models import Row
from action_reports.report.metrics import (
    add_page_processed_metrics,
    add_pages_per_search,
    percentage,
    quotient,
)
from tests.conftest import make_row, make_table


@pytest.mark.parametrize(
    "numerator, denominator, precision, expected",
    [
        (10, 4, 1, 2.5),
        (5, 0, 1, 0),
        (5, None, 0, 0),
        (7, 2, 0, 4),
        (1, 3, 2, 0.33),
        ("9", "3", 0, 3),
    ],
)
def test_quotient(numerator, denominator, precision, expected):
    """Division rounds half up and never fails on a zero denominator."""
    assert quotient(numerator, denominator, precision) == expected


def test_percentage():
    """Percentages render as strings."""
    assert percentage(1, 4) == "25%"
    assert percentage(1, 3, 1) == "33.3%"
    assert percentage(3, 0) == "0%"


def test_add_pages_per_search_covers_summary_row():
    """Every row, summary row included, gets the average."""
    table = make_table(
        make_row("shoes", 2, nb_hits=7),
        Row(label="-1", metrics={"nb_visits": 0, "nb_hits": 3}),
    )

    add_pages_per_search(table)

    assert table.rows[0].get_metric("nb_pages_per_search") == 3.5
    assert table.summary_row.get_metric("nb_pages_per_search") == 0


def test_add_pages_per_search_reads_other_column():
    """Categories divide actions rather than hits."""
    table = make_table(make_row("shoes", 4, nb_actions=6))
    add_pages_per_search(table, "nb_actions")
    assert table.rows[0].get_metric("nb_pages_per_search") == 1.5


def test_add_page_processed_metrics():
    """Page rows gain time, bounce, exit and generation metrics."""
    table = make_table(
        make_row(
            "/index",
            4,
            sum_time_spent=90,
            entry_bounce_count=1,
            entry_nb_visits=2,
            exit_nb_visits=1,
            sum_time_generation=1.2345,
            nb_hits_with_time_generation=2,
        )
    )

    add_page_processed_metrics(table)

    metrics = table.rows[0].metrics
    assert metrics["avg_time_on_page"] == 23
    assert metrics["bounce_rate"] == "50%"
    assert metrics["exit_rate"] == "25%"
    assert metrics["avg_time_generation"] == 0.617
