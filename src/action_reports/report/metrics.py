"""Derived metrics computed from archived columns."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ..data.models import ReportTable, Row


def _as_decimal(value: Any) -> Decimal:
    """Convert metric values to :class:`Decimal`, treating blanks as zero."""
    if value is None or value == "" or isinstance(value, bool):
        return Decimal(0)
    return Decimal(str(value))


def quotient(numerator: Any, denominator: Any, precision: int = 0) -> int | float:
    """Return ``numerator / denominator`` rounded half-up; zero when the denominator is zero."""
    divisor = _as_decimal(denominator)
    if divisor == 0:
        return 0
    exponent = Decimal(1).scaleb(-precision)
    value = (_as_decimal(numerator) / divisor).quantize(exponent, rounding=ROUND_HALF_UP)
    if precision == 0:
        return int(value)
    return float(value)


def percentage(numerator: Any, denominator: Any, precision: int = 0) -> str:
    """Format ``numerator / denominator`` as a percent string such as ``"42%"``."""
    value = quotient(_as_decimal(numerator) * 100, denominator, precision)
    return f"{value}%"


def add_quotient_column(
    table: ReportTable,
    new_column: str,
    numerator_column: str,
    denominator_column: str,
    precision: int = 0,
) -> None:
    """Add ``new_column = numerator / denominator`` to every row, summary row included."""
    for row in table.all_rows():
        row.set_metric(
            new_column,
            quotient(
                row.get_metric(numerator_column, 0),
                row.get_metric(denominator_column, 0),
                precision,
            ),
        )


def add_pages_per_search(table: ReportTable, column_to_read: str = "nb_hits") -> None:
    """Average number of result pages viewed per search."""
    add_quotient_column(table, "nb_pages_per_search", column_to_read, "nb_visits", precision=1)


def _page_metrics(row: Row) -> dict[str, int | float | str]:
    return {
        "avg_time_on_page": quotient(
            row.get_metric("sum_time_spent", 0), row.get_metric("nb_visits", 0)
        ),
        "bounce_rate": percentage(
            row.get_metric("entry_bounce_count", 0), row.get_metric("entry_nb_visits", 0)
        ),
        "exit_rate": percentage(
            row.get_metric("exit_nb_visits", 0), row.get_metric("nb_visits", 0)
        ),
        "avg_time_generation": quotient(
            row.get_metric("sum_time_generation", 0),
            row.get_metric("nb_hits_with_time_generation", 0),
            precision=3,
        ),
    }


def add_page_processed_metrics(table: ReportTable) -> None:
    """Attach average time on page, bounce rate, exit rate and generation time."""
    for row in table.all_rows():
        for column, value in _page_metrics(row).items():
            row.set_metric(column, value)


__all__ = [
    "add_page_processed_metrics",
    "add_pages_per_search",
    "add_quotient_column",
    "percentage",
    "quotient",
]
