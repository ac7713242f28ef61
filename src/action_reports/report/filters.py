"""Table filters forming the normalization pipeline shared by every action report."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from functools import cmp_to_key
from typing import Any
from urllib.parse import unquote_plus

import structlog

from ..data.archives import (
    COLUMN_AGGREGATIONS,
    COLUMN_NAMES,
    INDEX_SITE_SEARCH_HAS_NO_RESULT,
    SUMMARY_ROW_LABEL,
)
from ..data.models import Report, ReportTable, Row, is_number

logger = structlog.get_logger(__name__)

SORT_COLUMN = "nb_visits"


def _loaded_tables(table: ReportTable) -> Iterator[ReportTable]:
    """Yield ``table`` and, depth first, every sub-table loaded below it."""
    yield table
    for row in table.all_rows():
        subtable = table.subtable_for(row)
        if subtable is not None:
            yield from _loaded_tables(subtable)


def replace_column_names(
    table: ReportTable, mapping: Mapping[int | str, str] = COLUMN_NAMES
) -> None:
    """Rename archived column ids to their public metric names at every loaded level."""
    for level in _loaded_tables(table):
        for row in level.all_rows():
            row.metrics = {
                mapping.get(column, column): value for column, value in row.metrics.items()
            }


def _compare_values(left: Any, right: Any) -> int:
    """Order values descending: numbers numerically, anything else as plain strings.

    Missing values always sort after present ones.
    """
    if left is None or right is None:
        return (left is None) - (right is None)
    if is_number(left) and is_number(right):
        return (right > left) - (right < left)
    left_text, right_text = str(left), str(right)
    return (right_text > left_text) - (right_text < left_text)


def sort_rows(
    table: ReportTable,
    column: str = SORT_COLUMN,
    *,
    recursive: bool = False,
) -> None:
    """Stable descending sort on ``column``; loaded sub-tables too when ``recursive``.

    The summary row is stored apart from ordinary rows and stays last.
    """
    key = cmp_to_key(lambda a, b: _compare_values(a.get_metric(column), b.get_metric(column)))
    table.rows.sort(key=key)
    if not recursive:
        return
    for row in table.rows:
        subtable = table.subtable_for(row)
        if subtable is not None:
            sort_rows(subtable, column, recursive=True)


def add_segment_values(table: ReportTable) -> None:
    """Store the decoded ``url`` metadata as ``segmentValue`` for exact-match segments."""
    for row in table.all_rows():
        url = row.metadata.get("url")
        if url:
            row.metadata["segmentValue"] = unquote_plus(url)


def group_by_label(
    table: ReportTable,
    reduce_label: Callable[[str], str] = unquote_plus,
    aggregations: Mapping[str, str] = COLUMN_AGGREGATIONS,
) -> None:
    """Merge rows whose reduced label collides.

    The first row of each group keeps its position and metadata and takes the
    reduced label. Later rows are summed into it and removed. The summary row
    is never grouped.
    """
    groups: dict[str, Row] = {}
    merged: list[Row] = []
    for row in table.rows:
        label = reduce_label(row.label)
        first = groups.get(label)
        if first is None:
            row.label = label
            groups[label] = row
            continue
        first.sum_row(row, dict(aggregations))
        merged.append(row)
    if merged:
        table.delete_rows(merged)
        logger.debug("filter.grouped", merged=len(merged), remaining=len(table.rows))


def replace_summary_row_label(table: ReportTable, label: str = SUMMARY_ROW_LABEL) -> None:
    """Give the summary row of every loaded level its public label."""
    for level in _loaded_tables(table):
        if level.summary_row is not None:
            level.summary_row.label = label


def delete_rows_where(
    table: ReportTable, column: int | str, predicate: Callable[[Any], bool]
) -> None:
    """Delete every row, summary row included, whose ``column`` value satisfies ``predicate``."""
    doomed = [row for row in table.all_rows() if predicate(row.get_metric(column))]
    if doomed:
        table.delete_rows(doomed)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value)


def _number_or_zero(value: Any) -> float:
    if _is_blank(value):
        return 0
    return float(value)


def normalize(report: Report, *, expanded: bool = False) -> Report:
    """Run the standard action report pipeline on ``report`` in place.

    The summary row relabel is queued; it runs when the caller flushes the
    queued filters right before returning the report.
    """
    report.filter(replace_column_names)
    report.filter(sort_rows, SORT_COLUMN, recursive=expanded)
    report.filter(add_segment_values)
    report.filter(group_by_label)
    report.queue_filter(replace_summary_row_label)
    logger.debug("pipeline.normalized", rows=report.row_count, expanded=expanded)
    return report


def keep_entry_pages(report: Report) -> None:
    """Drop rows that never were the first action of a visit."""
    report.filter(delete_rows_where, "entry_nb_visits", _is_blank)


def keep_exit_pages(report: Report) -> None:
    """Drop rows that never were the last action of a visit."""
    report.filter(delete_rows_where, "exit_nb_visits", _is_blank)


def keep_pages_following_search(report: Report) -> None:
    """Keep only pages that were viewed right after a site search."""
    report.filter(
        delete_rows_where,
        "nb_hits_following_search",
        lambda value: _number_or_zero(value) <= 0,
    )


def _keep_no_result_keywords(table: ReportTable) -> None:
    delete_rows_where(
        table,
        INDEX_SITE_SEARCH_HAS_NO_RESULT,
        lambda value: _number_or_zero(value) < 1,
    )
    table.delete_summary_row()
    table.delete_column(INDEX_SITE_SEARCH_HAS_NO_RESULT)


def keep_no_result_keywords(report: Report) -> None:
    """Keep keywords that returned no result; runs on archived column ids."""
    report.filter(_keep_no_result_keywords)


__all__ = [
    "add_segment_values",
    "delete_rows_where",
    "group_by_label",
    "keep_entry_pages",
    "keep_exit_pages",
    "keep_no_result_keywords",
    "keep_pages_following_search",
    "normalize",
    "replace_column_names",
    "replace_summary_row_label",
    "sort_rows",
]
