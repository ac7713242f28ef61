"""Public query surface for page URL, page title, download, outlink and site search reports."""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import AbstractContextManager
from typing import cast

import structlog
from attrs import define, field

from .data import archives
from .data.archives import ActionKind
from .data.gateway import ArchiveGateway
from .data.models import (
    PeriodCollection,
    QueryCoordinates,
    Report,
    ReportTable,
    ResultKind,
    kind_of,
)
from .errors import UnsupportedShapeError
from .logging import request_context
from .report import filters
from .report.metrics import add_page_processed_metrics, add_pages_per_search
from .search.engine import PathSearch
from .search.paths import decompose

logger = structlog.get_logger(__name__)


def _context(report: str, site_id: str, period: str, date: str) -> AbstractContextManager[None]:
    """Bind the report name and coordinates to log lines emitted while serving it."""
    return request_context(report=report, site_id=str(site_id), period=period, date=date)


def _column_list(columns: str | Sequence[str] | None) -> list[str]:
    """Accept ``"a,b"`` or a sequence of column names."""
    if not columns:
        return []
    if isinstance(columns, str):
        return [column.strip() for column in columns.split(",") if column.strip()]
    return [column.strip() for column in columns if column.strip()]


@define(slots=True)
class ActionsApi:
    """Fetch, search and normalize action reports through an archive gateway.

    Every public method returns a finished report: the normalization pipeline
    has run and the queued filters have been flushed.
    """

    gateway: ArchiveGateway
    url_delimiter: str = "/"
    title_delimiter: str = "/"
    max_depth: int | None = None
    excluded_parameters: tuple[str, ...] = field(default=(), converter=tuple)

    def get(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        columns: str | Sequence[str] | None = None,
    ) -> Report:
        """Overview metrics (pageviews, downloads, outlinks, searches)."""
        requested = _column_list(columns)
        unknown = [column for column in requested if column not in archives.OVERVIEW_METRICS]
        if unknown:
            logger.warning("api.unknown_columns", columns=unknown)
        selected = [column for column in requested if column not in unknown]
        if not selected:
            selected = list(archives.OVERVIEW_METRICS)
        stored = [archives.NUMERIC_PREFIX + column for column in selected]
        with _context("get", site_id, period, date):
            report = self.gateway.fetch_numeric(
                stored, site_id=str(site_id), period=period, date=date, segment=segment
            )
            report.filter(filters.replace_column_names, dict(zip(stored, selected)))
            report.queue_filter(ReportTable.keep_columns, selected)
            return self._finalize(report)

    def get_page_urls(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
        depth: int | None = None,
    ) -> Report:
        """Page URLs as a folder hierarchy."""
        with _context("page_urls", site_id, period, date):
            report = self._page_urls(site_id, period, date, segment, expanded, subtable_id, depth)
            return self._finalize(report)

    def get_page_urls_following_site_search(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        """Page URLs viewed right after a site search."""
        with _context("page_urls_following_search", site_id, period, date):
            report = self._page_urls(site_id, period, date, segment, expanded, subtable_id)
            filters.keep_pages_following_search(report)
            return self._finalize(report)

    def get_entry_page_urls(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        """Page URLs that started at least one visit."""
        with _context("entry_page_urls", site_id, period, date):
            report = self._page_urls(site_id, period, date, segment, expanded, subtable_id)
            filters.keep_entry_pages(report)
            return self._finalize(report)

    def get_exit_page_urls(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        """Page URLs that ended at least one visit."""
        with _context("exit_page_urls", site_id, period, date):
            report = self._page_urls(site_id, period, date, segment, expanded, subtable_id)
            filters.keep_exit_pages(report)
            return self._finalize(report)

    def get_page_url(
        self,
        page_url: str,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Metrics for one page URL."""
        with _context("page_url", site_id, period, date):
            report = self._lookup(
                archives.PAGE_URLS, page_url, ActionKind.PAGE_URL, site_id, period, date, segment
            )
            report.queue_filter(add_page_processed_metrics)
            filters.normalize(report)
            return self._finalize(report)

    def get_page_titles(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        """Page titles as a category hierarchy."""
        with _context("page_titles", site_id, period, date):
            report = self._page_titles(site_id, period, date, segment, expanded, subtable_id)
            return self._finalize(report)

    def get_page_titles_following_site_search(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        """Page titles viewed right after a site search."""
        with _context("page_titles_following_search", site_id, period, date):
            report = self._page_titles(site_id, period, date, segment, expanded, subtable_id)
            filters.keep_pages_following_search(report)
            return self._finalize(report)

    def get_entry_page_titles(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        """Page titles that started at least one visit."""
        with _context("entry_page_titles", site_id, period, date):
            report = self._page_titles(site_id, period, date, segment, expanded, subtable_id)
            filters.keep_entry_pages(report)
            return self._finalize(report)

    def get_exit_page_titles(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        """Page titles that ended at least one visit."""
        with _context("exit_page_titles", site_id, period, date):
            report = self._page_titles(site_id, period, date, segment, expanded, subtable_id)
            filters.keep_exit_pages(report)
            return self._finalize(report)

    def get_page_title(
        self,
        page_name: str,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Metrics for one page title."""
        with _context("page_title", site_id, period, date):
            report = self._lookup(
                archives.PAGE_TITLES,
                page_name,
                ActionKind.PAGE_TITLE,
                site_id,
                period,
                date,
                segment,
            )
            report.queue_filter(add_page_processed_metrics)
            filters.normalize(report)
            return self._finalize(report)

    def get_downloads(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        """Downloaded files grouped by host."""
        with _context("downloads", site_id, period, date):
            report = self._listing(
                archives.DOWNLOADS, site_id, period, date, segment, expanded, subtable_id
            )
            return self._finalize(report)

    def get_download(
        self,
        download_url: str,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Metrics for one downloaded file."""
        with _context("download", site_id, period, date):
            report = self._lookup(
                archives.DOWNLOADS,
                download_url,
                ActionKind.DOWNLOAD,
                site_id,
                period,
                date,
                segment,
            )
            filters.normalize(report)
            return self._finalize(report)

    def get_outlinks(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        """Clicked outlinks grouped by host."""
        with _context("outlinks", site_id, period, date):
            report = self._listing(
                archives.OUTLINKS, site_id, period, date, segment, expanded, subtable_id
            )
            return self._finalize(report)

    def get_outlink(
        self,
        outlink_url: str,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Metrics for one outlink."""
        with _context("outlink", site_id, period, date):
            report = self._lookup(
                archives.OUTLINKS, outlink_url, ActionKind.OUTLINK, site_id, period, date, segment
            )
            filters.normalize(report)
            return self._finalize(report)

    def get_site_search_keywords(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Site search keywords with the average number of result pages viewed."""
        with _context("site_search_keywords", site_id, period, date):
            report = self._fetch(archives.SITE_SEARCH, site_id, period, date, segment)
            report.filter(ReportTable.delete_column, archives.INDEX_SITE_SEARCH_HAS_NO_RESULT)
            filters.normalize(report)
            report.filter(add_pages_per_search)
            return self._finalize(report)

    def get_site_search_no_result_keywords(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Site search keywords that returned no result."""
        with _context("site_search_no_result_keywords", site_id, period, date):
            report = self._fetch(archives.SITE_SEARCH, site_id, period, date, segment)
            filters.keep_no_result_keywords(report)
            filters.normalize(report)
            report.filter(add_pages_per_search)
            return self._finalize(report)

    def get_site_search_categories(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Site search categories, read from the reserved custom variable."""
        with _context("site_search_categories", site_id, period, date):
            coordinates = QueryCoordinates(
                dataset=archives.CUSTOM_VARIABLES,
                site_id=site_id,
                period=period,
                date=date,
                segment=segment,
            )
            variables = self.gateway.fetch(coordinates)
            if kind_of(variables) is ResultKind.MULTI:
                collection = cast(PeriodCollection, variables)
                report: Report = collection.empty_clone()
                for key, entry in collection.items():
                    report.add_table(self._categories_for_period(coordinates, entry), key)
            else:
                report = self._categories(coordinates, cast(ReportTable, variables))
            filters.normalize(report)
            report.filter(add_pages_per_search, "nb_actions")
            return self._finalize(report)

    def explode(self, value: str, action_kind: ActionKind) -> tuple[str, ...]:
        """Split a searched value into the label path used by the lookups."""
        return decompose(
            value,
            action_kind,
            url_delimiter=self.url_delimiter,
            title_delimiter=self.title_delimiter,
            max_depth=self.max_depth,
            excluded_parameters=self.excluded_parameters,
        )

    def _fetch(
        self,
        dataset: str,
        site_id: str,
        period: str,
        date: str,
        segment: str | None,
        expanded: bool = False,
        subtable_id: int | None = None,
        depth: int | None = None,
    ) -> Report:
        coordinates = QueryCoordinates(
            dataset=dataset,
            site_id=site_id,
            period=period,
            date=date,
            segment=segment,
            expanded=expanded,
            subtable_id=subtable_id,
            depth=depth,
        )
        return self.gateway.fetch(coordinates)

    def _listing(
        self,
        dataset: str,
        site_id: str,
        period: str,
        date: str,
        segment: str | None,
        expanded: bool = False,
        subtable_id: int | None = None,
        depth: int | None = None,
    ) -> Report:
        report = self._fetch(dataset, site_id, period, date, segment, expanded, subtable_id, depth)
        return filters.normalize(report, expanded=expanded)

    def _page_urls(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None,
        expanded: bool = False,
        subtable_id: int | None = None,
        depth: int | None = None,
    ) -> Report:
        return self._listing(
            archives.PAGE_URLS, site_id, period, date, segment, expanded, subtable_id, depth
        )

    def _page_titles(
        self,
        site_id: str,
        period: str,
        date: str,
        segment: str | None,
        expanded: bool = False,
        subtable_id: int | None = None,
    ) -> Report:
        return self._listing(
            archives.PAGE_TITLES, site_id, period, date, segment, expanded, subtable_id
        )

    def _lookup(
        self,
        dataset: str,
        value: str,
        action_kind: ActionKind,
        site_id: str,
        period: str,
        date: str,
        segment: str | None,
    ) -> Report:
        coordinates = QueryCoordinates(
            dataset=dataset, site_id=site_id, period=period, date=date, segment=segment
        )
        segments = self.explode(value, action_kind)
        logger.debug("api.lookup", dataset=dataset, segments=list(segments))
        return PathSearch(self.gateway).search(coordinates, segments)

    def _categories(self, coordinates: QueryCoordinates, variables: ReportTable) -> Report:
        row = variables.get_row_from_label(archives.SEARCH_CATEGORY_VARIABLE)
        if row is None:
            return ReportTable(metadata=variables.copy_metadata())
        if row.subtable_id is None:
            raise UnsupportedShapeError(
                f"Custom variable {archives.SEARCH_CATEGORY_VARIABLE!r} has no value table"
            )
        return self.gateway.fetch(coordinates.for_subtable(row.subtable_id))

    def _categories_for_period(self, coordinates: QueryCoordinates, entry: Report) -> Report:
        # Only per-period tables can be pinned to a single date; a nested
        # collection (several sites and several days) has nothing to rewrite.
        if kind_of(entry) is not ResultKind.SINGLE:
            return ReportTable()
        table = cast(ReportTable, entry)
        if table.period is None:
            return ReportTable(metadata=table.copy_metadata())
        pinned = QueryCoordinates(
            dataset=coordinates.dataset,
            site_id=coordinates.site_id,
            period=coordinates.period,
            date=table.period.date_start.isoformat(),
            segment=coordinates.segment,
        )
        return self._categories(pinned, table)

    @staticmethod
    def _finalize(report: Report) -> Report:
        report.apply_queued_filters()
        logger.debug("api.report_ready", kind=kind_of(report).value, rows=report.row_count)
        return report


__all__ = ["ActionsApi"]
