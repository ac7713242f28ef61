"""Command line entry point for the action-reports application."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click
import requests
import structlog

from action_reports import ActionReportsError, ActionsApi
from action_reports.data import ArchiveHttpClient, ArchiveSnapshot, Report, dump_report
from action_reports.data.archives import DEFAULT_ARCHIVE_URL, ActionKind
from action_reports.data.gateway import ArchiveGateway
from action_reports.logging import configure_logging

ARCHIVE_URL_HELP = (
    "Base URL of the archive service. May also be set via the ACTION_REPORTS_ARCHIVE_URL env var."
)
SNAPSHOT_HELP = (
    "Serve archives from a JSON snapshot instead of the archive service. "
    "May also be set via the ACTION_REPORTS_SNAPSHOT env var."
)

LOG_FORMAT_CHOICES = ("console", "json")
LOG_LEVEL_CHOICES = ("critical", "error", "warning", "info", "debug")

# Listing reports: command name -> (ActionsApi method, accepts --depth).
REPORT_METHODS: dict[str, tuple[str, bool]] = {
    "page-urls": ("get_page_urls", True),
    "entry-page-urls": ("get_entry_page_urls", False),
    "exit-page-urls": ("get_exit_page_urls", False),
    "page-urls-following-search": ("get_page_urls_following_site_search", False),
    "page-titles": ("get_page_titles", False),
    "entry-page-titles": ("get_entry_page_titles", False),
    "exit-page-titles": ("get_exit_page_titles", False),
    "page-titles-following-search": ("get_page_titles_following_site_search", False),
    "downloads": ("get_downloads", False),
    "outlinks": ("get_outlinks", False),
}

# Reports without hierarchy or sub-table selection.
FLAT_REPORT_METHODS: dict[str, str] = {
    "site-search-keywords": "get_site_search_keywords",
    "site-search-no-result-keywords": "get_site_search_no_result_keywords",
    "site-search-categories": "get_site_search_categories",
}

SEARCH_METHODS: dict[str, str] = {
    "page-url": "get_page_url",
    "page-title": "get_page_title",
    "download": "get_download",
    "outlink": "get_outlink",
}

ACTION_KINDS: dict[str, ActionKind] = {
    "page-url": ActionKind.PAGE_URL,
    "page-title": ActionKind.PAGE_TITLE,
    "download": ActionKind.DOWNLOAD,
    "outlink": ActionKind.OUTLINK,
}

logger = structlog.get_logger(__name__)


def _build_gateway(ctx: click.Context) -> ArchiveGateway:
    """Return the snapshot gateway when configured, otherwise the HTTP client."""
    ctx.ensure_object(dict)
    snapshot = ctx.obj.get("snapshot")
    if snapshot:
        return ArchiveSnapshot.from_file(snapshot)
    return ArchiveHttpClient(base_url=ctx.obj.get("archive_url") or DEFAULT_ARCHIVE_URL)


@contextmanager
def _open_api(ctx: click.Context) -> Iterator[ActionsApi]:
    """Yield an API bound to the configured gateway and translate failures for the terminal."""
    gateway = _build_gateway(ctx)
    try:
        yield ActionsApi(gateway)
    except ActionReportsError as exc:
        logger.error("command.failed", error=str(exc))
        raise click.ClickException(str(exc)) from exc
    except requests.RequestException as exc:
        logger.error("command.archive_unavailable", error=str(exc))
        raise click.ClickException(f"Archive request failed: {exc}") from exc
    finally:
        close = getattr(gateway, "close", None)
        if close is not None:
            close()


def _emit(report: Report, output: Path | None) -> None:
    """Print the report as JSON or write it to ``output``."""
    payload = json.dumps(dump_report(report), indent=2, default=str)
    if output is None:
        click.echo(payload)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(payload)
    click.echo(f"Wrote report to {output}")
    logger.debug("report.written", output=str(output))


def _query_options(func: Any) -> Any:
    """Attach the shared site/period/date/segment options."""
    options = [
        click.option(
            "--site", "site_id", required=True, help="Site id, or a comma separated list."
        ),
        click.option(
            "--period",
            type=click.Choice(["day", "week", "month", "year", "range"], case_sensitive=False),
            default="day",
            show_default=True,
            help="Period granularity.",
        ),
        click.option(
            "--date",
            required=True,
            help="Date, date range (YYYY-MM-DD,YYYY-MM-DD) or keyword such as last7.",
        ),
        click.option("--segment", default=None, help="Segment definition to restrict visits."),
        click.option(
            "--output",
            type=click.Path(dir_okay=False, path_type=Path),
            help="Optional path to save the report as JSON.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option(
    "--archive-url",
    envvar="ACTION_REPORTS_ARCHIVE_URL",
    default=DEFAULT_ARCHIVE_URL,
    show_default=True,
    help=ARCHIVE_URL_HELP,
)
@click.option(
    "--snapshot",
    envvar="ACTION_REPORTS_SNAPSHOT",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help=SNAPSHOT_HELP,
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVEL_CHOICES, case_sensitive=False),
    envvar="ACTION_REPORTS_LOG_LEVEL",
    default="info",
    show_default=True,
    help="Verbosity for structured logs.",
)
@click.option(
    "--log-format",
    type=click.Choice(LOG_FORMAT_CHOICES, case_sensitive=False),
    envvar="ACTION_REPORTS_LOG_FORMAT",
    default="console",
    show_default=True,
    help="Render logs as console-friendly text or JSON.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    archive_url: str,
    snapshot: Path | None,
    log_level: str,
    log_format: str,
) -> None:
    """Query, search and normalize archived action reports."""
    configure_logging(level=log_level, json_output=log_format.lower() == "json")
    ctx.ensure_object(dict)
    ctx.obj.update({"archive_url": archive_url, "snapshot": snapshot})
    logger.bind(command_group="action-reports").debug(
        "cli.initialized",
        archive_url=archive_url,
        snapshot=str(snapshot) if snapshot else None,
        log_level=log_level.lower(),
        log_format=log_format.lower(),
    )


@cli.command("report")
@click.argument(
    "name",
    type=click.Choice(sorted([*REPORT_METHODS, *FLAT_REPORT_METHODS]), case_sensitive=False),
)
@_query_options
@click.option("--expanded", is_flag=True, default=False, help="Load every sub-table level.")
@click.option("--subtable", "subtable_id", type=int, default=None, help="Fetch one sub-table.")
@click.option("--depth", type=int, default=None, help="Limit expansion depth (page-urls only).")
@click.pass_context
def report(
    ctx: click.Context,
    *,
    name: str,
    site_id: str,
    period: str,
    date: str,
    segment: str | None,
    output: Path | None,
    expanded: bool,
    subtable_id: int | None,
    depth: int | None,
) -> None:
    """Fetch a report listing and print it after normalization."""
    name = name.lower()
    cmd_log = logger.bind(command="report", report=name)
    cmd_log.info("command.start", site_id=site_id, period=period, date=date)
    kwargs: dict[str, Any] = {"segment": segment}
    if name in FLAT_REPORT_METHODS:
        if expanded or subtable_id is not None or depth is not None:
            raise click.UsageError(f"{name} does not support --expanded, --subtable or --depth.")
        method_name = FLAT_REPORT_METHODS[name]
    else:
        method_name, accepts_depth = REPORT_METHODS[name]
        if depth is not None and not accepts_depth:
            raise click.UsageError(f"--depth is only supported by page-urls, not {name}.")
        kwargs.update({"expanded": expanded, "subtable_id": subtable_id})
        if accepts_depth:
            kwargs["depth"] = depth
    with _open_api(ctx) as api:
        result = getattr(api, method_name)(site_id, period.lower(), date, **kwargs)
    _emit(result, output)
    cmd_log.info("command.completed", rows=result.row_count)


@cli.command("search")
@click.argument("kind", type=click.Choice(sorted(SEARCH_METHODS), case_sensitive=False))
@click.argument("value")
@_query_options
@click.pass_context
def search(
    ctx: click.Context,
    *,
    kind: str,
    value: str,
    site_id: str,
    period: str,
    date: str,
    segment: str | None,
    output: Path | None,
) -> None:
    """Look up the metrics of one page URL, page title, download or outlink."""
    kind = kind.lower()
    cmd_log = logger.bind(command="search", kind=kind)
    cmd_log.info("command.start", value=value, site_id=site_id, period=period, date=date)
    with _open_api(ctx) as api:
        result = getattr(api, SEARCH_METHODS[kind])(value, site_id, period.lower(), date, segment)
    if result.row_count == 0:
        cmd_log.warning("search.no_match", value=value)
    _emit(result, output)
    cmd_log.info("command.completed", rows=result.row_count)


@cli.command("explode")
@click.argument("kind", type=click.Choice(sorted(ACTION_KINDS), case_sensitive=False))
@click.argument("value")
@click.option("--url-delimiter", default="/", show_default=True, help="URL folder delimiter.")
@click.option(
    "--title-delimiter", default="/", show_default=True, help="Page title category delimiter."
)
@click.option("--max-depth", type=int, default=None, help="Fold levels deeper than this.")
@click.option(
    "--exclude-param",
    "excluded_parameters",
    multiple=True,
    help="Query parameter to strip from URLs before splitting (repeatable).",
)
def explode(
    *,
    kind: str,
    value: str,
    url_delimiter: str,
    title_delimiter: str,
    max_depth: int | None,
    excluded_parameters: tuple[str, ...],
) -> None:
    """Print the label path a searched value resolves to."""
    if max_depth is not None and max_depth <= 0:
        raise click.BadParameter("max-depth must be a positive integer.")
    api = ActionsApi(
        gateway=ArchiveSnapshot(),
        url_delimiter=url_delimiter,
        title_delimiter=title_delimiter,
        max_depth=max_depth,
        excluded_parameters=excluded_parameters,
    )
    segments = api.explode(value, ACTION_KINDS[kind.lower()])
    click.echo(json.dumps(list(segments)))


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":  # pragma: no cover
    main()
