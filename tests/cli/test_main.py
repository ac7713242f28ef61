# tests/cli/test_main.py
import json

import pytest
from click.testing import CliRunner
from tests.conftest import coordinates, day, make_table

import cli.main as cli_mod
from action_reports.data.archives import INDEX_NB_VISITS, SITE_SEARCH
from action_reports.data.models import Row
from action_reports.data.snapshot import ArchiveSnapshot

DATE = "2024-03-01"


@pytest.fixture
def snapshot_file(tmp_path):
    snapshot = ArchiveSnapshot()
    snapshot.add(
        coordinates(),
        make_table(
            Row(label="/index", metrics={INDEX_NB_VISITS: 3}),
            Row(label="docs", metrics={INDEX_NB_VISITS: 8}, subtable_id=2),
            Row(label="-1", metrics={INDEX_NB_VISITS: 1}),
            period=day(DATE),
        ),
    )
    snapshot.add(
        coordinates(date=f"{DATE},{DATE}", subtable_id=2),
        make_table(Row(label="/api.html", metrics={INDEX_NB_VISITS: 4}), period=day(DATE)),
    )
    snapshot.add(
        coordinates(dataset=SITE_SEARCH),
        make_table(Row(label="shoes", metrics={INDEX_NB_VISITS: 2})),
    )
    path = tmp_path / "snapshot.json"
    snapshot.write(path)
    return path


def _invoke(snapshot_file, *args, **kwargs):
    return CliRunner().invoke(
        cli_mod.cli,
        ["--snapshot", str(snapshot_file), "--log-level", "critical", *args],
        **kwargs,
    )


def _json_from_output(output: str):
    starts = [index for index in (output.find("{"), output.find("[")) if index != -1]
    assert starts, f"Expected JSON document in output, got: {output!r}"
    return json.loads(output[min(starts) :])


def test_report_page_urls(snapshot_file):
    r = _invoke(snapshot_file, "report", "page-urls", "--site", "1", "--date", DATE)
    assert r.exit_code == 0, r.output
    payload = _json_from_output(r.output)
    assert payload["kind"] == "table"
    assert [row["label"] for row in payload["rows"]] == ["docs", "/index"]
    assert payload["summary_row"]["label"] == "Others"
    assert payload["period"]["date_start"] == DATE


def test_report_writes_output_file(snapshot_file, tmp_path):
    target = tmp_path / "out" / "keywords.json"
    r = _invoke(
        snapshot_file,
        "report",
        "site-search-keywords",
        "--site",
        "1",
        "--date",
        DATE,
        "--output",
        str(target),
    )
    assert r.exit_code == 0, r.output
    payload = json.loads(target.read_text())
    assert payload["rows"][0]["metrics"]["nb_pages_per_search"] == 0


def test_report_rejects_unsupported_options(snapshot_file):
    flat = _invoke(
        snapshot_file, "report", "site-search-keywords", "--site", "1", "--date", DATE, "--expanded"
    )
    depth = _invoke(
        snapshot_file, "report", "downloads", "--site", "1", "--date", DATE, "--depth", "2"
    )
    assert flat.exit_code == 2
    assert depth.exit_code == 2
    assert "--depth is only supported by page-urls" in depth.output


def test_search_page_url(snapshot_file):
    r = _invoke(
        snapshot_file,
        "search",
        "page-url",
        "http://example.org/docs/api.html",
        "--site",
        "1",
        "--date",
        DATE,
    )
    assert r.exit_code == 0, r.output
    payload = _json_from_output(r.output)
    assert [row["label"] for row in payload["rows"]] == ["/api.html"]
    assert payload["rows"][0]["metrics"]["nb_visits"] == 4


def test_search_missing_archive_fails(snapshot_file):
    r = _invoke(
        snapshot_file, "search", "page-url", "/docs/api.html", "--site", "1", "--date", "2024-03-02"
    )
    assert r.exit_code == 1
    assert "No archive stored" in r.output


def test_snapshot_from_environment(snapshot_file):
    r = CliRunner().invoke(
        cli_mod.cli,
        ["--log-level", "critical", "report", "page-urls", "--site", "1", "--date", DATE],
        env={"ACTION_REPORTS_SNAPSHOT": str(snapshot_file)},
    )
    assert r.exit_code == 0, r.output
    assert _json_from_output(r.output)["kind"] == "table"


def test_explode_page_title():
    r = CliRunner().invoke(
        cli_mod.cli,
        [
            "--log-level",
            "critical",
            "explode",
            "page-title",
            "Shop > Shoes",
            "--title-delimiter",
            ">",
        ],
    )
    assert r.exit_code == 0, r.output
    assert _json_from_output(r.output) == ["Shop", " Shoes"]


def test_explode_page_url_with_excluded_parameter():
    r = CliRunner().invoke(
        cli_mod.cli,
        [
            "--log-level",
            "critical",
            "explode",
            "page-url",
            "http://example.org/docs/?sid=1",
            "--exclude-param",
            "sid",
        ],
    )
    assert r.exit_code == 0, r.output
    assert _json_from_output(r.output) == ["docs", "/index"]


def test_explode_rejects_non_positive_depth():
    r = CliRunner().invoke(
        cli_mod.cli, ["--log-level", "critical", "explode", "page-url", "/a/b", "--max-depth", "0"]
    )
    assert r.exit_code == 2
