"""Split searched page URLs, titles, downloads and outlinks into report label paths."""

from __future__ import annotations

import html
import re
from collections.abc import Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import structlog

from ..data.archives import ActionKind

logger = structlog.get_logger(__name__)

DEFAULT_URL_DELIMITER = "/"
DEFAULT_TITLE_DELIMITER = "/"
DEFAULT_PAGE_NAME = "index"
UNKNOWN_TITLE = "Page Name Not Defined"
UNKNOWN_URL = "Page URL Not Defined"

_LINK_PATTERN = re.compile(r"^https?://([^/]+)/?([^#]*)#?(.*)$", re.IGNORECASE)
_CONTROL_CHARACTERS = re.compile(r"[\n\r\0]")


def exclude_query_parameters(url: str, excluded: Sequence[str]) -> str:
    """Remove the ``excluded`` query parameters from ``url``.

    Raises :class:`ValueError` when the URL cannot be parsed.
    """
    parts = urlsplit(url)
    if not excluded or not parts.query:
        return url
    drop = {name.lower() for name in excluded}
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    kept = [(name, value) for name, value in pairs if name.lower() not in drop]
    if len(kept) == len(pairs):
        return url
    return urlunsplit(parts._replace(query=urlencode(kept)))


def searched_string(
    raw: str, action_kind: ActionKind, excluded_parameters: Sequence[str] = ()
) -> str:
    """Prepare a raw searched value before it is split into segments.

    Titles are HTML-unescaped. URLs lose their excluded query parameters; a
    URL that cannot be parsed is searched as given.
    """
    if action_kind is ActionKind.PAGE_TITLE:
        return html.unescape(raw)
    try:
        return exclude_query_parameters(raw, excluded_parameters)
    except ValueError:
        logger.warning("search.query_exclusion_failed", value=raw, exc_info=True)
        return raw


def _split(value: str, delimiter: str, max_depth: int | None) -> list[str]:
    """Split on ``delimiter`` and drop empty segments, folding levels past ``max_depth``."""
    if delimiter:
        parts = value.split(delimiter)
    else:
        parts = [value]
    segments = [part.strip() for part in parts]
    segments = [segment for segment in segments if segment]
    if max_depth is not None and max_depth > 0 and len(segments) > max_depth:
        head = segments[: max_depth - 1]
        tail = delimiter.join(segments[max_depth - 1 :])
        segments = [*head, tail]
    return segments


def _explode_link(value: str) -> tuple[str, ...]:
    match = _LINK_PATTERN.match(value)
    if match is None:
        return (value,)
    host, path, fragment = match.groups()
    leaf = "/" + path.strip()
    if fragment:
        leaf += "#" + fragment
    return (host.strip(), leaf)


def _explode_title(value: str, delimiter: str, max_depth: int | None) -> tuple[str, ...]:
    cleaned = _CONTROL_CHARACTERS.sub("", value).strip()
    segments = _split(cleaned, delimiter, max_depth)
    if not segments:
        segments = [UNKNOWN_TITLE]
    segments[-1] = " " + segments[-1]
    return tuple(segments)


def _explode_url(value: str, delimiter: str, max_depth: int | None) -> tuple[str, ...]:
    cleaned = _CONTROL_CHARACTERS.sub("", value).strip()
    if not cleaned:
        return ("/" + UNKNOWN_URL,)
    try:
        parts = urlsplit(cleaned)
    except ValueError:
        parts = None
    if parts is not None and parts.netloc:
        path = parts.path
        if parts.query:
            path += "?" + parts.query
    else:
        path = cleaned.split("#", 1)[0]
    path = path.lstrip("/")
    segments = _split(path, delimiter, max_depth)
    if not path or path.endswith(delimiter):
        segments.append(DEFAULT_PAGE_NAME)
    segments[-1] = "/" + segments[-1]
    return tuple(segments)


def decompose(
    raw: str,
    action_kind: ActionKind,
    *,
    url_delimiter: str = DEFAULT_URL_DELIMITER,
    title_delimiter: str = DEFAULT_TITLE_DELIMITER,
    max_depth: int | None = None,
    excluded_parameters: Sequence[str] = (),
) -> tuple[str, ...]:
    """Return the label path under which ``raw`` is archived for ``action_kind``.

    Folders of a page URL are plain labels and the page itself is prefixed
    with ``/`` (``/docs/api.html`` -> ``("docs", "/api.html")``). The query string
    left after removing ``excluded_parameters`` stays on the page leaf; the
    fragment is dropped. Page title
    leaves are prefixed with a space. Downloads and outlinks are keyed by
    host, then by the full path.
    """
    value = searched_string(raw, action_kind, excluded_parameters)
    if action_kind in (ActionKind.DOWNLOAD, ActionKind.OUTLINK):
        segments = _explode_link(value)
    elif action_kind is ActionKind.PAGE_TITLE:
        segments = _explode_title(value, title_delimiter, max_depth)
    else:
        segments = _explode_url(value, url_delimiter, max_depth)
    logger.debug("search.decomposed", kind=action_kind.name, segments=list(segments))
    return segments


__all__ = ["decompose", "exclude_query_parameters", "searched_string"]
