"""HTTP client for retrieving archived reports from the archive service."""

from collections.abc import Sequence
from typing import Any
from urllib.parse import urljoin

import requests
import structlog
from attrs import define, field

from .archives import DEFAULT_ARCHIVE_URL
from .models import QueryCoordinates, Report, load_report

logger = structlog.get_logger(__name__)


@define(slots=True)
class ArchiveHttpClient:
    """Thin HTTP wrapper around the archive service's JSON endpoints."""

    base_url: str = DEFAULT_ARCHIVE_URL
    timeout: float = 30.0
    session: requests.Session = field(factory=requests.Session)
    headers: dict[str, str] = field(
        factory=lambda: {
            "User-Agent": "action-reports",
            "Accept": "application/json",
        },
    )

    def fetch(self, coordinates: QueryCoordinates) -> Report:
        """Fetch the archived report identified by ``coordinates``."""
        path = f"archives/{coordinates.dataset}"
        payload = self._get_json(path, coordinates.to_params())
        return load_report(payload)

    def fetch_numeric(
        self,
        names: Sequence[str],
        *,
        site_id: str,
        period: str,
        date: str,
        segment: str | None = None,
    ) -> Report:
        """Fetch archived numeric records as a one-row table per period."""
        params = {"idSite": str(site_id), "period": period, "date": date, "names": ",".join(names)}
        if segment:
            params["segment"] = segment
        return load_report(self._get_json("numeric", params))

    def _get_json(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        """Issue a GET request and decode the JSON body."""
        url = urljoin(self.base_url, path)
        log = logger.bind(url=url, dataset=path.rsplit("/", 1)[-1])
        log.debug("archive.fetch_start", params=params, timeout=self.timeout)
        try:
            response = self.session.get(
                url, params=params, timeout=self.timeout, headers=self.headers
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            log.error("archive.fetch_failed", status=status, exc_info=True)
            raise
        log.debug("archive.fetch_success", bytes=len(response.content))
        return response.json()

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.session.close()
        logger.debug("archive.session_closed")


__all__ = ["ArchiveHttpClient"]
