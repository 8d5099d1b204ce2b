import json
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, List, Optional, Sequence, Tuple

from .config import OFFICES_ENDPOINT, REPORTS_ENDPOINT, http_timeout
from .context import FilterState
from .errors import ReferenceDataLoadError, ReportLoadError
from .logging import get_logger
from .models import Office, ReportData

logger = get_logger(__name__)


class HttpStatusError(Exception):
    def __init__(self, url: str, status_code: int):
        super().__init__(f"{url} answered with HTTP {status_code}")
        self.url = url
        self.status_code = status_code


def _get_json(url: str, params: Optional[Sequence[Tuple[str, str]]] = None, timeout: float = 30) -> Any:
    """GET a JSON document. Non-2xx answers raise HttpStatusError."""
    target = url
    if params:
        target = f"{url}?{urllib.parse.urlencode(params)}"
    req = urllib.request.Request(target, headers={"Accept": "application/json"})
    started = time.perf_counter()
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            status = getattr(resp, "status", 200)
            body = resp.read()
    except urllib.error.HTTPError as exc:
        logger.warning("http_request_failed", url=target, status_code=exc.code)
        raise HttpStatusError(target, exc.code) from exc

    duration_ms = (time.perf_counter() - started) * 1000
    if not 200 <= status < 300:
        logger.warning("http_request_failed", url=target, status_code=status, duration_ms=duration_ms)
        raise HttpStatusError(target, status)
    logger.info("http_request_completed", url=target, status_code=status, duration_ms=duration_ms)
    return json.loads(body.decode("utf-8"))


class ReportClient:
    """
    Remote record source: the office directory and pre-aggregated delivery
    reports served by the operations API.
    """

    def __init__(self, base_url: str, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else http_timeout()

    def list_offices(self) -> List[Office]:
        url = f"{self.base_url}{OFFICES_ENDPOINT}"
        try:
            payload = _get_json(url, timeout=self.timeout)
            return [Office.from_payload(item) for item in payload]
        except (HttpStatusError, urllib.error.URLError, OSError, ValueError, KeyError, TypeError) as exc:
            raise ReferenceDataLoadError(f"Could not load offices: {exc}") from exc

    def fetch_report(self, filters: FilterState) -> ReportData:
        url = f"{self.base_url}{REPORTS_ENDPOINT}"
        try:
            payload = _get_json(url, params=filters.to_query_params(), timeout=self.timeout)
        except HttpStatusError as exc:
            raise ReportLoadError("Failed to fetch report data", status_code=exc.status_code) from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise ReportLoadError(f"Failed to fetch report data: {exc}") from exc
        return ReportData.from_payload(payload)
