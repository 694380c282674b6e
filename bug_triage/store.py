"""Report stores the engine reads from and writes to.

Usage:
    store  = HttpStore(url="http://localhost:3000", token="")
    saved  = store.insert(report)                      # id + created_at assigned
    same   = store.find({"team": "Alpha", "url": "http://x.com"})
    every  = store.find()

``MemoryStore`` implements the same calls in-process and is what the
tests and single-process deployments use.
"""

import itertools
import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Protocol

import requests

from bug_triage.models import BugReport
from bug_triage.normalize import normalize_team, normalize_url

logger = logging.getLogger(__name__)

#: Report fields a ``find`` filter may match
FILTER_FIELDS = ("team", "url", "duplicate")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class StoreError(Exception):
    """Base exception for every store read or write failure."""


class StoreAuthenticationError(StoreError):
    """Raised on HTTP 401: missing or rejected token."""


class StoreNotFoundError(StoreError):
    """Raised when an endpoint or a report does not exist."""


class StoreConnectionError(StoreError):
    """Raised on connection timeout or unreachable server."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class Store(Protocol):
    def insert(self, report: BugReport) -> BugReport: ...

    def find(self, criteria: dict[str, Any] | None = None) -> list[BugReport]: ...

    def get(self, report_id: str) -> BugReport: ...


def _check_filter(criteria: dict[str, Any] | None) -> dict[str, Any]:
    criteria = criteria or {}
    unknown = set(criteria) - set(FILTER_FIELDS)
    if unknown:
        raise ValueError(f"Unsupported filter field(s): {', '.join(sorted(unknown))}")
    return criteria


def matches(report: BugReport, criteria: dict[str, Any]) -> bool:
    """True when *report* satisfies every filter in *criteria*.

    ``team`` and ``url`` are compared in canonical form, ``duplicate`` as is.
    """
    for key, value in criteria.items():
        if key == "team":
            if normalize_team(report.team) != normalize_team(value):
                return False
        elif key == "url":
            if normalize_url(report.url) != normalize_url(value):
                return False
        elif report.duplicate != value:
            return False
    return True


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class MemoryStore:
    """Thread-safe list of reports kept in insertion order."""

    def __init__(self, reports: list[BugReport] | None = None) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._reports: list[BugReport] = []
        self._last_created: datetime | None = None
        for report in reports or []:
            self.insert(report)

    def insert(self, report: BugReport) -> BugReport:
        with self._lock:
            created = report.created_at or datetime.now(timezone.utc)
            # Keep created_at non-decreasing even if the wall clock steps back
            if self._last_created is not None and created < self._last_created:
                created = self._last_created
            self._last_created = created
            saved = replace(report, id=str(next(self._ids)), created_at=created)
            self._reports.append(saved)
        logger.debug("Stored report %s for team '%s'", saved.id, saved.team)
        return saved

    def find(self, criteria: dict[str, Any] | None = None) -> list[BugReport]:
        criteria = _check_filter(criteria)
        with self._lock:
            return [r for r in self._reports if matches(r, criteria)]

    def get(self, report_id: str) -> BugReport:
        with self._lock:
            for r in self._reports:
                if r.id == report_id:
                    return r
        raise StoreNotFoundError(f"Report not found: {report_id}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)


# ---------------------------------------------------------------------------
# HTTP store
# ---------------------------------------------------------------------------

class HttpStore:
    """Thin wrapper around the bug-reporter REST API (``/api/bugs``)."""

    def __init__(self, url: str, token: str = "", timeout: int = 30) -> None:
        self.base_url = url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def insert(self, report: BugReport) -> BugReport:
        """POST one report and return it as stored by the server.

        The server answers with the list of created documents.
        """
        data = self._request("POST", "/api/bugs", json=report.to_dict())
        docs = data if isinstance(data, list) else [data]
        if not docs:
            raise StoreError("Server accepted the report but returned no document")
        return BugReport.from_dict(docs[0])

    def find(self, criteria: dict[str, Any] | None = None) -> list[BugReport]:
        """Return matching reports, oldest first.

        The server lists newest first, so the order is reversed here. The
        filter is sent as query parameters and applied again to the
        response: the bug-reporter API only filters on ``team``.
        """
        criteria = _check_filter(criteria)
        params = {
            k: (str(v).lower() if isinstance(v, bool) else v)
            for k, v in criteria.items()
        }
        data = self._request("GET", "/api/bugs", params=params)
        reports = [BugReport.from_dict(raw) for raw in reversed(data)]
        kept = [r for r in reports if matches(r, criteria)]
        if len(kept) < len(reports):
            logger.debug(
                "Dropped %d report(s) the server did not filter out",
                len(reports) - len(kept),
            )
        return kept

    def get(self, report_id: str) -> BugReport:
        """Look a report up by id in the full list.

        The bug-reporter API has no single-report route.
        """
        for report in self.find():
            if report.id == report_id:
                return report
        raise StoreNotFoundError(f"Report not found: {report_id}")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.exceptions.Timeout as exc:
            raise StoreConnectionError(
                f"Request timed out after {self._timeout}s while contacting '{url}'"
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            raise StoreConnectionError(
                f"Unable to reach report store at '{self.base_url}'"
            ) from exc

        if response.status_code == 401:
            raise StoreAuthenticationError(
                "Authentication failed, check the store token."
            )
        if response.status_code == 404:
            raise StoreNotFoundError(f"Resource not found: {url}")
        if not response.ok:
            raise StoreError(
                f"Unexpected response {response.status_code} from {url}: {response.text[:200]}"
            )

        return response.json()
