# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""GitHub API client and utilities for portfolio-stats.

Read-only, unauthenticated access to the handful of public endpoints the
portfolio datasets are built from:

- GET /users/{user}                        -> profile record
- GET /users/{user}/events?per_page=30     -> recent public events (one page)
- GET /users/{user}/repos?per_page=100     -> personal repositories
- GET /orgs/{org}/repos?per_page=100       -> organization repositories
- GET {contributions}/{user}?y=last        -> contribution calendar (third-party aggregator)

Every failure (connection error, non-2xx, unexpected body) is raised as a
GitHubAPIError subclass; nothing is retried. Rate limits are only observed
(headers recorded in stats), never handled.
"""

# Standard library imports
import logging
import re
import threading
import time
import urllib.parse
from typing import Any, Dict, List, Optional

# Third-party imports
import requests

# Local imports
from common import (
    CONTRIBUTIONS_API_BASE_URL,
    EVENTS_PER_PAGE,
    GITHUB_API_BASE_URL,
    REPOS_PER_PAGE,
)
from .exceptions import (
    GitHubAPIError,
    GitHubConnectionError,
    GitHubHTTPError,
    GitHubPayloadError,
)

# Module logger
_logger = logging.getLogger(__name__)


class _GitHubAPIStats:
    """Per-client tracking of REST call statistics."""

    def __init__(self):
        self._mu = threading.Lock()
        self.reset()

    def reset(self):
        """Reset all statistics."""
        self.rest_calls_total = 0
        self.rest_calls_by_label = {}  # Dict[str, int] - count by API endpoint label
        self.rest_success_total = 0
        self.rest_time_total_s = 0.0
        self.rest_time_by_label_s = {}  # Dict[str, float] - time in seconds by label

        # Error stats
        self.rest_errors_total = 0
        self.rest_errors_by_status = {}  # Dict[int, int]; 0 = no response
        self.rest_last_error = {}  # Dict[str, Any]
        self.rest_last_error_label = ""

        # Rate limit info from the last response headers (diagnostics only)
        self.core_rate_limit = None  # Optional[Dict] - {remaining, limit, reset_epoch}

    def record_call(self, *, label: str, elapsed_s: float) -> None:
        with self._mu:
            self.rest_calls_total += 1
            self.rest_calls_by_label[label] = int(self.rest_calls_by_label.get(label, 0)) + 1
            self.rest_time_total_s += float(elapsed_s)
            self.rest_time_by_label_s[label] = float(self.rest_time_by_label_s.get(label, 0.0)) + float(elapsed_s)

    def record_success(self) -> None:
        with self._mu:
            self.rest_success_total += 1

    def record_error(self, *, label: str, status: int, url: str, body: str) -> None:
        with self._mu:
            self.rest_errors_total += 1
            self.rest_errors_by_status[int(status)] = int(self.rest_errors_by_status.get(int(status), 0)) + 1
            # Keep last error small.
            self.rest_last_error = {"status": int(status), "url": str(url), "body": str(body or "")[:300]}
            self.rest_last_error_label = str(label or "")

    def to_dict(self) -> Dict[str, Any]:
        with self._mu:
            return {
                "calls_total": self.rest_calls_total,
                "calls_by_label": dict(self.rest_calls_by_label),
                "success_total": self.rest_success_total,
                "errors_total": self.rest_errors_total,
                "errors_by_status": dict(self.rest_errors_by_status),
                "time_total_s": round(self.rest_time_total_s, 3),
                "last_error": dict(self.rest_last_error),
                "core_rate_limit": dict(self.core_rate_limit) if self.core_rate_limit else None,
            }


class GitHubAPIClient:
    """Unauthenticated GitHub REST client.

    Features:
    - One requests.get wrapper (`_rest_get`) that records per-run stats
    - JSON decoding + shape checks with typed errors
    - Safe to call from a ThreadPoolExecutor (the datasets fetch in parallel)

    Example:
        client = GitHubAPIClient()
        repos = client.get_user_repos("octocat")
    """

    def __init__(
        self,
        *,
        base_url: str = GITHUB_API_BASE_URL,
        contributions_base_url: str = CONTRIBUTIONS_API_BASE_URL,
        timeout_s: Optional[float] = None,
        session: Optional[Any] = None,
    ):
        """Initialize GitHub API client.

        Args:
            base_url: REST API root (api.github.com unless testing).
            contributions_base_url: root of the contribution-calendar aggregator.
            timeout_s: per-request timeout; None means no timeout (a hung upstream
                       call hangs the caller).
            session: optional requests.Session-like object (must provide .get); defaults
                     to the module-level requests.get.
        """
        self.base_url = str(base_url).rstrip("/")
        self.contributions_base_url = str(contributions_base_url).rstrip("/")
        self.timeout_s = timeout_s
        self.headers = {'Accept': 'application/vnd.github.v3+json'}
        self.logger = logging.getLogger(self.__class__.__name__)
        self._session = session
        self.stats = _GitHubAPIStats()

        # Inflight request deduplication: per-key locks to prevent concurrent identical fetches.
        self._inflight_locks_mu = threading.Lock()
        self._inflight_locks: Dict[str, threading.Lock] = {}

    def _inflight_lock(self, key: str) -> "threading.Lock":
        """Return a per-key lock to dedupe concurrent network fetches across threads."""
        k = str(key or "")
        if not k:
            # Fallback: single shared lock
            k = "__default__"
        with self._inflight_locks_mu:
            lk = self._inflight_locks.get(k)
            if lk is None:
                lk = threading.Lock()
                self._inflight_locks[k] = lk
            return lk

    def _rest_label_for_url(self, url: str) -> str:
        """Coarse label for a REST request URL (keeps user/org names out of the label)."""
        u = str(url or "")
        try:
            parsed = urllib.parse.urlparse(u)
        except ValueError:
            return "unknown"
        path = parsed.path or ""

        if self.contributions_base_url and u.startswith(self.contributions_base_url):
            return "contributions"
        if re.search(r"^/users/[^/]+/events\b", path):
            return "user_events"
        if re.search(r"^/users/[^/]+/repos\b", path):
            return "user_repos"
        if re.search(r"^/orgs/[^/]+/repos\b", path):
            return "org_repos"
        if re.search(r"^/users/[^/]+/?$", path):
            return "user"

        parts = [p for p in path.split("/") if p]
        return "/".join(parts[:1]) if parts else "unknown"

    def _rest_get(self, url: str, *, params: Optional[Dict[str, Any]] = None):
        """requests.get wrapper that increments per-run counters.

        Raises:
            GitHubConnectionError: the request never produced a response.
        """
        label = self._rest_label_for_url(url)
        self.logger.debug("GH REST GET [%s] %s params=%s", label, url, params or {})

        getter = self._session.get if self._session is not None else requests.get
        t0_req = time.monotonic()
        try:
            resp = getter(url, headers=dict(self.headers), params=params, timeout=self.timeout_s)
        except requests.exceptions.RequestException as e:
            self.stats.record_call(label=label, elapsed_s=max(0.0, time.monotonic() - t0_req))
            self.stats.record_error(label=label, status=0, url=url, body=str(e))
            raise GitHubConnectionError(
                status_code=0, endpoint=url, message=f"GitHub API request failed for {url}: {e}"
            ) from e
        self.stats.record_call(label=label, elapsed_s=max(0.0, time.monotonic() - t0_req))

        # Record rate limit headers for diagnostics (never acted on).
        try:
            remaining_hdr = resp.headers.get("X-RateLimit-Remaining")
            limit_hdr = resp.headers.get("X-RateLimit-Limit")
            reset_hdr = resp.headers.get("X-RateLimit-Reset")
            if remaining_hdr is not None and limit_hdr is not None:
                self.stats.core_rate_limit = {
                    "remaining": int(remaining_hdr),
                    "limit": int(limit_hdr),
                    "reset_epoch": int(reset_hdr) if reset_hdr is not None else None,
                }
        except (ValueError, TypeError, AttributeError):  # missing headers or invalid values
            pass

        return resp

    def get_json(self, url: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET url and decode the JSON body.

        Raises:
            GitHubConnectionError, GitHubHTTPError, GitHubPayloadError
        """
        resp = self._rest_get(url, params=params)
        label = self._rest_label_for_url(url)

        code = int(getattr(resp, "status_code", 0) or 0)
        if not (200 <= code < 300):
            body = ""
            try:
                body = (resp.text or "")[:300]
            except (ValueError, TypeError, AttributeError):
                body = ""
            self.stats.record_error(label=label, status=code, url=url, body=body)
            message = f"GitHub API returned {code} for {url}"
            if body:
                message = f"{message}: {body}"
            raise GitHubHTTPError(status_code=code, endpoint=url, message=message)

        try:
            data = resp.json()
        except ValueError as e:
            self.stats.record_error(label=label, status=code, url=url, body="invalid JSON")
            raise GitHubPayloadError(
                status_code=code, endpoint=url, message=f"Invalid JSON from {url}: {e}"
            ) from e
        self.stats.record_success()
        return data

    def _expect(self, data: Any, kind: type, *, url: str) -> Any:
        if not isinstance(data, kind):
            raise GitHubPayloadError(
                status_code=200,
                endpoint=url,
                message=f"Unexpected payload from {url}: expected {kind.__name__}, got {type(data).__name__}",
            )
        return data

    def get_user(self, user: str) -> Dict[str, Any]:
        """Profile record (name, avatar_url, bio, followers, following, public_repos, ...)."""
        url = f"{self.base_url}/users/{user}"
        return self._expect(self.get_json(url), dict, url=url)

    def get_user_events(self, user: str, *, per_page: int = EVENTS_PER_PAGE) -> List[Dict[str, Any]]:
        """First page of public events, most recent first."""
        url = f"{self.base_url}/users/{user}/events"
        return self._expect(self.get_json(url, params={"per_page": int(per_page)}), list, url=url)

    def get_user_repos(
        self, user: str, *, per_page: int = REPOS_PER_PAGE, sort: Optional[str] = "updated"
    ) -> List[Dict[str, Any]]:
        """First page of the user's public repositories."""
        url = f"{self.base_url}/users/{user}/repos"
        params: Dict[str, Any] = {"per_page": int(per_page)}
        if sort:
            params["sort"] = sort
        return self._expect(self.get_json(url, params=params), list, url=url)

    def get_org_repos(
        self, org: str, *, per_page: int = REPOS_PER_PAGE, sort: Optional[str] = "updated"
    ) -> List[Dict[str, Any]]:
        """First page of the organization's public repositories."""
        url = f"{self.base_url}/orgs/{org}/repos"
        params: Dict[str, Any] = {"per_page": int(per_page)}
        if sort:
            params["sort"] = sort
        return self._expect(self.get_json(url, params=params), list, url=url)

    def get_contributions(self, user: str) -> List[Dict[str, Any]]:
        """Trailing-year contribution calendar as [{date, count, ...}, ...] (oldest first).

        Example return value:
            [{"date": "2025-10-20", "count": 0, "level": 0}, {"date": "2025-10-21", "count": 4, "level": 2}]
        """
        url = f"{self.contributions_base_url}/{user}"
        data = self._expect(self.get_json(url, params={"y": "last"}), dict, url=url)
        days = data.get("contributions")
        if days is None:
            return []
        return self._expect(days, list, url=url)


__all__ = [
    "GitHubAPIClient",
    "GitHubAPIError",
    "GitHubConnectionError",
    "GitHubHTTPError",
    "GitHubPayloadError",
]
