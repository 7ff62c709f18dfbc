"""Profile snapshot cached dataset (REST + contributions aggregator).

Resources (issued in parallel):
  GET /users/{user}
  GET {contributions}/{user}?y=last
  GET /users/{user}/events?per_page=30
  GET /users/{user}/repos?per_page=100&sort=updated

Example cached payload (AggregateSnapshot.to_dict()):
  {
    "user": {"login": "octocat", "name": "The Octocat", "followers": 10, ...},
    "contributions": [{"date": "2025-10-20", "count": 4, "level": 2}, ...],
    "recent_activity": [{"type": "PushEvent", "repo": "octocat/hello", "action": "Pushed 2 commit(s)", ...}],
    "language_stats": [{"name": "Python", "count": 3, "percentage": 60, "color": "#3572A5"}, ...],
    "repository_stats": {"recently_updated": 1, "top_repositories": [...], ...},
    "total_stats": {"current_streak": 1, "longest_streak": 2, "total_stars": 12, ...}
  }

Cache key:
  github_complete_data_{user}

TTL:
  15 minutes (DEFAULT_SNAPSHOT_TTL_S)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict

from common import PROFILE_SNAPSHOT_KEY, DEFAULT_SNAPSHOT_TTL_S
from ..portfolio_stats import build_profile_snapshot
from ..portfolio_types import AggregateSnapshot
from .base_cached import CachedSnapshotBase


class ProfileSnapshotCached(CachedSnapshotBase[AggregateSnapshot]):
    default_cache_key = PROFILE_SNAPSHOT_KEY
    default_ttl_s = DEFAULT_SNAPSHOT_TTL_S

    def __init__(self, api, cache, *, user: str, **kwargs: Any):
        self.user = str(user)
        super().__init__(api, cache, **kwargs)

    def default_namespace_key(self) -> str:
        return f"{self.default_cache_key}_{self.user}"

    @property
    def cache_name(self) -> str:
        return "profile"

    def api_call_format(self) -> str:
        return (
            f"GET /users/{self.user}, contributions/{self.user}?y=last, "
            f"/users/{self.user}/events, /users/{self.user}/repos"
        )

    def requests(self) -> Dict[str, Callable[[], Any]]:
        return {
            "user": lambda: self.api.get_user(self.user),
            "contributions": lambda: self.api.get_contributions(self.user),
            "events": lambda: self.api.get_user_events(self.user),
            "repos": lambda: self.api.get_user_repos(self.user),
        }

    def build(self, raw: Dict[str, Any], *, now: datetime) -> AggregateSnapshot:
        return build_profile_snapshot(
            user=raw.get("user"),
            contributions=raw.get("contributions"),
            events=raw.get("events"),
            repos=raw.get("repos"),
            now=now,
        )

    def to_cache(self, value: AggregateSnapshot) -> Dict[str, Any]:
        return value.to_dict()

    def from_cache(self, payload: Any) -> AggregateSnapshot:
        return AggregateSnapshot.from_dict(payload)
