"""Curated project list cached dataset (REST).

Resources (issued in parallel):
  GET /users/{user}/repos?per_page=100&sort=updated
  GET /orgs/{org}/repos?per_page=100&sort=updated

Cached payload:
  List of ProjectEntry.to_dict(), already ordered by priority score (at most 12 entries,
  up to 10 organization + 2 personal).

Cache key:
  github_projects_data_{user}_{org}

TTL:
  cache default (10 minutes)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List

from common import PROJECTS_KEY
from ..portfolio_projects import build_projects
from ..portfolio_types import ProjectEntry
from .base_cached import CachedSnapshotBase


class ProjectsCached(CachedSnapshotBase[List[ProjectEntry]]):
    default_cache_key = PROJECTS_KEY

    def __init__(self, api, cache, *, user: str, org: str, **kwargs: Any):
        self.user = str(user)
        self.org = str(org)
        super().__init__(api, cache, **kwargs)

    def default_namespace_key(self) -> str:
        return f"{self.default_cache_key}_{self.user}_{self.org}"

    @property
    def cache_name(self) -> str:
        return "projects"

    def api_call_format(self) -> str:
        return f"GET /users/{self.user}/repos, /orgs/{self.org}/repos"

    def requests(self) -> Dict[str, Callable[[], Any]]:
        return {
            "personal_repos": lambda: self.api.get_user_repos(self.user),
            "org_repos": lambda: self.api.get_org_repos(self.org),
        }

    def build(self, raw: Dict[str, Any], *, now: datetime) -> List[ProjectEntry]:
        return build_projects(org_repos=raw.get("org_repos"), personal_repos=raw.get("personal_repos"), now=now)

    def to_cache(self, value: List[ProjectEntry]) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in value]

    def from_cache(self, payload: Any) -> List[ProjectEntry]:
        if not isinstance(payload, list):
            raise TypeError(f"expected a list of projects, got {type(payload).__name__}")
        return [ProjectEntry.from_dict(p) for p in payload]
