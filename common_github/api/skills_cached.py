"""Skills cached dataset (REST).

Resources (issued in parallel):
  GET /users/{user}/repos?per_page=100
  GET /orgs/{org}/repos?per_page=100

Cached payload (SkillsSnapshot.to_dict()):
  {
    "skills": [{"name": "Rust", "count": 4, "percentage": 33, "category": "Blockchain", "color": "#dea584"}, ...],
    "language_stats": [...],
    "total_repos": 12,
    "org_stats": {"personal_repos": 8, "org_repos": 4, ...}
  }

Cache key:
  github_skills_data_{user}_{org}

TTL:
  cache default (10 minutes)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict

from common import SKILLS_KEY
from ..portfolio_projects import build_skills
from ..portfolio_types import SkillsSnapshot
from .base_cached import CachedSnapshotBase


class SkillsCached(CachedSnapshotBase[SkillsSnapshot]):
    default_cache_key = SKILLS_KEY

    def __init__(self, api, cache, *, user: str, org: str, **kwargs: Any):
        self.user = str(user)
        self.org = str(org)
        super().__init__(api, cache, **kwargs)

    def default_namespace_key(self) -> str:
        return f"{self.default_cache_key}_{self.user}_{self.org}"

    @property
    def cache_name(self) -> str:
        return "skills"

    def api_call_format(self) -> str:
        return f"GET /users/{self.user}/repos, /orgs/{self.org}/repos"

    def requests(self) -> Dict[str, Callable[[], Any]]:
        return {
            "personal_repos": lambda: self.api.get_user_repos(self.user, sort=None),
            "org_repos": lambda: self.api.get_org_repos(self.org, sort=None),
        }

    def build(self, raw: Dict[str, Any], *, now: datetime) -> SkillsSnapshot:
        return build_skills(personal_repos=raw.get("personal_repos"), org_repos=raw.get("org_repos"))

    def to_cache(self, value: SkillsSnapshot) -> Dict[str, Any]:
        return value.to_dict()

    def from_cache(self, payload: Any) -> SkillsSnapshot:
        return SkillsSnapshot.from_dict(payload)
