"""Types and helpers for the portfolio datasets.

This module exists to keep the aggregation modules free of parsing noise and
to avoid circular imports between `portfolio_stats.py`, `portfolio_projects.py`
and `common_github/api/*`.

Every dataclass here is immutable and JSON-friendly: `to_dict()` produces plain
dicts/lists/strings/numbers (what the cache persists) and `from_dict()` restores
an equal object.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from common_types import ProjectSource, ProjectStatus


def _safe_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except (ValueError, TypeError, OverflowError):  # OverflowError: JSON 1e400 -> inf
        return default


def _safe_str(x: Any) -> str:
    return x if isinstance(x, str) else ""


def _opt_str(x: Any) -> Optional[str]:
    return x if isinstance(x, str) and x else None


def parse_github_ts(value: Any) -> Optional[datetime]:
    """Parse a GitHub ISO-8601 timestamp ("2025-01-31T20:03:47Z") into an aware UTC datetime."""
    s = _safe_str(value).strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        ts = datetime.fromisoformat(s)
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _jsonable_dict(pairs: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """dict_factory for dataclasses.asdict: enums become their values."""
    return {k: (v.value if isinstance(v, Enum) else v) for (k, v) in pairs}


class _DictMixin:
    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self, dict_factory=_jsonable_dict)  # type: ignore[call-overload]


@dataclass(frozen=True)
class UserProfile(_DictMixin):
    login: str = ""
    name: str = ""
    avatar_url: str = ""
    bio: str = ""
    html_url: str = ""
    followers: int = 0
    following: int = 0
    public_repos: int = 0

    @classmethod
    def from_raw(cls, raw: Any) -> "UserProfile":
        d = raw if isinstance(raw, dict) else {}
        return cls(
            login=_safe_str(d.get("login")),
            name=_safe_str(d.get("name")),
            avatar_url=_safe_str(d.get("avatar_url")),
            bio=_safe_str(d.get("bio")),
            html_url=_safe_str(d.get("html_url")),
            followers=_safe_int(d.get("followers")),
            following=_safe_int(d.get("following")),
            public_repos=_safe_int(d.get("public_repos")),
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "UserProfile":
        return cls(**d)


@dataclass(frozen=True)
class ContributionDay(_DictMixin):
    date: str
    count: int
    level: int

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ContributionDay":
        return cls(**d)


@dataclass(frozen=True)
class ActivityItem(_DictMixin):
    """One recent public event, reduced to what the activity feed shows."""

    type: str
    repo: str
    created_at: str
    action: str

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ActivityItem":
        return cls(**d)


@dataclass(frozen=True)
class RepositorySummary(_DictMixin):
    """Upstream repository record (read-only). Missing fields default to empty/zero."""

    name: str = ""
    description: Optional[str] = None
    language: Optional[str] = None
    topics: Tuple[str, ...] = ()
    stars: int = 0
    forks: int = 0
    updated_at: str = ""
    created_at: str = ""
    is_fork: bool = False
    is_archived: bool = False
    is_private: bool = False
    homepage: Optional[str] = None
    html_url: str = ""
    has_issues: bool = False
    open_issues: int = 0

    @classmethod
    def from_raw(cls, raw: Any) -> "RepositorySummary":
        d = raw if isinstance(raw, dict) else {}
        topics = d.get("topics")
        return cls(
            name=_safe_str(d.get("name")),
            description=_opt_str(d.get("description")),
            language=_opt_str(d.get("language")),
            topics=tuple(t for t in topics if isinstance(t, str)) if isinstance(topics, list) else (),
            stars=_safe_int(d.get("stargazers_count")),
            forks=_safe_int(d.get("forks_count")),
            updated_at=_safe_str(d.get("updated_at")),
            created_at=_safe_str(d.get("created_at")),
            is_fork=bool(d.get("fork")),
            is_archived=bool(d.get("archived")),
            is_private=bool(d.get("private")),
            homepage=_opt_str(d.get("homepage")),
            html_url=_safe_str(d.get("html_url")),
            has_issues=bool(d.get("has_issues")),
            open_issues=_safe_int(d.get("open_issues_count")),
        )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RepositorySummary":
        return cls(**{**d, "topics": tuple(d.get("topics") or ())})

    @property
    def updated(self) -> Optional[datetime]:
        return parse_github_ts(self.updated_at)

    @property
    def created(self) -> Optional[datetime]:
        return parse_github_ts(self.created_at)


def parse_repositories(raw_repos: Any) -> List[RepositorySummary]:
    """Convert a raw repository list; non-list input yields an empty list."""
    if not isinstance(raw_repos, list):
        return []
    return [RepositorySummary.from_raw(r) for r in raw_repos]


@dataclass(frozen=True)
class LanguageStat(_DictMixin):
    name: str
    count: int
    percentage: int
    color: str

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LanguageStat":
        return cls(**d)


@dataclass(frozen=True)
class RepositoryStats(_DictMixin):
    recently_updated: int = 0
    active_in_six_months: int = 0
    forked_repos: int = 0
    original_repos: int = 0
    has_issues: int = 0
    top_repositories: Tuple[RepositorySummary, ...] = ()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RepositoryStats":
        top = tuple(RepositorySummary.from_dict(r) for r in d.get("top_repositories") or ())
        return cls(**{**d, "top_repositories": top})


@dataclass(frozen=True)
class TotalStats(_DictMixin):
    total_contributions: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    total_repositories: int = 0
    total_stars: int = 0
    total_forks: int = 0
    public_repos: int = 0
    most_starred_repo: Optional[RepositorySummary] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TotalStats":
        most = d.get("most_starred_repo")
        return cls(**{**d, "most_starred_repo": RepositorySummary.from_dict(most) if most else None})


@dataclass(frozen=True)
class AggregateSnapshot(_DictMixin):
    """Profile dataset: everything the landing page shows, cached as one unit."""

    user: UserProfile
    contributions: Tuple[ContributionDay, ...]
    recent_activity: Tuple[ActivityItem, ...]
    language_stats: Tuple[LanguageStat, ...]
    repository_stats: RepositoryStats
    total_stats: TotalStats

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AggregateSnapshot":
        return cls(
            user=UserProfile.from_dict(d["user"]),
            contributions=tuple(ContributionDay.from_dict(x) for x in d.get("contributions") or ()),
            recent_activity=tuple(ActivityItem.from_dict(x) for x in d.get("recent_activity") or ()),
            language_stats=tuple(LanguageStat.from_dict(x) for x in d.get("language_stats") or ()),
            repository_stats=RepositoryStats.from_dict(d.get("repository_stats") or {}),
            total_stats=TotalStats.from_dict(d.get("total_stats") or {}),
        )


@dataclass(frozen=True)
class ProjectEntry(_DictMixin):
    """One curated project card. Built once per fetch, replaced wholesale on the next."""

    title: str
    description: str
    tech_tags: Tuple[str, ...]
    source: ProjectSource
    priority_score: int
    status: Optional[ProjectStatus] = None
    github_url: str = ""
    demo_url: str = "#"
    stars: int = 0
    forks: int = 0
    language: Optional[str] = None
    updated_at: str = ""
    archived: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ProjectEntry":
        status = d.get("status")
        return cls(**{
            **d,
            "tech_tags": tuple(d.get("tech_tags") or ()),
            "source": ProjectSource(d["source"]),
            "status": ProjectStatus(status) if status else None,
        })


@dataclass(frozen=True)
class Skill(_DictMixin):
    name: str
    count: int
    percentage: int
    category: str
    color: str

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Skill":
        return cls(**d)


@dataclass(frozen=True)
class OrgStats(_DictMixin):
    personal_repos: int = 0
    org_repos: int = 0
    personal_stars: int = 0
    org_stars: int = 0
    personal_languages: int = 0
    org_languages: int = 0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OrgStats":
        return cls(**d)


@dataclass(frozen=True)
class SkillsSnapshot(_DictMixin):
    """Skills dataset: detected languages/topics across both accounts."""

    skills: Tuple[Skill, ...]
    language_stats: Tuple[LanguageStat, ...]
    total_repos: int
    org_stats: OrgStats

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SkillsSnapshot":
        return cls(
            skills=tuple(Skill.from_dict(x) for x in d.get("skills") or ()),
            language_stats=tuple(LanguageStat.from_dict(x) for x in d.get("language_stats") or ()),
            total_repos=_safe_int(d.get("total_repos")),
            org_stats=OrgStats.from_dict(d.get("org_stats") or {}),
        )
