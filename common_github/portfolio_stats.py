# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Profile statistics derived from raw GitHub payloads.

Pure functions only: no network, no storage, no wall clock. Anything time-relative
takes an explicit `now` (aware UTC datetime) so results are reproducible.

Raw records are trusted to be loosely shaped: a missing/null field means
empty/zero, never an exception.
"""

from __future__ import annotations

import math
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .portfolio_types import (
    ActivityItem,
    AggregateSnapshot,
    ContributionDay,
    LanguageStat,
    RepositoryStats,
    RepositorySummary,
    TotalStats,
    UserProfile,
    _safe_int,
    _safe_str,
    parse_repositories,
)

RECENT_ACTIVITY_LIMIT = 10
RECENT_ACTIVITY_EVENT_TYPES = ("PushEvent", "CreateEvent", "PullRequestEvent")
RECENTLY_UPDATED_DAYS = 30
ACTIVE_DAYS = 180
TOP_REPOSITORIES_LIMIT = 5

DEFAULT_LANGUAGE_COLOR = "#8b949e"
LANGUAGE_COLORS: Dict[str, str] = {
    "JavaScript": "#f1e05a",
    "TypeScript": "#2b7489",
    "Python": "#3572A5",
    "Java": "#b07219",
    "C++": "#f34b7d",
    "C": "#555555",
    "C#": "#239120",
    "PHP": "#4F5D95",
    "Ruby": "#701516",
    "Go": "#00ADD8",
    "Rust": "#dea584",
    "Swift": "#ffac45",
    "Kotlin": "#F18E33",
    "Dart": "#00B4AB",
    "HTML": "#e34c26",
    "CSS": "#1572B6",
    "Shell": "#89e051",
    "Dockerfile": "#384d54",
}


def round_half_up(x: float) -> int:
    """Round to nearest integer, .5 going up (2.5 -> 3), unlike Python's round()."""
    return int(math.floor(x + 0.5))


# ======================================================================================
# Contribution calendar
# ======================================================================================

def contribution_level(count: int) -> int:
    """Bucket a daily contribution count into a 0..4 heat level.

    0 -> 0, 1-3 -> 1, 4-6 -> 2, 7-9 -> 3, >=10 -> 4
    """
    if count <= 0:
        return 0
    if count <= 3:
        return 1
    if count <= 6:
        return 2
    if count <= 9:
        return 3
    return 4


def bucket_contributions(raw_days: Any) -> List[ContributionDay]:
    """One ContributionDay per input day, input (chronological) order preserved."""
    if not isinstance(raw_days, list):
        return []
    out: List[ContributionDay] = []
    for day in raw_days:
        d = day if isinstance(day, dict) else {}
        count = max(0, _safe_int(d.get("count")))
        out.append(ContributionDay(date=_safe_str(d.get("date")), count=count, level=contribution_level(count)))
    return out


def current_streak(days: Sequence[ContributionDay]) -> int:
    """Consecutive non-zero days counted backwards from the most recent day."""
    streak = 0
    for day in reversed(days):
        if day.count > 0:
            streak += 1
        else:
            break
    return streak


def longest_streak(days: Iterable[ContributionDay]) -> int:
    """Longest run of consecutive non-zero days anywhere in the sequence."""
    best = 0
    run = 0
    for day in days:
        if day.count > 0:
            run += 1
            best = max(best, run)
        else:
            run = 0
    return best


# ======================================================================================
# Recent activity
# ======================================================================================

def event_action(event: Dict[str, Any]) -> str:
    """Human-readable action for one raw event.

    Examples:
      PushEvent with 3 commits         -> "Pushed 3 commit(s)"
      CreateEvent ref_type=branch      -> "Created branch"
      PullRequestEvent action=closed   -> "closed pull request"
      WatchEvent                       -> "Watch"
    """
    kind = _safe_str(event.get("type"))
    payload = event.get("payload")
    payload = payload if isinstance(payload, dict) else {}

    if kind == "PushEvent":
        commits = payload.get("commits")
        n = len(commits) if isinstance(commits, list) else 0
        if not n:
            n = _safe_int(payload.get("size"))
        return f"Pushed {n or 1} commit(s)"
    if kind == "CreateEvent":
        return f"Created {_safe_str(payload.get('ref_type')) or 'repository'}"
    if kind == "PullRequestEvent":
        return f"{_safe_str(payload.get('action')) or 'opened'} pull request"
    return kind.replace("Event", "")


def extract_recent_activity(events: Any, *, limit: int = RECENT_ACTIVITY_LIMIT) -> List[ActivityItem]:
    """Push/create/pull-request events only, upstream order kept, first `limit`."""
    if not isinstance(events, list):
        return []
    out: List[ActivityItem] = []
    for ev in events:
        if not isinstance(ev, dict) or ev.get("type") not in RECENT_ACTIVITY_EVENT_TYPES:
            continue
        repo = ev.get("repo")
        out.append(ActivityItem(
            type=_safe_str(ev.get("type")),
            repo=_safe_str(repo.get("name")) if isinstance(repo, dict) else "",
            created_at=_safe_str(ev.get("created_at")),
            action=event_action(ev),
        ))
        if len(out) >= limit:
            break
    return out


# ======================================================================================
# Repositories
# ======================================================================================

def _updated_after(repo: RepositorySummary, cutoff: datetime) -> bool:
    updated = repo.updated
    return updated is not None and updated > cutoff


def top_repositories(repos: Sequence[RepositorySummary], *, limit: int = TOP_REPOSITORIES_LIMIT) -> List[RepositorySummary]:
    """Non-fork repositories by stars descending; ties keep upstream order."""
    originals = [r for r in repos if not r.is_fork]
    return sorted(originals, key=lambda r: -r.stars)[:limit]


def repository_stats(repos: Sequence[RepositorySummary], *, now: datetime) -> RepositoryStats:
    recent_cutoff = now - timedelta(days=RECENTLY_UPDATED_DAYS)
    active_cutoff = now - timedelta(days=ACTIVE_DAYS)
    return RepositoryStats(
        recently_updated=sum(1 for r in repos if _updated_after(r, recent_cutoff)),
        active_in_six_months=sum(1 for r in repos if _updated_after(r, active_cutoff)),
        forked_repos=sum(1 for r in repos if r.is_fork),
        original_repos=sum(1 for r in repos if not r.is_fork),
        has_issues=sum(1 for r in repos if r.has_issues and r.open_issues > 0),
        top_repositories=tuple(top_repositories(repos)),
    )


def language_color(language: str) -> str:
    return LANGUAGE_COLORS.get(language, DEFAULT_LANGUAGE_COLOR)


def count_languages(repos: Iterable[RepositorySummary]) -> Counter:
    """Repositories per primary language (first-seen order); repos without a language are skipped."""
    return Counter(r.language for r in repos if r.language)


def language_stats(repos: Sequence[RepositorySummary], *, total: Optional[int] = None) -> List[LanguageStat]:
    """Language distribution sorted by repository count (descending, stable).

    Percentages are relative to `total` (default: number of repositories that have a
    language) and rounded individually, so they need not add up to 100.
    """
    counts = count_languages(repos)
    denominator = sum(counts.values()) if total is None else int(total)
    if denominator <= 0:
        return []
    stats = [
        LanguageStat(
            name=name,
            count=count,
            percentage=round_half_up(count / denominator * 100),
            color=language_color(name),
        )
        for (name, count) in counts.items()
    ]
    return sorted(stats, key=lambda s: -s.count)


def most_starred_repository(repos: Iterable[RepositorySummary]) -> Optional[RepositorySummary]:
    """First repository with strictly more stars than every earlier one; None if all have 0."""
    best: Optional[RepositorySummary] = None
    for repo in repos:
        if repo.stars > (best.stars if best is not None else 0):
            best = repo
    return best


def total_stats(days: Sequence[ContributionDay], repos: Sequence[RepositorySummary]) -> TotalStats:
    return TotalStats(
        total_contributions=sum(d.count for d in days),
        current_streak=current_streak(days),
        longest_streak=longest_streak(days),
        total_repositories=len(repos),
        total_stars=sum(r.stars for r in repos),
        total_forks=sum(r.forks for r in repos),
        public_repos=sum(1 for r in repos if not r.is_private),
        most_starred_repo=most_starred_repository(repos),
    )


def build_profile_snapshot(
    *,
    user: Any,
    contributions: Any,
    events: Any,
    repos: Any,
    now: datetime,
) -> AggregateSnapshot:
    """Aggregate the four raw profile payloads into one snapshot."""
    days = bucket_contributions(contributions)
    repo_list = parse_repositories(repos)
    return AggregateSnapshot(
        user=UserProfile.from_raw(user),
        contributions=tuple(days),
        recent_activity=tuple(extract_recent_activity(events)),
        language_stats=tuple(language_stats(repo_list)),
        repository_stats=repository_stats(repo_list, now=now),
        total_stats=total_stats(days, repo_list),
    )
