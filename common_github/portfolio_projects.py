# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""Curated project list and skills derived from personal + organization repositories.

Projects:
  Two pools (organization, personal) are filtered, sorted with a pool-specific
  comparator, capped, mixed 80/20 into a fixed number of slots and finally
  ordered by priority score.

Skills:
  Languages and well-known topics across both accounts, with a category and a
  display color per skill.

Pure functions; `now` is always passed in.
"""

from __future__ import annotations

import calendar
import math
import re
from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from common_types import ProjectSource, ProjectStatus
from .portfolio_stats import count_languages, language_color, language_stats, round_half_up
from .portfolio_types import (
    OrgStats,
    ProjectEntry,
    RepositorySummary,
    Skill,
    SkillsSnapshot,
    parse_repositories,
)

TOTAL_PROJECTS = 12
ORG_SHARE = 0.8
PERSONAL_POOL_SHARE = 0.25
PERSONAL_POOL_MIN = 3
MAX_TECH_TAGS = 6

ORG_BONUS = 100
STAR_WEIGHT = 10
FORK_WEIGHT = 5
RECENCY_BONUS = 20
RECENCY_MONTHS = 6
LANGUAGE_BONUS = 15
WEB3_TOPIC_BONUS = 25
FRONTEND_TOPIC_BONUS = 10
DESCRIPTION_BONUS = 5
DESCRIPTION_MIN_LENGTH = 50
DEMO_BONUS = 10

PRIORITY_LANGUAGES = frozenset({"TypeScript", "Rust"})
WEB3_TOPICS = frozenset({"solana", "web3", "blockchain"})
FRONTEND_TOPICS = frozenset({"nextjs", "react"})

DEFAULT_DESCRIPTIONS: Dict[ProjectSource, str] = {
    ProjectSource.ORGANIZATION: "A cutting-edge project built for the Solana ecosystem.",
    ProjectSource.PERSONAL: "A modern application built with cutting-edge technologies.",
}
DEFAULT_DEMO_URL = "#"

TOPIC_TECH: Dict[str, str] = {
    "react": "React",
    "nextjs": "Next.js",
    "nodejs": "Node.js",
    "typescript": "TypeScript",
    "javascript": "JavaScript",
    "tailwindcss": "Tailwind",
    "solana": "Solana",
    "web3": "Web3",
    "blockchain": "Blockchain",
    "defi": "DeFi",
    "nft": "NFT",
    "rust": "Rust",
    "anchor": "Anchor",
    "mongodb": "MongoDB",
    "postgresql": "PostgreSQL",
    "firebase": "Firebase",
    "docker": "Docker",
    "express": "Express",
    "graphql": "GraphQL",
    "prisma": "Prisma",
    "supabase": "Supabase",
    "webrtc": "WebRTC",
    "mediasoup": "Mediasoup",
    "ffmpeg": "FFMPEG",
    "arweave": "Arweave",
    "evm": "EVM",
    "solidity": "Solidity",
    "redis": "Redis",
    "timescaledb": "TimescaleDB",
    "actix-web": "Actix Web",
}

# Organization projects get an ecosystem tag implied by their language.
ORG_LANGUAGE_TECH: Dict[str, str] = {
    "Rust": "Solana",
    "TypeScript": "Web3",
}


# ======================================================================================
# Priority score
# ======================================================================================

def months_before(now: datetime, months: int) -> datetime:
    """Same wall-clock time `months` calendar months earlier (day clamped to month length)."""
    month_index = now.month - 1 - int(months)
    year = now.year + month_index // 12
    month = month_index % 12 + 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def priority_score(repo: RepositorySummary, *, source: ProjectSource, now: datetime) -> int:
    """Additive ranking score used to interleave organization and personal projects.

    Example: org repo, 10 stars, 2 forks, updated 2 months ago, Rust, topics=["solana"],
    60-char description, homepage set -> 100 + 100 + 10 + 20 + 15 + 25 + 5 + 10 = 285
    """
    score = ORG_BONUS if source == ProjectSource.ORGANIZATION else 0
    score += repo.stars * STAR_WEIGHT
    score += repo.forks * FORK_WEIGHT

    updated = repo.updated
    if updated is not None and updated > months_before(now, RECENCY_MONTHS):
        score += RECENCY_BONUS
    if repo.language in PRIORITY_LANGUAGES:
        score += LANGUAGE_BONUS

    topics = set(repo.topics)
    if topics & WEB3_TOPICS:
        score += WEB3_TOPIC_BONUS
    if topics & FRONTEND_TOPICS:
        score += FRONTEND_TOPIC_BONUS

    if repo.description and len(repo.description) > DESCRIPTION_MIN_LENGTH:
        score += DESCRIPTION_BONUS
    if repo.homepage:
        score += DEMO_BONUS
    return score


# ======================================================================================
# Project entries
# ======================================================================================

def format_project_title(name: str) -> str:
    """Repository name -> card title ("solana-core" -> "Solana Core", "myApp" -> "My App")."""
    words = [w[:1].upper() + w[1:] for w in str(name or "").split("-")]
    spaced = re.sub(r"([A-Z])", r" \1", " ".join(words))
    return " ".join(spaced.split())


def project_tech_tags(language: Optional[str], topics: Iterable[str], *, source: ProjectSource) -> List[str]:
    """Language first, then known topics, then org ecosystem defaults; deduped, max 6."""
    tags: List[str] = []
    if language:
        tags.append(language)

    for topic in topics:
        tech = TOPIC_TECH.get(str(topic).lower())
        if tech and tech not in tags:
            tags.append(tech)

    if source == ProjectSource.ORGANIZATION and language:
        implied = ORG_LANGUAGE_TECH.get(language)
        if implied and implied not in tags:
            tags.append(implied)

    return tags[:MAX_TECH_TAGS]


def build_project_entry(repo: RepositorySummary, *, source: ProjectSource, now: datetime) -> ProjectEntry:
    return ProjectEntry(
        title=format_project_title(repo.name),
        description=repo.description or DEFAULT_DESCRIPTIONS[source],
        tech_tags=tuple(project_tech_tags(repo.language, repo.topics, source=source)),
        source=source,
        priority_score=priority_score(repo, source=source, now=now),
        status=ProjectStatus.PAUSED if (source == ProjectSource.ORGANIZATION and repo.is_archived) else None,
        github_url=repo.html_url,
        demo_url=repo.homepage or DEFAULT_DEMO_URL,
        stars=repo.stars,
        forks=repo.forks,
        language=repo.language,
        updated_at=repo.updated_at,
        archived=repo.is_archived,
    )


def _epoch(dt: Optional[datetime]) -> float:
    return dt.timestamp() if dt is not None else 0.0


def sort_org_pool(repos: Iterable[RepositorySummary]) -> List[RepositorySummary]:
    """Non-forks by stars desc, then updated desc, then created desc."""
    pool = [r for r in repos if not r.is_fork]
    return sorted(pool, key=lambda r: (-r.stars, -_epoch(r.updated), -_epoch(r.created)))


def sort_personal_pool(repos: Iterable[RepositorySummary]) -> List[RepositorySummary]:
    """Active non-forks by stars desc, then forks desc, then updated desc."""
    pool = [r for r in repos if not r.is_fork and not r.is_archived]
    return sorted(pool, key=lambda r: (-r.stars, -r.forks, -_epoch(r.updated)))


def personal_pool_cap(org_pool_size: int) -> int:
    return max(PERSONAL_POOL_MIN, math.ceil(org_pool_size * PERSONAL_POOL_SHARE))


def select_projects(
    org_repos: Sequence[RepositorySummary],
    personal_repos: Sequence[RepositorySummary],
    *,
    now: datetime,
    total: int = TOTAL_PROJECTS,
) -> List[ProjectEntry]:
    """Mix both pools into at most `total` entries ordered by priority score (stable).

    Organization entries get ceil(total * 0.8) slots, personal entries the rest.
    The personal pool is pre-capped at max(3, ceil(len(org pool) * 0.25)).
    """
    org_pool = [build_project_entry(r, source=ProjectSource.ORGANIZATION, now=now) for r in sort_org_pool(org_repos)]
    personal_sorted = sort_personal_pool(personal_repos)[:personal_pool_cap(len(org_pool))]
    personal_pool = [build_project_entry(r, source=ProjectSource.PERSONAL, now=now) for r in personal_sorted]

    org_slots = math.ceil(total * ORG_SHARE)
    personal_slots = total - org_slots
    combined = org_pool[:org_slots] + personal_pool[:personal_slots]
    return sorted(combined, key=lambda p: -p.priority_score)


def filter_projects(projects: Iterable[ProjectEntry], source: str = "all") -> List[ProjectEntry]:
    """Keep entries from one source ("personal" / "organization"), or all of them."""
    if source == "all":
        return list(projects)
    wanted = ProjectSource(source)
    return [p for p in projects if p.source == wanted]


def build_projects(*, org_repos: object, personal_repos: object, now: datetime) -> List[ProjectEntry]:
    """Raw organization + personal repository payloads -> curated project list."""
    return select_projects(parse_repositories(org_repos), parse_repositories(personal_repos), now=now)


# ======================================================================================
# Skills
# ======================================================================================

DEFAULT_CATEGORY = "Other"
DEFAULT_TOPIC_COLOR = "#6b7280"
MIN_TOPIC_REPOS = 2

LANGUAGE_CATEGORIES: Dict[str, str] = {
    "JavaScript": "Frontend",
    "TypeScript": "Frontend",
    "React": "Frontend",
    "HTML": "Frontend",
    "CSS": "Frontend",
    "Python": "Backend",
    "Node.js": "Backend",
    "Rust": "Blockchain",
    "Solidity": "Blockchain",
    "Go": "Backend",
    "Java": "Backend",
    "C++": "Systems",
    "C": "Systems",
}

TOPIC_CATEGORIES: Dict[str, str] = {
    "react": "Frontend",
    "nextjs": "Frontend",
    "tailwindcss": "Frontend",
    "nodejs": "Backend",
    "express": "Backend",
    "python": "Backend",
    "solana": "Blockchain",
    "web3": "Blockchain",
    "blockchain": "Blockchain",
    "defi": "Blockchain",
    "nft": "Blockchain",
    "rust": "Blockchain",
    "anchor": "Blockchain",
    "mongodb": "Database",
    "postgresql": "Database",
    "firebase": "Database",
    "prisma": "Database",
    "supabase": "Database",
    "docker": "DevOps",
    "kubernetes": "DevOps",
}

TOPIC_COLORS: Dict[str, str] = {
    "react": "#61dafb",
    "nextjs": "#000000",
    "nodejs": "#339933",
    "solana": "#9945ff",
    "web3": "#f16822",
    "rust": "#dea584",
    "mongodb": "#47a248",
    "postgresql": "#336791",
    "docker": "#2496ed",
}

SKILL_DISPLAY_NAMES: Dict[str, str] = {
    "nextjs": "Next.js",
    "nodejs": "Node.js",
    "typescript": "TypeScript",
    "javascript": "JavaScript",
    "tailwindcss": "Tailwind CSS",
    "mongodb": "MongoDB",
    "postgresql": "PostgreSQL",
}

RELEVANT_TOPICS = frozenset({
    "react", "nextjs", "nodejs", "typescript", "javascript", "python",
    "solana", "web3", "blockchain", "defi", "nft", "rust", "anchor",
    "mongodb", "postgresql", "firebase", "docker", "kubernetes",
    "tailwindcss", "express", "graphql", "prisma", "supabase",
})


def format_skill_name(topic: str) -> str:
    return SKILL_DISPLAY_NAMES.get(topic.lower()) or (topic[:1].upper() + topic[1:])


def _percentage(count: int, total: int) -> int:
    return round_half_up(count / total * 100) if total > 0 else 0


def detect_skills(repos: Sequence[RepositorySummary]) -> List[Skill]:
    """Languages plus relevant topics seen in >= 2 repositories.

    A topic skill whose display name equals a language (e.g. "typescript" -> "TypeScript")
    replaces the language entry in place.
    """
    total = len(repos)
    skills: Dict[str, Skill] = {}

    for (language, count) in count_languages(repos).items():
        skills[language] = Skill(
            name=language,
            count=count,
            percentage=_percentage(count, total),
            category=LANGUAGE_CATEGORIES.get(language, DEFAULT_CATEGORY),
            color=language_color(language),
        )

    topic_counts = Counter(t for r in repos for t in r.topics)
    for (topic, count) in topic_counts.items():
        key = topic.lower()
        if key not in RELEVANT_TOPICS or count < MIN_TOPIC_REPOS:
            continue
        name = format_skill_name(topic)
        skills[name] = Skill(
            name=name,
            count=count,
            percentage=_percentage(count, total),
            category=TOPIC_CATEGORIES.get(key, DEFAULT_CATEGORY),
            color=TOPIC_COLORS.get(key, DEFAULT_TOPIC_COLOR),
        )

    return list(skills.values())


def group_skills_by_category(skills: Iterable[Skill]) -> Dict[str, List[Skill]]:
    """Category -> skills sorted by count descending (categories in first-seen order)."""
    grouped: Dict[str, List[Skill]] = {}
    for skill in skills:
        grouped.setdefault(skill.category, []).append(skill)
    return {cat: sorted(items, key=lambda s: -s.count) for (cat, items) in grouped.items()}


def org_stats(personal: Sequence[RepositorySummary], org: Sequence[RepositorySummary]) -> OrgStats:
    return OrgStats(
        personal_repos=len(personal),
        org_repos=len(org),
        personal_stars=sum(r.stars for r in personal),
        org_stars=sum(r.stars for r in org),
        personal_languages=len({r.language for r in personal if r.language}),
        org_languages=len({r.language for r in org if r.language}),
    )


def build_skills(*, personal_repos: object, org_repos: object) -> SkillsSnapshot:
    """Raw personal + organization repository payloads -> skills dataset."""
    personal = parse_repositories(personal_repos)
    org = parse_repositories(org_repos)
    everything = personal + org
    return SkillsSnapshot(
        skills=tuple(detect_skills(everything)),
        language_stats=tuple(language_stats(everything, total=len(everything))),
        total_repos=len(everything),
        org_stats=org_stats(personal, org),
    )
