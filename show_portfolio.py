#!/usr/bin/env python3
# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Print one portfolio dataset (profile snapshot, curated projects or skills) as JSON.

Data comes from the two-tier cache when a live entry exists; otherwise the
upstream GitHub endpoints are queried in parallel and the result is cached.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cache.cache_base import TimeBoxedCache
from cache.cache_store import JsonFileStore
from common import PortfolioConfig, load_portfolio_config, setup_logging
from common_github import GitHubAPIClient
from common_github.api import ProfileSnapshotCached, ProjectsCached, SkillsCached
from common_github.api.base_cached import CachedSnapshotBase
from common_types import FetchStatus

_logger = logging.getLogger(__name__)

DATASETS = ("profile", "projects", "skills")


def build_dataset(
    name: str,
    config: PortfolioConfig,
    *,
    api: GitHubAPIClient,
    cache: TimeBoxedCache,
    ttl_s: Optional[float] = None,
) -> CachedSnapshotBase:
    """Wire the named dataset to a client + cache."""
    if name == "profile":
        return ProfileSnapshotCached(api, cache, user=config.user, ttl_s=ttl_s if ttl_s is not None else config.snapshot_ttl_s)
    if name == "projects":
        return ProjectsCached(api, cache, user=config.user, org=config.org, ttl_s=ttl_s)
    if name == "skills":
        return SkillsCached(api, cache, user=config.user, org=config.org, ttl_s=ttl_s)
    raise ValueError(f"Unknown dataset: {name}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Show a GitHub-backed portfolio dataset as JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Profile snapshot (profile, contribution calendar, recent activity, stats)
  %(prog)s --user octocat

  # Curated project list mixing personal and organization repositories
  %(prog)s --user octocat --org octo-org --dataset projects

  # Start from an empty cache
  %(prog)s --config portfolio.yaml --dataset skills --clear-cache

Environment Variables:
  PORTFOLIO_STATS_CACHE_DIR
      Override default cache directory (~/.cache/portfolio-stats)
        """,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config file (user, org, TTLs, cache_file)")
    parser.add_argument("--user", default=None, help="GitHub user handle")
    parser.add_argument("--org", default=None, help="GitHub organization (projects/skills datasets)")
    parser.add_argument("--dataset", choices=DATASETS, default="profile", help="Dataset to show (default: profile)")
    parser.add_argument("--ttl", type=float, default=None, help="TTL in seconds for a freshly fetched dataset")
    parser.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds (default: none)")
    parser.add_argument("--clear-cache", action="store_true", help="Drop all cached datasets before fetching")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = load_portfolio_config(args.config).with_overrides(
            user=args.user, org=args.org, request_timeout_s=args.timeout
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not config.user:
        print("Error: a GitHub user is required (--user or 'user:' in --config)", file=sys.stderr)
        return 1
    if args.dataset in ("projects", "skills") and not config.org:
        print(f"Error: --org is required for the {args.dataset} dataset", file=sys.stderr)
        return 1

    cache = TimeBoxedCache(store=JsonFileStore(path=config.cache_path), default_ttl_s=config.cache_ttl_s)
    if args.clear_cache:
        cache.clear()

    api = GitHubAPIClient(
        base_url=config.api_base_url,
        contributions_base_url=config.contributions_base_url,
        timeout_s=config.request_timeout_s,
    )
    dataset = build_dataset(args.dataset, config, api=api, cache=cache, ttl_s=args.ttl)
    state = dataset.get()

    mem_count, disk_count = cache.get_cache_sizes()
    _logger.debug("cache: hits=%d promoted=%d misses=%d entries(mem=%d, disk=%d); api: %s",
                  cache.stats.hit, cache.stats.promote, cache.stats.miss, mem_count, disk_count,
                  api.stats.to_dict())

    if state.status != FetchStatus.READY:
        print(f"Error: {state.error}", file=sys.stderr)
        return 1

    data = state.data
    payload = [p.to_dict() for p in data] if isinstance(data, list) else data.to_dict()
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
