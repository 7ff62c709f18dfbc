"""
Portfolio stats utilities package.

Shared constants, configuration and small helpers for the portfolio data scripts.
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# Global logger for the module
_logger = logging.getLogger(__name__)

#
# Cache policy constants (single source of truth)
#
# These are intentionally defined at module level so call sites don't duplicate
# literals (10min / 15min / etc) across scripts.
#
DEFAULT_CACHE_TTL_S: int = 10 * 60
# ^ Default TTL (seconds) for any cache entry written without an explicit TTL.
#   Example: the curated project list and the skills dataset live for 10 minutes.
DEFAULT_SNAPSHOT_TTL_S: int = 15 * 60
# ^ TTL (seconds) for the full profile snapshot (profile + calendar + events + repos).
#   This bundles four upstream calls, so it is kept a little longer than the default.
CACHE_KEY_PREFIX: str = "github_cache_"
# ^ Namespace prefix for every persistent-tier entry. `TimeBoxedCache.clear()` only removes
#   keys carrying this prefix, so unrelated data in the same store survives.

GITHUB_API_BASE_URL: str = "https://api.github.com"
CONTRIBUTIONS_API_BASE_URL: str = "https://github-contributions-api.jogruber.de/v4"
EVENTS_PER_PAGE: int = 30
REPOS_PER_PAGE: int = 100

# Logical dataset keys (one cache entry per dataset).
PROFILE_SNAPSHOT_KEY: str = "github_complete_data"
PROJECTS_KEY: str = "github_projects_data"
SKILLS_KEY: str = "github_skills_data"


# ======================================================================================
# IMPORTANT: Cache location policy (portfolio-stats)
#
# The persistent cache tier lives under:
#   - $PORTFOLIO_STATS_CACHE_DIR    (explicit override), else
#   - ~/.cache/portfolio-stats      (default)
# ======================================================================================


def portfolio_cache_dir() -> Path:
    """Return the cache directory for portfolio-stats.

    Resolution order:
    - PORTFOLIO_STATS_CACHE_DIR (explicit override)
    - ~/.cache/portfolio-stats
    """
    override = os.environ.get("PORTFOLIO_STATS_CACHE_DIR")
    if override:
        return Path(override).expanduser()

    return Path.home() / ".cache" / "portfolio-stats"


def resolve_cache_path(cache_file: str) -> Path:
    """Resolve a cache file path into the portfolio-stats cache directory.

    - Absolute paths are used as-is.
    - Relative paths are rooted under `portfolio_cache_dir()`.
    """
    p = Path(cache_file).expanduser()
    if p.is_absolute():
        return p

    # Normalize any leading "./"
    rel = Path(*p.parts[1:]) if p.parts[:1] == (".",) else p
    return portfolio_cache_dir() / rel


@dataclass(frozen=True)
class PortfolioConfig:
    """Which accounts to read and how long to keep the results."""

    user: str = ""
    org: str = ""
    cache_file: str = "github_cache.json"
    snapshot_ttl_s: int = DEFAULT_SNAPSHOT_TTL_S
    cache_ttl_s: int = DEFAULT_CACHE_TTL_S
    request_timeout_s: Optional[float] = None
    api_base_url: str = GITHUB_API_BASE_URL
    contributions_base_url: str = CONTRIBUTIONS_API_BASE_URL

    @property
    def cache_path(self) -> Path:
        return resolve_cache_path(self.cache_file)

    def with_overrides(self, **overrides: Any) -> "PortfolioConfig":
        """Return a copy with every non-None override applied (CLI flags win over the file)."""
        changes = {k: v for (k, v) in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def load_portfolio_config(path: Optional[Path]) -> PortfolioConfig:
    """Load a PortfolioConfig from a YAML file.

    A missing path (or None) yields the defaults. Unknown keys are ignored so that
    one file can be shared with other tools.

    Example file:
        user: octocat
        org: octo-org
        snapshot_ttl_s: 900
    """
    if path is None:
        return PortfolioConfig()
    p = Path(path).expanduser()
    if not p.exists():
        _logger.debug("Config file %s not found; using defaults", p)
        return PortfolioConfig()

    try:
        raw = yaml.safe_load(p.read_text()) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid config file {p}: {e}") from e
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config file {p}: expected a mapping at top level")

    known = {f.name for f in fields(PortfolioConfig)}
    values: Dict[str, Any] = {k: v for (k, v) in raw.items() if k in known}
    ignored = sorted(str(k) for k in raw.keys() if k not in known)
    if ignored:
        _logger.debug("Ignoring unknown config keys in %s: %s", p, ", ".join(ignored))
    return PortfolioConfig(**values)


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for command-line entry points."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format='[%(levelname)s] %(message)s')
    else:
        logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')
