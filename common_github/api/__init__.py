"""Portfolio datasets with caching and TTL policy.

Each module in this package owns:
- the upstream calls for one dataset (via GitHubAPIClient)
- the cache key/value format
- the TTL policy for that dataset
"""

from .base_cached import CachedSnapshotBase, FetchState, SnapshotHandle, open_snapshot
from .profile_snapshot_cached import ProfileSnapshotCached
from .projects_cached import ProjectsCached
from .skills_cached import SkillsCached

__all__ = [
    "CachedSnapshotBase",
    "FetchState",
    "ProfileSnapshotCached",
    "ProjectsCached",
    "SkillsCached",
    "SnapshotHandle",
    "open_snapshot",
]
