"""
Pytest tests for the cached portfolio datasets (common_github/api/*).

Uses the real GitHubAPIClient and TimeBoxedCache; only the HTTP session is faked.

Run from the repo root:
    pytest common_github/api/test_base_cached.py -v
"""

import json
import sys
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Set up path for imports
parent_dir = Path(__file__).parent.parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

from cache.cache_base import TimeBoxedCache
from cache.cache_store import JsonFileStore, MemoryStore
from common import PROFILE_SNAPSHOT_KEY, PROJECTS_KEY, SKILLS_KEY
from common_github import GitHubAPIClient
from common_github.api import (
    FetchState,
    ProfileSnapshotCached,
    ProjectsCached,
    SkillsCached,
    SnapshotHandle,
    open_snapshot,
)
from common_github.portfolio_types import AggregateSnapshot, SkillsSnapshot
from common_types import FetchStatus, ProjectSource

BASE = "https://api.test"
CONTRIB = "https://contrib.test/v4"
NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, t: float = 1_700_000_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.headers = {}

    def json(self):
        return self._payload


class FakeSession:
    """Routes GET by URL. A route may be a payload, a FakeResponse or a callable returning either."""

    def __init__(self, routes):
        self.routes = dict(routes)
        self.calls = []
        self._mu = threading.Lock()

    def count(self, url):
        with self._mu:
            return sum(1 for u in self.calls if u == url)

    def get(self, url, *, headers=None, params=None, timeout=None):
        with self._mu:
            self.calls.append(url)
        route = self.routes.get(url)
        if callable(route):
            route = route()
        if route is None:
            return FakeResponse(404, {"message": "Not Found"}, text="Not Found")
        if isinstance(route, FakeResponse):
            return route
        return FakeResponse(200, route)


USER_URL = f"{BASE}/users/octocat"
EVENTS_URL = f"{BASE}/users/octocat/events"
REPOS_URL = f"{BASE}/users/octocat/repos"
ORG_REPOS_URL = f"{BASE}/orgs/octo-org/repos"
CONTRIB_URL = f"{CONTRIB}/octocat"

PROFILE_KEY = f"{PROFILE_SNAPSHOT_KEY}_octocat"
OCTO_PROJECTS_KEY = f"{PROJECTS_KEY}_octocat_octo-org"
OCTO_SKILLS_KEY = f"{SKILLS_KEY}_octocat_octo-org"


def profile_routes(**overrides):
    routes = {
        USER_URL: {"login": "octocat", "name": "The Octocat", "followers": 3},
        CONTRIB_URL: {"contributions": [{"date": f"2025-06-{i + 1:02d}", "count": c} for i, c in enumerate([1, 0, 2, 3, 0, 0, 4])]},
        EVENTS_URL: [{"type": "PushEvent", "repo": {"name": "octocat/hello"}, "payload": {"commits": [{}]}}],
        REPOS_URL: [
            {"name": "hello", "language": "Python", "stargazers_count": 4, "updated_at": "2025-06-10T00:00:00Z"},
            {"name": "dapp", "language": "TypeScript", "topics": ["react"], "stargazers_count": 1},
        ],
        ORG_REPOS_URL: [
            {"name": "solana-core", "language": "Rust", "topics": ["solana"], "stargazers_count": 10},
            {"name": "old-program", "language": "Rust", "archived": True},
        ],
    }
    routes.update(overrides)
    return routes


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TimeBoxedCache(store=MemoryStore(), clock=clock)


def make_api(routes):
    session = FakeSession(routes)
    return GitHubAPIClient(base_url=BASE, contributions_base_url=CONTRIB, session=session), session


def profile(api, cache, **kwargs):
    return ProfileSnapshotCached(api, cache, user="octocat", now=lambda: NOW, **kwargs)


# ============================================================================
# get() flow
# ============================================================================

def test_initial_state_is_idle(cache):
    api, _ = make_api(profile_routes())
    assert profile(api, cache).state == FetchState()
    assert profile(api, cache).state.status == FetchStatus.IDLE


def test_miss_fetches_builds_and_caches(cache):
    api, session = make_api(profile_routes())
    state = profile(api, cache).get()

    assert state.status == FetchStatus.READY
    assert state.error is None
    assert isinstance(state.data, AggregateSnapshot)
    assert state.data.user.login == "octocat"
    assert state.data.total_stats.longest_streak == 2
    assert sorted(set(session.calls)) == sorted([USER_URL, CONTRIB_URL, EVENTS_URL, REPOS_URL])
    assert cache.has(PROFILE_KEY)


def test_live_cache_entry_short_circuits_network(cache):
    api, session = make_api(profile_routes())
    first = profile(api, cache).get()
    calls_after_first = len(session.calls)

    second = profile(api, cache).get()
    assert second.status == FetchStatus.READY
    assert second.data == first.data
    assert len(session.calls) == calls_after_first


def test_profile_snapshot_uses_fifteen_minute_ttl(cache, clock):
    api, session = make_api(profile_routes())
    resource = profile(api, cache)
    resource.get()
    clock.advance(899)
    resource.get()
    assert session.count(USER_URL) == 1
    clock.advance(1)
    resource.get()
    assert session.count(USER_URL) == 2


def test_explicit_ttl_overrides_default(cache, clock):
    api, session = make_api(profile_routes())
    resource = profile(api, cache, ttl_s=10)
    resource.get()
    clock.advance(10)
    resource.get()
    assert session.count(USER_URL) == 2


def test_failure_is_reported_and_not_cached(cache):
    routes = profile_routes(**{EVENTS_URL: FakeResponse(500, {"message": "boom"}, text="boom")})
    api, _ = make_api(routes)
    resource = profile(api, cache)

    state = resource.get()
    assert state.status == FetchStatus.ERROR
    assert state.data is None
    assert "500" in state.error
    assert not cache.has(PROFILE_KEY)

    # Upstream recovers -> next call fetches again.
    api._session.routes[EVENTS_URL] = []
    assert resource.get().status == FetchStatus.READY
    assert cache.has(PROFILE_KEY)


def test_failed_refresh_leaves_no_partial_entry(cache, clock):
    api, session = make_api(profile_routes())
    resource = profile(api, cache)
    good = resource.get().data

    session.routes[USER_URL] = FakeResponse(502, text="bad gateway")
    clock.advance(900)
    state = resource.get()
    assert state.status == FetchStatus.ERROR
    assert state.data is None
    assert not cache.has(PROFILE_KEY)

    session.routes[USER_URL] = {"login": "octocat", "name": "The Octocat", "followers": 3}
    assert resource.get().data == good


def test_unreadable_cache_entry_is_refetched(cache):
    cache.set(PROFILE_KEY, {"unexpected": True})
    api, session = make_api(profile_routes())
    state = profile(api, cache).get()
    assert state.status == FetchStatus.READY
    assert session.count(USER_URL) == 1
    assert profile(api, cache).get().data == state.data


def test_dataset_survives_restart_via_disk(tmp_path, clock):
    path = tmp_path / "github_cache.json"
    api, _ = make_api(profile_routes())
    first = profile(api, TimeBoxedCache(store=JsonFileStore(path=path), clock=clock)).get()

    clock.advance(60)
    offline, offline_session = make_api({})
    second = profile(offline, TimeBoxedCache(store=JsonFileStore(path=path), clock=clock)).get()
    assert second.status == FetchStatus.READY
    assert second.data == first.data
    assert offline_session.calls == []


def test_namespace_key_override(cache):
    api, _ = make_api(profile_routes())
    profile(api, cache, namespace_key="custom_profile").get()
    assert cache.has("custom_profile")
    assert not cache.has(PROFILE_KEY)


def test_each_user_gets_its_own_snapshot(cache):
    routes = profile_routes()
    for handle in ("alice", "bob"):
        routes[f"{BASE}/users/{handle}"] = {"login": handle}
        routes[f"{CONTRIB}/{handle}"] = {"contributions": []}
        routes[f"{BASE}/users/{handle}/events"] = []
        routes[f"{BASE}/users/{handle}/repos"] = []
    api, session = make_api(routes)

    alice = ProfileSnapshotCached(api, cache, user="alice", now=lambda: NOW).get()
    bob = ProfileSnapshotCached(api, cache, user="bob", now=lambda: NOW).get()
    assert alice.data.user.login == "alice"
    assert bob.data.user.login == "bob"
    assert session.count(f"{BASE}/users/bob") == 1
    assert cache.has(f"{PROFILE_SNAPSHOT_KEY}_alice")
    assert cache.has(f"{PROFILE_SNAPSHOT_KEY}_bob")


def test_projects_are_keyed_by_user_and_org(cache):
    routes = profile_routes(**{f"{BASE}/orgs/other-org/repos": [{"name": "other-tool"}]})
    api, _ = make_api(routes)
    octo = ProjectsCached(api, cache, user="octocat", org="octo-org", now=lambda: NOW)
    other = ProjectsCached(api, cache, user="octocat", org="other-org", now=lambda: NOW)
    assert octo.cache_key != other.cache_key

    octo.get()
    titles = [p.title for p in other.get().data]
    assert "Other Tool" in titles
    assert "Solana Core" not in titles


def test_out_of_range_numbers_do_not_break_aggregation(cache):
    huge = json.loads('[{"name": "huge", "stargazers_count": 1e400, "forks_count": -1e400}]')
    api, _ = make_api(profile_routes(**{REPOS_URL: huge}))
    state = profile(api, cache).get()
    assert state.status == FetchStatus.READY
    assert state.data.total_stats.total_stars == 0


class ExplodingProfile(ProfileSnapshotCached):
    def build(self, raw, *, now):
        raise RuntimeError("bad aggregation")


def test_build_failure_does_not_leave_state_loading(cache):
    api, _ = make_api(profile_routes())
    resource = ExplodingProfile(api, cache, user="octocat", now=lambda: NOW)
    with pytest.raises(RuntimeError):
        resource.get()
    assert resource.state.status == FetchStatus.ERROR
    assert "bad aggregation" in resource.state.error
    assert not cache.has(PROFILE_KEY)


# ============================================================================
# Concurrency
# ============================================================================

def test_fail_fast_does_not_wait_for_slow_calls(cache):
    release = threading.Event()

    def slow_repos():
        release.wait(5)
        return []

    routes = profile_routes(**{REPOS_URL: slow_repos, USER_URL: FakeResponse(404, {"message": "Not Found"})})
    api, _ = make_api(routes)
    try:
        t0 = time.monotonic()
        state = profile(api, cache).get()
        elapsed = time.monotonic() - t0
    finally:
        release.set()

    assert state.status == FetchStatus.ERROR
    assert "404" in state.error
    assert elapsed < 4
    assert not cache.has(PROFILE_KEY)


def test_loading_state_is_visible_during_fetch(cache):
    entered = threading.Event()
    release = threading.Event()

    def slow_user():
        entered.set()
        release.wait(5)
        return {"login": "octocat"}

    api, _ = make_api(profile_routes(**{USER_URL: slow_user}))
    handle = SnapshotHandle(profile(api, cache))
    assert not handle.is_loading

    worker = threading.Thread(target=handle.refetch)
    worker.start()
    try:
        assert entered.wait(5)
        assert handle.is_loading
        assert handle.data is None
        assert handle.error is None
    finally:
        release.set()
        worker.join(5)

    assert not handle.is_loading
    assert handle.data.user.login == "octocat"


def test_concurrent_gets_share_one_fetch(cache):
    entered = threading.Event()
    release = threading.Event()

    def slow_user():
        entered.set()
        release.wait(5)
        return {"login": "octocat"}

    api, session = make_api(profile_routes(**{USER_URL: slow_user}))
    results = []

    def run():
        results.append(profile(api, cache).get())

    first = threading.Thread(target=run)
    first.start()
    assert entered.wait(5)
    second = threading.Thread(target=run)
    second.start()
    time.sleep(0.05)
    release.set()
    first.join(5)
    second.join(5)

    assert [r.status for r in results] == [FetchStatus.READY, FetchStatus.READY]
    assert results[0].data == results[1].data
    assert session.count(USER_URL) == 1


# ============================================================================
# Handle
# ============================================================================

def test_open_snapshot_loads_and_refetch_uses_cache(cache, clock):
    api, session = make_api(profile_routes())
    handle = open_snapshot(profile(api, cache))
    assert handle.data.user.login == "octocat"
    assert not handle.is_loading and handle.error is None

    # refetch() while the entry is live does not bypass the cache.
    handle.refetch()
    assert session.count(USER_URL) == 1

    clock.advance(900)
    handle.refetch()
    assert session.count(USER_URL) == 2


def test_handle_reports_error(cache):
    api, _ = make_api(profile_routes(**{CONTRIB_URL: FakeResponse(200, "<html>")}))
    handle = open_snapshot(profile(api, cache))
    assert handle.data is None
    assert "Unexpected payload" in handle.error


# ============================================================================
# Projects + skills datasets
# ============================================================================

def test_projects_dataset(cache, clock):
    api, session = make_api(profile_routes())
    resource = ProjectsCached(api, cache, user="octocat", org="octo-org", now=lambda: NOW)
    state = resource.get()

    assert state.status == FetchStatus.READY
    assert [p.title for p in state.data] == ["Solana Core", "Old Program", "Hello", "Dapp"]
    assert state.data[0].tech_tags == ("Rust", "Solana")
    assert state.data[1].status is not None
    assert {p.source for p in state.data} == {ProjectSource.ORGANIZATION, ProjectSource.PERSONAL}

    # Cache default TTL (10 minutes).
    clock.advance(599)
    assert ProjectsCached(api, cache, user="octocat", org="octo-org").get().data == state.data
    assert session.count(ORG_REPOS_URL) == 1
    clock.advance(1)
    assert not cache.has(OCTO_PROJECTS_KEY)


def test_projects_dataset_rejects_foreign_cache_payload(cache):
    cache.set(OCTO_PROJECTS_KEY, {"not": "a list"})
    api, session = make_api(profile_routes())
    state = ProjectsCached(api, cache, user="octocat", org="octo-org", now=lambda: NOW).get()
    assert state.status == FetchStatus.READY
    assert session.count(ORG_REPOS_URL) == 1


def test_skills_dataset(cache):
    api, session = make_api(profile_routes())
    state = SkillsCached(api, cache, user="octocat", org="octo-org").get()

    assert state.status == FetchStatus.READY
    assert isinstance(state.data, SkillsSnapshot)
    assert state.data.total_repos == 4
    assert [s.name for s in state.data.skills] == ["Python", "TypeScript", "Rust"]
    assert state.data.org_stats.org_stars == 10
    assert cache.has(OCTO_SKILLS_KEY)
    assert session.count(REPOS_URL) == 1
