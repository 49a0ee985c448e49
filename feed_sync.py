# feed_sync.py
import json
import logging
import threading
from dataclasses import dataclass

import requests

from articles import dt_utc_now, epoch_millis, normalize
from background import spawn_daemon
from errors import MalformedUpstreamPayload, UpstreamError, UpstreamUnavailable

log = logging.getLogger("feed_sync")


@dataclass
class SyncState:
    last_refresh: int = 0  # epoch millis of the last finished sync attempt
    seeded: bool = False
    initialized: bool = False


def unwrap_article_list(data):
    """Accept a bare list or an object carrying an ``articles`` list."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("articles"), list):
        return data["articles"]
    return None


def parse_seed(raw: str):
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        log.warning("ARTICLES_JSON ignored, not valid JSON: %s", e)
        return None
    rows = unwrap_article_list(data)
    if rows is None:
        log.warning("ARTICLES_JSON ignored, expected a list or {\"articles\": [...]}")
    return rows


# ----------------- Feed Synchronizer -----------------
class FeedSynchronizer:
    """Pulls the external feed into the store.

    ``sync()`` never raises. Any upstream failure leaves the store as it was,
    and the attempt is stamped into ``state.last_refresh`` either way.
    """

    def __init__(self, store, feed_url="", policy="merge", timeout_ms=2000,
                 session=None, clock=dt_utc_now, state=None):
        self.store = store
        self.feed_url = feed_url
        self.policy = policy
        self.timeout = timeout_ms / 1000
        # Module-level requests opens a session per call; syncs run on several threads.
        self.session = session or requests
        self.clock = clock
        self.state = state or SyncState()

    def _fetch(self) -> list:
        try:
            r = self.session.get(
                self.feed_url,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
        except requests.RequestException as e:
            raise UpstreamUnavailable(f"{type(e).__name__}: {e}") from e
        if not r.ok:
            raise UpstreamUnavailable(f"HTTP {r.status_code}")
        try:
            data = r.json()
        except (ValueError, RecursionError) as e:
            raise MalformedUpstreamPayload(f"invalid JSON: {e}") from e
        rows = unwrap_article_list(data)
        if rows is None:
            raise MalformedUpstreamPayload(f"unexpected payload type {type(data).__name__}")
        return rows

    def sync(self) -> None:
        try:
            if not self.feed_url:
                return
            rows = normalize(self._fetch(), now=self.clock())
            if self.policy == "replace":
                self.store.replace_all(rows)
            else:
                self.store.merge_keeping_local_only(rows)
            log.info("Feed sync ok: %d from feed, %d cached (%s)", len(rows), len(self.store), self.policy)
        except UpstreamError as e:
            log.warning("Feed sync failed, serving %d cached articles: %s", len(self.store), e)
        finally:
            self.state.last_refresh = epoch_millis(self.clock())


# ----------------- Refresh Scheduler -----------------
class RefreshScheduler:
    """Decides, per request, whether the cache must be seeded or refreshed.

    State moves uninitialized -> ready exactly once: the first
    ``ensure_initialized`` applies the env seed and launches a background sync
    it does not wait for. ``refresh_if_stale`` runs at most one blocking sync,
    and only when the staleness window has elapsed (or nothing ever synced).
    """

    def __init__(self, synchronizer: FeedSynchronizer, seed_json=None,
                 refresh_ms=60_000, spawn=spawn_daemon):
        self.synchronizer = synchronizer
        self.seed_json = seed_json
        self.refresh_ms = refresh_ms
        self.spawn = spawn
        self._init_lock = threading.Lock()

    @property
    def state(self) -> SyncState:
        return self.synchronizer.state

    def apply_seed(self) -> None:
        rows = parse_seed(self.seed_json)
        if rows is not None:
            store = self.synchronizer.store
            store.replace_all(normalize(rows, now=self.synchronizer.clock()))
            log.info("Seeded %d articles from ARTICLES_JSON", len(store))

    def ensure_initialized(self) -> None:
        if self.state.initialized:
            return
        # Guards only the flag flip and seed parse; no network under the lock.
        with self._init_lock:
            if self.state.initialized:
                return
            if not self.state.seeded:
                self.apply_seed()
                self.state.seeded = True
            self.state.initialized = True
        self.spawn(self.synchronizer.sync)

    def is_stale(self) -> bool:
        last = self.state.last_refresh
        if not last:
            return True
        if self.refresh_ms <= 0:
            return False
        return epoch_millis(self.synchronizer.clock()) - last > self.refresh_ms

    def refresh_if_stale(self) -> bool:
        if not self.is_stale():
            return False
        self.synchronizer.sync()
        return True
