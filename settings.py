# settings.py
import os
import logging
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger("settings")

SYNC_POLICIES = ("merge", "replace")
FORWARD_MODES = ("background", "await")


@dataclass(frozen=True)
class Settings:
    feed_url: str = ""
    webhook_url: str = ""
    refresh_ms: int = 60_000
    articles_json: Optional[str] = None
    articles_path: Optional[str] = None
    sync_policy: str = "merge"
    forward_mode: str = "background"
    feed_timeout_ms: int = 2000
    forward_timeout_ms: int = 1500
    max_body_bytes: int = 1024 * 1024  # 1MB
    run_jobs: bool = False
    port: int = 3000

    @property
    def source(self) -> str:
        if self.feed_url:
            return "feed"
        if self.articles_json:
            return "env"
        if self.articles_path:
            return "file"
        return "memory"


def _int_env(env, name, default):
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        log.warning("Ignoring %s=%r, using %s", name, raw, default)
        return default


def _choice_env(env, name, choices):
    raw = (env.get(name) or "").strip().lower()
    if not raw:
        return choices[0]
    if raw not in choices:
        log.warning("Unknown %s=%r, using %s", name, raw, choices[0])
        return choices[0]
    return raw


def load_settings(env=None) -> Settings:
    """Build Settings from the process environment (or a given mapping)."""
    env = os.environ if env is None else env
    return Settings(
        feed_url=(env.get("N8N_FEED_URL") or "").strip(),
        webhook_url=(env.get("N8N_WEBHOOK_URL") or "").strip(),
        refresh_ms=_int_env(env, "REFRESH_MS", 60_000),
        articles_json=env.get("ARTICLES_JSON") or None,
        articles_path=(env.get("ARTICLES_PATH") or "").strip() or None,
        sync_policy=_choice_env(env, "SYNC_POLICY", SYNC_POLICIES),
        forward_mode=_choice_env(env, "FORWARD_MODE", FORWARD_MODES),
        feed_timeout_ms=_int_env(env, "FEED_TIMEOUT_MS", 2000),
        forward_timeout_ms=_int_env(env, "FORWARD_TIMEOUT_MS", 1500),
        max_body_bytes=_int_env(env, "MAX_BODY_BYTES", 1024 * 1024),
        run_jobs=env.get("RUN_JOBS", "0") == "1",
        port=_int_env(env, "PORT", 3000),
    )
