# background.py
import logging
import threading
from atexit import register

from apscheduler.schedulers.background import BackgroundScheduler

log = logging.getLogger("background")


def spawn_daemon(fn, *args):
    """Run fn(*args) on a detached daemon thread; the caller never joins it."""
    t = threading.Thread(target=fn, args=args, daemon=True, name=f"bg-{getattr(fn, '__name__', 'task')}")
    t.start()
    return t


def schedule_refresh(sched, refresh, interval_ms: int):
    """Register the periodic feed refresh on an APScheduler scheduler."""
    return sched.add_job(
        refresh,
        "interval",
        seconds=interval_ms / 1000,
        id="feed-refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )


def start_refresh_job(refresh, interval_ms: int):
    try:
        sched = BackgroundScheduler(daemon=True, timezone="UTC")
        schedule_refresh(sched, refresh, interval_ms)
        sched.start()
        log.info("Refresh job started (every %d ms)", interval_ms)
        register(lambda: sched.shutdown(wait=False))
        return sched
    except Exception:
        log.exception("Failed to start APScheduler")
        return None
