# articles.py
import json
import logging
import threading
from datetime import datetime, timezone

log = logging.getLogger("articles")

ID_FIELDS = ("id", "index", "_id")
HEADLINE_FIELDS = ("headline", "title")
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ----------------- Helpers (time) -----------------
def dt_utc_now():
    return datetime.now(timezone.utc)


def iso_ts(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def parse_ts_maybe(v):
    """Accept datetime, ISO string or epoch millis; fallback to epoch."""
    if isinstance(v, datetime):
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        try:
            return datetime.fromtimestamp(v / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return EPOCH
    if isinstance(v, str):
        s = v.strip().replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return EPOCH
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return EPOCH


def _first_present(rec: dict, keys, default):
    for k in keys:
        v = rec.get(k)
        if v is not None:
            return v
    return default


# ----------------- Normalizer -----------------
def normalize(payload, now: datetime = None) -> list:
    """Turn one record or a list of records into canonical articles.

    Never fails: anything that is not a dict is treated as an empty record and
    gets every default. ``now`` pins the clock used for synthesized ids and
    missing createdAt values.
    """
    now = now or dt_utc_now()
    rows = payload if isinstance(payload, list) else [payload]
    out = []
    for i, rec in enumerate(rows):
        if not isinstance(rec, dict):
            rec = {}
        out.append({
            "id": _first_present(rec, ID_FIELDS, f"{epoch_millis(now)}-{i}"),
            "headline": _first_present(rec, HEADLINE_FIELDS, "Untitled"),
            "content": _first_present(rec, ("content",), ""),
            "createdAt": _first_present(rec, ("createdAt",), iso_ts(now)),
        })
    return out


def newest_first(rows: list) -> list:
    return sorted(rows, key=lambda a: parse_ts_maybe(a.get("createdAt")), reverse=True)


# ----------------- Article Store -----------------
class ArticleStore:
    """Ordered, id-addressable articles held in process memory.

    Every mutation swaps the whole list under a lock, so readers only ever see
    a complete snapshot.
    """

    def __init__(self, rows=None):
        self._lock = threading.Lock()
        self._rows = list(rows or [])

    def __len__(self):
        return len(self._rows)

    def all(self) -> list:
        return list(self._rows)

    def find_by_id(self, article_id):
        key = str(article_id)
        for a in self._rows:
            if str(a.get("id")) == key:
                return a
        return None

    def replace_all(self, articles: list) -> None:
        with self._lock:
            self._rows = list(articles)
            self._changed(self._rows)

    def merge_keeping_local_only(self, articles: list) -> None:
        """Feed entries win by id; local-only entries survive; newest first."""
        with self._lock:
            by_id = {}
            for a in articles:
                by_id[str(a.get("id"))] = a
            for a in self._rows:
                by_id.setdefault(str(a.get("id")), a)
            self._rows = newest_first(by_id.values())
            self._changed(self._rows)

    def prepend(self, articles: list) -> None:
        # No id dedupe here: resubmitting an id leaves both copies in place.
        with self._lock:
            self._rows = list(articles) + self._rows
            self._changed(self._rows)

    def _changed(self, rows: list) -> None:
        pass


class FileArticleStore(ArticleStore):
    """ArticleStore that mirrors its contents to a JSON document on disk."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(self._read())
        log.info("File store: %s (%d articles)", path, len(self))

    def _read(self) -> list:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            log.warning("File store read skipped: %s", e)
            return []
        if not isinstance(rows, list):
            log.warning("File store at %s is not a list, starting empty", self.path)
            return []
        return rows

    def _changed(self, rows: list) -> None:
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(rows, f, ensure_ascii=False)
        except OSError as e:
            log.warning("File store write skipped: %s", e)
