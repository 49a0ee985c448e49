# api.py
import json
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import NotFound as RouteNotFound, RequestEntityTooLarge

from articles import ArticleStore, FileArticleStore, dt_utc_now, normalize
from background import spawn_daemon, start_refresh_job
from errors import ApiError, NotFound, PayloadTooLarge, ValidationError
from feed_sync import FeedSynchronizer, RefreshScheduler
from forwarder import Forwarder
from settings import load_settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("api")


def _read_json_body():
    raw = request.get_data(cache=False)
    if not raw.strip():
        raise ValidationError("Missing body")
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError):
        raise ValidationError("Invalid JSON") from None
    # Falsy scalars count as no body; an empty list is a valid (empty) batch.
    if payload in (None, False, 0, ""):
        raise ValidationError("Missing body")
    return payload


def create_app(settings=None, store=None, session=None, clock=dt_utc_now, spawn=spawn_daemon):
    """Wire the article cache engine behind a Flask app.

    Everything stateful (store, sync state, forwarder) belongs to the returned
    app, so two apps never share a cache.
    """
    settings = settings or load_settings()
    if store is None:
        store = FileArticleStore(settings.articles_path) if settings.articles_path else ArticleStore()

    synchronizer = FeedSynchronizer(
        store,
        feed_url=settings.feed_url,
        policy=settings.sync_policy,
        timeout_ms=settings.feed_timeout_ms,
        session=session,
        clock=clock,
    )
    scheduler = RefreshScheduler(
        synchronizer,
        seed_json=settings.articles_json,
        refresh_ms=settings.refresh_ms,
        spawn=spawn,
    )
    forwarder = Forwarder(
        settings.webhook_url,
        mode=settings.forward_mode,
        timeout_ms=settings.forward_timeout_ms,
        session=session,
        spawn=spawn,
    )

    app = Flask(__name__)
    app.url_map.strict_slashes = False
    app.config["MAX_CONTENT_LENGTH"] = settings.max_body_bytes
    app.extensions["article_cache"] = {
        "settings": settings,
        "store": store,
        "synchronizer": synchronizer,
        "scheduler": scheduler,
        "forwarder": forwarder,
    }
    CORS(app)
    log.info("Article cache ready: source=%s policy=%s forward=%s", settings.source, settings.sync_policy, settings.forward_mode)

    # ----------------- Cache gate -----------------
    @app.before_request
    def refresh_cache():
        if request.method == "OPTIONS" or not request.path.startswith("/api/"):
            return None
        scheduler.ensure_initialized()
        scheduler.refresh_if_stale()
        return None

    @app.after_request
    def add_cache_headers(resp):
        if request.path.startswith("/api/"):
            resp.headers["Cache-Control"] = "no-store, max-age=0"
        return resp

    # ----------------- Errors -----------------
    @app.errorhandler(ApiError)
    def api_error(e):
        return jsonify({"error": e.message}), e.status

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(_e):
        return jsonify({"error": PayloadTooLarge.message}), PayloadTooLarge.status

    @app.errorhandler(RouteNotFound)
    def no_route(_e):
        return jsonify({"error": NotFound.message}), NotFound.status

    # ----------------- Articles API -----------------
    @app.get("/api/health")
    def health():
        return jsonify({
            "ok": True,
            "articles": len(store),
            "source": settings.source,
            "lastRefresh": scheduler.state.last_refresh,
        })

    @app.get("/api/articles")
    def list_articles():
        return jsonify({"articles": store.all()})

    @app.get("/api/articles/<article_id>")
    def get_article(article_id):
        item = store.find_by_id(article_id)
        if item is None:
            raise NotFound()
        return jsonify(item)

    @app.post("/api/articles")
    def create_articles():
        items = normalize(_read_json_body(), now=clock())
        store.prepend(items)
        forward = forwarder.forward(items)
        return jsonify({"inserted": len(items), "items": items, "forward": forward}), 201

    if settings.run_jobs and settings.feed_url and settings.refresh_ms > 0:
        start_refresh_job(synchronizer.sync, settings.refresh_ms)

    return app


app = create_app()

# ----------------- Local dev runner -----------------
if __name__ == "__main__":
    app.run(host="0.0.0.0", port=app.extensions["article_cache"]["settings"].port)
