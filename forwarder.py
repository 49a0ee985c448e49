# forwarder.py
import logging

import requests

from background import spawn_daemon

log = logging.getLogger("forwarder")


class Forwarder:
    """Hands newly accepted articles to the persistence webhook.

    In ``background`` mode the POST runs on a detached thread and the caller
    only learns whether a webhook is configured. In ``await`` mode the POST is
    made inline and its outcome comes back as a best-effort status.
    """

    def __init__(self, webhook_url="", mode="background", timeout_ms=1500,
                 session=None, spawn=spawn_daemon):
        self.webhook_url = webhook_url
        self.mode = mode
        self.timeout = timeout_ms / 1000
        self.session = session or requests  # session per call, forwards run on many threads
        self.spawn = spawn

    @staticmethod
    def body_for(articles: list):
        return articles[0] if len(articles) == 1 else articles

    def _post(self, articles: list) -> dict:
        try:
            r = self.session.post(self.webhook_url, json=self.body_for(articles), timeout=self.timeout)
        except requests.RequestException as e:
            log.warning("Forward to webhook failed: %s", e)
            return {"forwarded": False, "error": "forward_failed"}
        if not r.ok:
            log.warning("Webhook answered HTTP %s for %d article(s)", r.status_code, len(articles))
        return {"forwarded": r.ok, "status": r.status_code}

    def forward(self, articles: list) -> dict:
        if not self.webhook_url or not articles:
            return {"forwarded": False}
        if self.mode == "await":
            return self._post(articles)
        self.spawn(self._post, list(articles))
        return {"forwarded": True}
