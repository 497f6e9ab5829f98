"""HTTP endpoint that receives database row-insert notifications."""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, Flask, current_app, jsonify, request

from .router import IngestRouter

LOGGER = logging.getLogger(__name__)

api = Blueprint("videopipe", __name__)

ROUTER_EXTENSION = "videopipe_router"


@api.route("/healthz", methods=["GET"])
def healthcheck() -> Any:
    return jsonify({"ok": True})


@api.route("/webhooks/videos", methods=["POST"])
def video_inserted() -> Any:
    """
    Row-insert notification endpoint.

    Always answers 200 so the database hook never retries; the body reports
    whether the row was routed or why it was ignored.
    """
    notification: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(notification, dict):
        return jsonify({"action": "ignored", "reason": "payload must be an object"}), 200

    router: IngestRouter = current_app.extensions[ROUTER_EXTENSION]
    result = router.handle(notification)
    return jsonify(result.to_dict()), 200


def create_app(router: IngestRouter | None = None) -> Flask:
    """Build the webhook app; without a router one is wired from the environment."""

    if router is None:
        from .celery_app import celery_app
        from .config import load_config
        from .runtime import build_runtime
        from .wake import CeleryWaker

        router = build_runtime(load_config(), CeleryWaker(celery_app)).router

    app = Flask(__name__)
    app.extensions[ROUTER_EXTENSION] = router
    app.register_blueprint(api)
    return app
