"""Read-only HTTP view of the cache: GET /ping and GET /cache/<name>."""

from typing import Optional

from flask import Flask, Response, abort, request
from flask_cors import CORS

from .logger import StructuredLogger, get_logger
from .store import CacheStore, check_key


def create_app(store: CacheStore, logger: Optional[StructuredLogger] = None) -> Flask:
    logger = logger or get_logger()
    app = Flask(__name__)
    # local development aid: any origin may read the cache
    CORS(app, origins="*", send_wildcard=True, methods=["GET", "OPTIONS"], allow_headers=["Content-Type"])

    @app.before_request
    def log_request():
        logger.info(f"[cache-server] {request.method} {request.full_path.rstrip('?')}")

    @app.get("/ping")
    def ping():
        return "ok"

    @app.get("/cache/<name>")
    def cache_entry(name: str):
        try:
            check_key(name)
            body = store.get_raw(name)
        except (KeyError, ValueError):
            abort(404)
        return Response(body, mimetype="application/json")

    return app


def serve(store: CacheStore, host: str = "127.0.0.1", port: int = 3000,
          logger: Optional[StructuredLogger] = None) -> None:
    logger = logger or get_logger()
    app = create_app(store, logger)
    logger.info(f"Cache server running on http://{host}:{port} (store: {store!r})")
    app.run(host=host, port=port)
