"""Flask application factory for the cssport cache server."""
from __future__ import annotations

import atexit
import os
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from flask import Flask

from .app_utils import EXTENSION_KEY, make_error, make_ok
from .composition.providers import Services, build_services
from .config import setup_logger
from .routes.debug_api import bp as debug_api_bp
from .routes.fixtures_api import bp as fixtures_api_bp
from .routes.logos import bp as logos_bp

ASSETS_DIR = os.path.join(os.path.dirname(__file__), "assets")

logger = setup_logger(__name__)


def create_app(
    services: Optional[Services] = None, config: Optional[Mapping[str, Any]] = None
) -> Flask:
    app = Flask(__name__, static_folder=ASSETS_DIR, static_url_path="/assets")
    app.json.sort_keys = False
    if config:
        app.config.update(config)

    if services is None:
        services = build_services(database_url=app.config.get("DATABASE_URL"))
        atexit.register(services.close)
    app.extensions[EXTENSION_KEY] = services

    app.register_blueprint(fixtures_api_bp)
    app.register_blueprint(logos_bp)
    app.register_blueprint(debug_api_bp)
    logger.info("routes registered: fixtures_api, logos, debug_api")

    @app.get("/health")
    def health():
        return make_ok({"ok": True, "ts": datetime.now(timezone.utc).isoformat()})

    @app.errorhandler(404)
    def not_found(_err):
        return make_error(None, "Not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return make_error(None, "Method not allowed", 405)

    return app


def main() -> None:
    app = create_app()
    port = int(os.getenv("PORT", "5000"))
    app.run(host="0.0.0.0", port=port, threaded=True)


if __name__ == "__main__":
    main()
