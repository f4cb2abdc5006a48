"""
API gateway: combines the auth, UKM, events and reports blueprints.
This is the entrypoint for development and deployment.
"""

import atexit
import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, Response, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from backend.common.errors import ApiError
from backend.database.db_connection import Database
from backend.database.ledger import Ledger
from backend.gateway.config import load_config


def register_error_handlers(app: Flask) -> None:
    """
    Map exceptions to JSON responses.

    ApiError subclasses carry their own status. Anything unexpected becomes a
    generic 500 without internal detail; the traceback only goes to the log.
    """

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError) -> Tuple[Response, int]:
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException) -> Tuple[Response, int]:
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception) -> Tuple[Response, int]:
        logging.exception(f"Unhandled error: {error}")
        return jsonify({"error": "Internal server error"}), 500


def create_app(config: Optional[Dict[str, Any]] = None, ledger: Optional[Ledger] = None) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        config (dict, optional): Overrides for the environment settings.
        ledger (Ledger, optional): Ready-made ledger. When omitted, a database
            pool is opened from DATABASE_URL and closed at interpreter exit.

    Returns:
        Flask: The configured Flask application.
    """
    app = Flask(__name__)
    app.config.update(load_config())
    if config:
        app.config.update(config)

    # Basic console logging during API requests
    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="[%(levelname)s] %(asctime)s - %(message)s",
    )

    CORS(app, resources={
        r"/*": {
            "origins": app.config["CORS_ORIGINS"],
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "expose_headers": ["Content-Type", "Authorization"],
        }
    })

    # --- STORE ---
    if ledger is None:
        db = Database(
            app.config["DATABASE_URL"],
            minconn=app.config["DB_POOL_MIN"],
            maxconn=app.config["DB_POOL_MAX"],
            pool_timeout=app.config["DB_POOL_TIMEOUT"],
            statement_timeout_ms=app.config["DB_STATEMENT_TIMEOUT_MS"],
            connect_timeout=app.config["DB_CONNECT_TIMEOUT"],
        ).open()
        atexit.register(db.close)
        ledger = Ledger(db)
    app.extensions["ledger"] = ledger

    # --- REGISTER BLUEPRINTS ---
    from backend.auth_service.routes import auth_bp
    from backend.events_service.routes import events_bp
    from backend.reports_service.routes import reports_bp
    from backend.ukm_service.routes import ukm_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(ukm_bp, url_prefix="/ukm")
    app.register_blueprint(events_bp, url_prefix="/ukm")
    app.register_blueprint(reports_bp, url_prefix="/ukm")
    logging.info("All blueprints registered successfully.")

    register_error_handlers(app)

    # --- BASIC HEALTH CHECKPOINTS ---
    @app.route("/")
    def ping():
        """
        Root URL for simple 'online' check.
        """
        return jsonify({"status": "gateway_ok"}), 200

    @app.route("/health")
    def health():
        """
        Health check endpoint.
        """
        return jsonify({"status": "ok"}), 200

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], threaded=True)
