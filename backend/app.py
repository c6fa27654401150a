"""
Module: backend/app.py
Application factory: config, logging, JWT, CORS, request hooks, error
handlers and blueprint registration.
"""
from __future__ import annotations
import logging
import os
import uuid
from datetime import timedelta

from dotenv import find_dotenv, load_dotenv

_dotenv_path = os.environ.get("DOTENV_PATH", "")
if _dotenv_path and os.path.exists(_dotenv_path):
    load_dotenv(_dotenv_path)
else:
    load_dotenv(find_dotenv(usecwd=True))

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException

from utils.config_handler import allowed_origins, is_production
from utils.csrf import origin_guard
from utils.db import get_db_health, init_engine_session
from utils.redis_health import get_redis_health
from utils.response_helpers import error_response, server_error_response

import services.celery_app  # noqa: F401  binds shared tasks to the configured app

from routes.routes_activities import bp as activities_bp
from routes.routes_admin import bp as admin_bp
from routes.routes_advisory import bp as advisory_bp
from routes.routes_analytics import bp as analytics_bp
from routes.routes_assistant import bp as assistant_bp
from routes.routes_auth import bp as auth_bp
from routes.routes_cron import bp as cron_bp
from routes.routes_editions import bp as editions_bp
from routes.routes_opportunities import bp as opportunities_bp
from routes.routes_settings import bp as settings_bp
from routes.routes_student_advisory import bp as student_advisory_bp

BLUEPRINTS = (
    auth_bp, opportunities_bp, editions_bp, analytics_bp, cron_bp,
    advisory_bp, student_advisory_bp, admin_bp, settings_bp,
    activities_bp, assistant_bp,
)


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
    app.logger.addHandler(handler)
    app.logger.setLevel(level)
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(handler)
    root.setLevel(level)


def create_app() -> Flask:
    app = Flask(__name__)
    _configure_logging(app)
    app.config["PROPAGATE_EXCEPTIONS"] = False

    secret_key = os.getenv("SECRET_KEY")
    if not secret_key or secret_key == "dev":
        if is_production():
            raise ValueError("SECRET_KEY must be set in production")
        secret_key = "dev-only-key-not-for-production"
    app.config["SECRET_KEY"] = secret_key

    try:
        max_mb = int(os.getenv("MAX_CONTENT_MB", "2"))
    except ValueError:
        max_mb = 2
    app.config["MAX_CONTENT_LENGTH"] = max_mb * 1024 * 1024

    jwt_secret = os.getenv("JWT_SECRET_KEY")
    if not jwt_secret:
        if is_production():
            raise ValueError("JWT_SECRET_KEY must be set in production")
        jwt_secret = "devkey"
    app.config["JWT_SECRET_KEY"] = jwt_secret
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(hours=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "168")))
    jwt = JWTManager(app)

    @jwt.unauthorized_loader
    def _jwt_missing(reason: str):
        return jsonify({"error": "Unauthorized"}), 401

    @jwt.invalid_token_loader
    def _jwt_invalid(reason: str):
        return jsonify({"error": "Invalid token"}), 401

    @jwt.expired_token_loader
    def _jwt_expired(h, p):
        return jsonify({"error": "Token expired"}), 401

    @jwt.user_lookup_error_loader
    def _jwt_user_missing(h, p):
        return jsonify({"error": "Unauthorized"}), 401

    init_engine_session()

    CORS(app, resources={r"/api/*": {"origins": allowed_origins()}}, supports_credentials=True,
         expose_headers=["X-Request-ID", "X-RateLimit-Remaining", "X-RateLimit-Reset", "Retry-After"])

    @app.before_request
    def add_req_id():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    app.before_request(origin_guard)

    @app.after_request
    def add_resp_id(resp: Response) -> Response:
        resp.headers["X-Request-ID"] = g.get("request_id", "-")
        if os.getenv("SECURITY_HEADERS_DISABLED", "0") not in {"1", "true", "yes", "on"}:
            resp.headers.setdefault("X-Content-Type-Options", "nosniff")
            resp.headers.setdefault("X-Frame-Options", "DENY")
            resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        return resp

    @app.route("/api/healthz")
    def healthz():
        db = get_db_health()
        ok = bool(db.get("ok"))
        return jsonify({"ok": ok, "db": db, "redis": get_redis_health()}), (200 if ok else 503)

    for bp in BLUEPRINTS:
        app.register_blueprint(bp)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        app.logger.info("HTTP %s: %s", e.code, e.description)
        return error_response(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_any(e: Exception):
        app.logger.exception("Unhandled exception (request_id=%s)", g.get("request_id"))
        return server_error_response(exc=e)

    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("PORT", "5000"))
    app.run(host="0.0.0.0", port=port)
