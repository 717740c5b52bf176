from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

import stripe
from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config.settings import Settings, get_settings
from stripe_backend import (
    ConfigurationError,
    construct_webhook_event,
    create_subscription,
    describe_error,
    handle_webhook_event,
)

LOGGER = logging.getLogger("server")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | int, log_path: Path | None = None) -> list[logging.Handler]:
    """Route server logs to STDOUT and, when ``log_path`` is set, a rotating file.

    ``level`` accepts a name such as ``"debug"`` (the ``LOG_LEVEL`` setting) or
    a ``logging`` constant; unknown names fall back to INFO.  Handlers already
    installed on the root logger are replaced.
    """

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        )

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    return handlers


def create_app(settings: Settings | None = None) -> Flask:
    settings = settings or get_settings()
    static_dir = str(settings.static_dir)

    app = Flask(__name__, static_folder=None)
    app.config["SETTINGS"] = settings
    CORS(
        app,
        origins=settings.cors_origins,
        methods=["GET", "POST"],
        supports_credentials=True,
    )

    @app.before_request
    def log_request() -> None:
        LOGGER.info("%s %s", request.method, request.full_path.rstrip("?"))

    @app.route("/")
    def root() -> object:
        return send_from_directory(static_dir, "index.html")

    @app.route("/<page>")
    def serve_page(page: str) -> object:
        return send_from_directory(static_dir, page)

    @app.route("/create-payment-intent", methods=["POST"])
    def create_payment_intent() -> object:
        payload = request.get_json(silent=True) or {}
        LOGGER.info("Received payment request: %s", payload)

        try:
            body = create_subscription(settings, payload)
        except Exception as exc:
            LOGGER.exception("Error in payment intent creation")
            return jsonify({"error": describe_error(exc)}), 500

        return jsonify(body)

    @app.route("/webhook", methods=["POST"])
    def webhook() -> object:
        payload = request.get_data()
        sig_header = request.headers.get("Stripe-Signature", "")

        try:
            event = construct_webhook_event(settings, payload, sig_header)
        except (ValueError, stripe.SignatureVerificationError, ConfigurationError) as exc:
            LOGGER.error("Webhook Error: %s", exc)
            return (
                f"Webhook Error: {exc}",
                400,
                {"Content-Type": "text/plain; charset=utf-8"},
            )

        handle_webhook_event(event)
        return jsonify({"received": True})

    @app.errorhandler(Exception)
    def handle_server_error(exc: Exception) -> object:
        if isinstance(exc, HTTPException):
            return exc
        LOGGER.exception("Server error")
        return (
            jsonify({"error": {"message": "Internal server error", "details": str(exc)}}),
            500,
        )

    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    app = create_app(settings)
    LOGGER.info("Server running on port %s", settings.port)
    LOGGER.info("Static directory: %s", settings.static_dir)
    app.run(host=settings.host, port=settings.port, debug=False)


if __name__ == "__main__":
    main()
