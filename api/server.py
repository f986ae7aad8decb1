"""
MedLedger upload relay

Flask service that holds the pinning-service credentials so client code
never does:
- Health check
- Authenticated multipart upload, forwarded to Pinata, answered with the CID

Environment:
    PINATA_API_KEY, PINATA_SECRET_API_KEY  pinning credentials (required)
    PINATA_URL                             override the pinning endpoint
    RELAY_TOKEN                            bearer token clients must send (empty disables)
    RELAY_MAX_UPLOAD_BYTES                 request size cap (default 25 MiB)

Run:
    flask --app api.server run --port 8080

Or with gunicorn (production):
    gunicorn -w 4 -b 0.0.0.0:8080 api.server:app
"""

from __future__ import annotations

import hmac
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from medledger import __version__
from medledger.errors import ConfigurationError, InvalidInput, UploadFailure
from pinning.client import PINATA_URL, ContentStoreClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 25 * 1024 * 1024


def _pinata_from_env() -> ContentStoreClient:
    key = os.getenv("PINATA_API_KEY")
    secret = os.getenv("PINATA_SECRET_API_KEY")
    if not key or not secret:
        raise ConfigurationError("PINATA_API_KEY / PINATA_SECRET_API_KEY not set")
    return ContentStoreClient.for_pinata(key, secret, upload_url=os.getenv("PINATA_URL", PINATA_URL))


def create_app(
    store: Optional[ContentStoreClient] = None,
    *,
    relay_token: Optional[str] = None,
    max_upload_bytes: Optional[int] = None,
) -> Flask:
    app = Flask(__name__)
    CORS(app)

    app.config["RELAY_TOKEN"] = (
        relay_token if relay_token is not None else os.getenv("RELAY_TOKEN", "")
    )
    app.config["MAX_CONTENT_LENGTH"] = max_upload_bytes or int(
        os.getenv("RELAY_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)
    )
    app.extensions["content_store"] = store

    def content_store() -> ContentStoreClient:
        s = app.extensions.get("content_store")
        if s is None:
            s = _pinata_from_env()
            app.extensions["content_store"] = s
        return s

    def authorized() -> bool:
        token = app.config["RELAY_TOKEN"]
        if not token:
            return True
        header = request.headers.get("Authorization", "")
        return hmac.compare_digest(header.encode("utf-8"), f"Bearer {token}".encode("utf-8"))

    @app.route("/api/health")
    def health_check():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    @app.route("/api/upload", methods=["POST"])
    def upload():
        """
        Pin one file.

        Form fields:
            - file: the record payload (multipart)

        Returns:
            {"cid": "<content identifier>"}
        """
        if not authorized():
            return jsonify({"error": "Unauthorized"}), 401

        f = request.files.get("file")
        if f is None:
            return jsonify({"error": "No file provided", "kind": "invalid-input"}), 400
        data = f.read()

        try:
            cid = content_store().upload(data, mime_hint=f.mimetype, filename=f.filename)
        except InvalidInput as e:
            return jsonify({"error": str(e), "kind": e.kind}), 400
        except UploadFailure as e:
            logger.error(f"Upstream pinning failed: {e}")
            return jsonify({"error": str(e), "kind": e.kind, "upstream_status": e.status_code}), 502
        except ConfigurationError as e:
            logger.error(f"Relay misconfigured: {e}")
            return jsonify({"error": "Relay is not configured", "kind": e.kind}), 500

        return jsonify({"cid": cid})

    @app.errorhandler(413)
    def too_large(_e):
        return jsonify({"error": "Payload too large", "kind": "upload-failure"}), 413

    return app


app = create_app()


if __name__ == "__main__":
    app.run(debug=False, port=int(os.getenv("PORT", "8080")))
