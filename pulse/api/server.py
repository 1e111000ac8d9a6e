"""HTTP entrypoint for the public verification API and directory routes."""

from __future__ import annotations

import logging
import os
import threading
import time
from datetime import datetime, timezone
from typing import Any, Optional

from flask import Flask, jsonify, request

from pulse.billing.checkout import CheckoutError, create_checkout_session, parse_subscribe_request
from pulse.core import db
from pulse.core.config import get_settings
from pulse.core.errors import RequestValidationError
from pulse.etl.transform import build_pagination, parse_paging, parse_status_filter, to_business_payload
from pulse.verification.aggregator import Aggregator, build_aggregator
from pulse.verification.formatter import format_error, format_report, isoformat

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "tlv-business-pulse"
SERVICE_VERSION = "1.0.0"
VERIFY_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"
PREFLIGHT_MAX_AGE = "86400"

# ---------- App & aggregator ----------
app = Flask(__name__)
_started_at = time.monotonic()
_aggregator: Optional[Aggregator] = None
_aggregator_lock = threading.Lock()


def get_aggregator() -> Aggregator:
    """Build the aggregator once; the store is only wired when a database is configured."""
    global _aggregator
    if _aggregator is None:
        with _aggregator_lock:
            if _aggregator is None:
                settings = get_settings()
                if settings.database_url:
                    _aggregator = build_aggregator(
                        settings,
                        store=db.get_business_by_id,
                        audit=db.log_verification,
                    )
                else:
                    logger.warning("DATABASE_URL missing; verifying without business lookup or audit log")
                    _aggregator = build_aggregator(settings)
    return _aggregator


def _preflight(allow_headers: str = "Content-Type", methods: str = "GET, OPTIONS") -> Any:
    response = app.response_class(status=200)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = methods
    response.headers["Access-Control-Allow-Headers"] = allow_headers
    response.headers["Access-Control-Max-Age"] = PREFLIGHT_MAX_AGE
    return response


@app.after_request
def _allow_any_origin(response):
    if request.path.startswith("/api/"):
        response.headers.setdefault("Access-Control-Allow-Origin", "*")
    return response


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.route("/api/verify/<path:business_id>", methods=["GET", "OPTIONS"])
def verify_business(business_id: str) -> Any:
    """Cross-reference a business against every configured source."""
    if request.method == "OPTIONS":
        return _preflight()

    try:
        report = get_aggregator().verify(business_id)
        payload = format_report(report)
    except RequestValidationError as exc:
        logger.info("Rejected verification request for %r: %s", business_id, exc)
        return jsonify(format_error(business_id, str(exc), error="Invalid business id")), 400
    except Exception as exc:  # noqa: BLE001
        logger.exception("Verification failed for %s: %s", business_id, exc)
        return jsonify(format_error(business_id, str(exc) or "Unknown error occurred")), 500

    response = jsonify(payload)
    response.headers["Cache-Control"] = VERIFY_CACHE_CONTROL
    return response, 200


@app.route("/api/health", methods=["GET", "OPTIONS"])
def healthcheck() -> Any:
    """Lightweight health endpoint; the database is only pinged with ?check=database."""
    if request.method == "OPTIONS":
        return _preflight()

    settings = get_settings()
    health = {
        "status": "healthy",
        "timestamp": isoformat(datetime.now(timezone.utc)),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "uptime": f"{int(time.monotonic() - _started_at)}s",
        "environment": settings.environment,
    }
    if request.args.get("check") == "database":
        health["database"] = db.check_database_health()
        if not health["database"]["healthy"]:
            health["status"] = "degraded"

    response = jsonify(health)
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    return response, 200 if health["status"] == "healthy" else 503


@app.route("/api/businesses", methods=["GET", "OPTIONS"])
def list_businesses() -> Any:
    """
    Paginated business listing.
    Query: page, limit (max 100), category, status (active/closed/all), search
    """
    if request.method == "OPTIONS":
        return _preflight("Content-Type, Authorization")

    page, limit, offset = parse_paging(request.args.get("page"), request.args.get("limit"))
    category = request.args.get("category") or None
    is_active = parse_status_filter(request.args.get("status"))
    search = request.args.get("search") or None

    try:
        rows = db.get_businesses(limit=limit, offset=offset, category=category, is_active=is_active, search=search)
        total = db.get_business_count(category=category, is_active=is_active, search=search)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error fetching businesses: %s", exc)
        return jsonify({"success": False, "error": str(exc) or "Failed to fetch businesses"}), 500

    response = jsonify(
        {
            "success": True,
            "data": [to_business_payload(row) for row in rows],
            "pagination": build_pagination(page, limit, total),
        }
    )
    response.headers["Cache-Control"] = VERIFY_CACHE_CONTROL
    return response, 200


@app.route("/api/stats", methods=["GET", "OPTIONS"])
def dashboard_stats() -> Any:
    if request.method == "OPTIONS":
        return _preflight()

    try:
        stats = db.get_dashboard_stats()
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error fetching dashboard stats: %s", exc)
        return jsonify({"success": False, "error": str(exc) or "Failed to fetch statistics"}), 500

    response = jsonify({"success": True, "data": stats})
    response.headers["Cache-Control"] = "public, s-maxage=30, stale-while-revalidate=60"
    return response, 200


@app.route("/api/subscribe", methods=["POST", "OPTIONS"])
def subscribe() -> Any:
    """
    Start a Stripe checkout for API access.
    Body: email (required), priceId, successUrl, cancelUrl
    """
    if request.method == "OPTIONS":
        return _preflight(methods="POST, OPTIONS")

    try:
        subscribe_request = parse_subscribe_request(request.get_json(silent=True))
    except RequestValidationError as exc:
        return jsonify({"success": False, "error": "Invalid request data", "message": str(exc)}), 400

    try:
        checkout = create_checkout_session(subscribe_request, get_settings())
    except CheckoutError as exc:
        logger.error("Subscription checkout failed: %s", exc)
        return jsonify({"success": False, "error": str(exc)}), 500
    except Exception as exc:  # noqa: BLE001
        logger.exception("Subscription checkout failed: %s", exc)
        return jsonify({"success": False, "error": str(exc) or "Failed to create subscription"}), 500

    return (
        jsonify({"success": True, "data": checkout, "message": "Checkout session created successfully"}),
        200,
    )


def main() -> None:
    """Bind on 0.0.0.0 and the PORT injected by the platform (8080 locally)."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or get_settings().port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
