"""Database helpers for the directory backend."""

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import psycopg2
from psycopg2 import extras, pool

from pulse.core.config import get_settings
from pulse.verification.models import ERROR, FOUND, VerificationReport

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None

# Monthly price of a subscription in cents; revenue is an estimate.
SUBSCRIPTION_PRICE_CENTS = 2900
UPTIME_PERCENT = 99.98

_VERIFICATION_TYPES = {
    "tel_aviv_municipality": "municipality",
    "israeli_companies_registry": "company_registry",
    "google_places": "google_places",
}


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


def _fetch_all(sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(sql, params)
            return [dict(row) for row in cur.fetchall()]


def _fetch_one(sql: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    with get_connection() as conn:
        with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
            cur.execute(sql, params)
            row = cur.fetchone()
            return dict(row) if row else None


def _count(sql: str, params: Dict[str, Any]) -> int:
    row = _fetch_one(sql, params)
    if not row:
        return 0
    return int(next(iter(row.values())) or 0)


# ---------- Businesses ----------


def get_business_by_id(business_id: str) -> Optional[Dict[str, Any]]:
    """Look a business up by internal UUID or municipal licence number."""
    return _fetch_one(
        "SELECT * FROM businesses WHERE id::text = %(id)s OR business_id = %(id)s LIMIT 1",
        {"id": business_id},
    )


def _business_filters(
    category: Optional[str],
    is_active: Optional[bool],
    search: Optional[str],
) -> Tuple[str, Dict[str, Any]]:
    clauses: List[str] = []
    params: Dict[str, Any] = {}
    if category:
        clauses.append("category = %(category)s")
        params["category"] = category
    if is_active is not None:
        clauses.append("is_active = %(is_active)s")
        params["is_active"] = is_active
    if search:
        clauses.append("(name ILIKE %(search)s OR address ILIKE %(search)s)")
        params["search"] = f"%{search}%"
    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


def get_businesses(
    *,
    limit: int = 20,
    offset: int = 0,
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    where, params = _business_filters(category, is_active, search)
    params.update(limit=limit, offset=offset)
    sql = f"SELECT * FROM businesses{where} ORDER BY created_at DESC LIMIT %(limit)s OFFSET %(offset)s"
    return _fetch_all(sql, params)


def get_business_count(
    *,
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
) -> int:
    where, params = _business_filters(category, is_active, search)
    return _count(f"SELECT COUNT(*) AS count FROM businesses{where}", params)


# ---------- Dashboard ----------


def get_dashboard_stats(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Aggregate the counters shown on the public dashboard."""
    now = now or datetime.now(timezone.utc)
    today_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_ago = now - timedelta(hours=24)

    total = _count("SELECT COUNT(*) AS count FROM businesses WHERE is_active = TRUE", {})
    new_today = _count(
        "SELECT COUNT(*) AS count FROM businesses WHERE is_active = TRUE AND created_at >= %(since)s",
        {"since": today_start},
    )
    closed_today = _count(
        "SELECT COUNT(*) AS count FROM businesses WHERE is_active = FALSE AND updated_at >= %(since)s",
        {"since": today_start},
    )
    articles = _count("SELECT COUNT(*) AS count FROM insights", {})
    api_calls = _count(
        "SELECT COALESCE(SUM(requests_count), 0) AS total FROM api_keys WHERE last_used >= %(since)s",
        {"since": day_ago},
    )
    active_subscriptions = _count("SELECT COUNT(*) AS count FROM subscriptions WHERE status = 'active'", {})

    return {
        "totalBusinesses": total,
        "newToday": new_today,
        "closedToday": closed_today,
        "articlesPublished": articles,
        "apiCalls": api_calls,
        "revenue": active_subscriptions * SUBSCRIPTION_PRICE_CENTS,
        "uptime": UPTIME_PERCENT,
        "lastUpdated": now.isoformat(),
    }


# ---------- Verification audit log ----------

_INSERT_VERIFICATION_LOG = """
INSERT INTO verification_logs (
    business_id,
    verification_type,
    verification_status,
    source_name,
    source_url,
    data_found,
    data_matches,
    confidence_score,
    retrieved_data,
    discrepancies,
    error_message,
    automated,
    metadata,
    created_at
) VALUES (
    %(business_id)s,
    %(verification_type)s,
    %(verification_status)s,
    %(source_name)s,
    %(source_url)s,
    %(data_found)s,
    %(data_matches)s,
    %(confidence_score)s,
    %(retrieved_data)s,
    %(discrepancies)s,
    %(error_message)s,
    TRUE,
    %(metadata)s,
    %(created_at)s
);
"""


def _verification_log_rows(report: VerificationReport) -> List[Dict[str, Any]]:
    business_uuid = (report.hint or {}).get("id")
    rows = []
    for outcome in report.outcomes:
        found = outcome.kind == FOUND
        if outcome.is_match:
            status = "success"
        elif found:
            status = "partial"
        else:
            status = "failed"
        rows.append(
            {
                "business_id": str(business_uuid) if business_uuid else None,
                "verification_type": _VERIFICATION_TYPES.get(outcome.source, "manual"),
                "verification_status": status,
                "source_name": outcome.source,
                "source_url": outcome.verification_url,
                "data_found": found,
                "data_matches": outcome.matches if found else None,
                "confidence_score": report.quality_score,
                "retrieved_data": extras.Json(outcome.record or {}),
                "discrepancies": extras.Json([]),
                "error_message": outcome.reason if outcome.kind == ERROR else None,
                "metadata": extras.Json({"lookup_key": report.business_id, "verified": report.verified}),
                "created_at": outcome.checked_at,
            }
        )
    return rows


def log_verification(report: VerificationReport) -> None:
    """Write one audit row per source outcome."""
    rows = _verification_log_rows(report)
    with get_connection() as conn:
        try:
            with conn.cursor() as cur:
                for row in rows:
                    cur.execute(_INSERT_VERIFICATION_LOG, row)
            conn.commit()
        except psycopg2.Error:
            conn.rollback()
            raise
    logger.debug("Logged %d verification rows for %s", len(rows), report.business_id)


# ---------- Health ----------


def check_database_health() -> Dict[str, Any]:
    started = time.monotonic()
    try:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1", None)
        healthy = True
    except (psycopg2.Error, RuntimeError) as exc:
        logger.warning("Database health check failed: %s", exc)
        healthy = False
    return {"healthy": healthy, "responseTime": int((time.monotonic() - started) * 1000)}
