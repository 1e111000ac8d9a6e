"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_TLV_API_BASE = "https://data.tel-aviv.gov.il/api/3/action"
DEFAULT_TLV_RESOURCE_ID = "business-licenses"
DEFAULT_REGISTRY_API_BASE = "https://data.gov.il/api/3/action"
DEFAULT_REGISTRY_RESOURCE_ID = "f004176c-b85f-4542-8901-7b3176f9a054"
DEFAULT_SITE_URL = "http://localhost:3000"


@dataclass(frozen=True)
class Settings:
    database_url: str
    google_api_key: str
    tlv_api_base: str = DEFAULT_TLV_API_BASE
    tlv_resource_id: str = DEFAULT_TLV_RESOURCE_ID
    registry_api_base: str = DEFAULT_REGISTRY_API_BASE
    registry_resource_id: str = DEFAULT_REGISTRY_RESOURCE_ID
    verification_threshold: int = 70
    source_timeout: float = 10.0
    verify_timeout: float = 20.0
    source_max_retries: int = 2
    port: int = 8080
    environment: str = "production"
    stripe_secret_key: str = ""
    stripe_price_id: str = ""
    site_url: str = DEFAULT_SITE_URL


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer; using %s", name, raw, default)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; using %s", name, raw, default)
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    google_api_key = os.getenv("GOOGLE_API_KEY", "")

    threshold = _int_env("VERIFICATION_THRESHOLD", 70)
    if not 0 <= threshold <= 100:
        logger.warning("VERIFICATION_THRESHOLD=%s is outside 0..100; using 70", threshold)
        threshold = 70

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; Google Places lookups will report errors.")

    return Settings(
        database_url=database_url,
        google_api_key=google_api_key,
        tlv_api_base=os.getenv("TLV_API_BASE") or DEFAULT_TLV_API_BASE,
        tlv_resource_id=os.getenv("TLV_RESOURCE_ID") or DEFAULT_TLV_RESOURCE_ID,
        registry_api_base=os.getenv("COMPANIES_REGISTRY_API_BASE") or DEFAULT_REGISTRY_API_BASE,
        registry_resource_id=os.getenv("COMPANIES_REGISTRY_RESOURCE_ID") or DEFAULT_REGISTRY_RESOURCE_ID,
        verification_threshold=threshold,
        source_timeout=_float_env("SOURCE_TIMEOUT_SECONDS", 10.0),
        verify_timeout=_float_env("VERIFY_TIMEOUT_SECONDS", 20.0),
        source_max_retries=max(0, _int_env("SOURCE_MAX_RETRIES", 2)),
        port=_int_env("PORT", 8080),
        environment=os.getenv("APP_ENV", "production"),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
        stripe_price_id=os.getenv("STRIPE_PRICE_ID", ""),
        site_url=os.getenv("SITE_URL") or DEFAULT_SITE_URL,
    )
