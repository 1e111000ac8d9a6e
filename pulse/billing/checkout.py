"""Stripe checkout sessions for API subscriptions."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

import stripe

from pulse.core.config import Settings
from pulse.core.errors import PulseError, RequestValidationError

logger = logging.getLogger(__name__)

CUSTOMER_SOURCE = "tlv-business-pulse"
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CheckoutError(PulseError):
    """Checkout could not be started (configuration or Stripe failure)."""


@dataclass(frozen=True)
class SubscribeRequest:
    email: str
    price_id: Optional[str] = None
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def parse_subscribe_request(payload: Any) -> SubscribeRequest:
    """Validate the JSON body; every problem is reported in one message."""
    if not isinstance(payload, Mapping):
        raise RequestValidationError("Expected a JSON object")

    problems: List[str] = []
    email = payload.get("email")
    if email is None:
        problems.append("Email is required")
    elif not isinstance(email, str) or not _EMAIL_RE.match(email):
        problems.append("Invalid email address")

    price_id = payload.get("priceId")
    if price_id is not None and not isinstance(price_id, str):
        problems.append("priceId must be a string")

    urls: Dict[str, Optional[str]] = {}
    for key in ("successUrl", "cancelUrl"):
        value = payload.get(key)
        if value is not None and (not isinstance(value, str) or not _is_url(value)):
            problems.append(f"{key} must be a valid URL")
        urls[key] = value

    if problems:
        raise RequestValidationError(", ".join(problems))
    return SubscribeRequest(
        email=email,
        price_id=price_id or None,
        success_url=urls["successUrl"],
        cancel_url=urls["cancelUrl"],
    )


def _find_or_create_customer(email: str, api_key: str) -> Any:
    existing = stripe.Customer.list(email=email, limit=1, api_key=api_key)
    if existing.data:
        return existing.data[0]
    return stripe.Customer.create(
        email=email,
        metadata={"source": CUSTOMER_SOURCE, "created_at": datetime.now(timezone.utc).isoformat()},
        api_key=api_key,
    )


def create_checkout_session(request: SubscribeRequest, settings: Settings) -> Dict[str, str]:
    """Start a subscription checkout and return its hosted URL and session id."""
    if not settings.stripe_secret_key:
        raise CheckoutError("Stripe is not configured")
    price_id = request.price_id or settings.stripe_price_id
    if not price_id:
        raise CheckoutError("Stripe price ID not configured")

    site_url = settings.site_url.rstrip("/")
    try:
        customer = _find_or_create_customer(request.email, settings.stripe_secret_key)
        session = stripe.checkout.Session.create(
            customer=customer.id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=request.success_url or f"{site_url}/subscribe/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=request.cancel_url or f"{site_url}/subscribe/cancel",
            allow_promotion_codes=True,
            billing_address_collection="auto",
            metadata={"email": request.email, "source": "api_subscription"},
            subscription_data={"metadata": {"email": request.email, "plan": "api_access"}},
            api_key=settings.stripe_secret_key,
        )
    except stripe.StripeError as exc:
        raise CheckoutError(getattr(exc, "user_message", None) or str(exc) or "Stripe request failed") from exc

    if not session.url:
        raise CheckoutError("Failed to create checkout session")
    logger.info("Checkout session %s created for customer %s", session.id, customer.id)
    return {"checkoutUrl": session.url, "sessionId": session.id}
