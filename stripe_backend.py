"""Stripe helpers for the subscription and webhook endpoints.

Every call to the Stripe API lives here so ``server.py`` only has to translate
results and failures into HTTP responses.  The subscription flow is three
sequential calls (customer, price, subscription) with no rollback: when a
later step fails, the records created by the earlier steps stay on Stripe.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import re
from typing import Any, Dict, Mapping, Optional

import stripe

from config.settings import Settings

LOGGER = logging.getLogger("stripe_backend")

LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

WEBHOOK_LOG_MESSAGES: Dict[str, str] = {
    "customer.subscription.created": "New subscription created: %s",
    "invoice.payment_succeeded": "Payment succeeded for invoice: %s",
    "payment_intent.succeeded": "Payment succeeded: %s",
}


class ConfigurationError(RuntimeError):
    """Raised when a required Stripe secret is missing."""


def ensure_stripe_secret(settings: Settings) -> str:
    secret_key = settings.stripe_secret_key or ""
    if not secret_key:
        raise ConfigurationError(
            "STRIPE_SECRET_KEY is not configured. Export it before starting the server."
        )
    return secret_key


def ensure_webhook_secret(settings: Settings) -> str:
    webhook_secret = settings.stripe_webhook_secret or ""
    if not webhook_secret:
        raise ConfigurationError(
            "STRIPE_WEBHOOK_SECRET is not configured. Export it before starting the server."
        )
    return webhook_secret


@dataclass
class PaymentRequest:
    program_name: Any
    program_price: Any
    email: Any
    name: Any

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PaymentRequest":
        return cls(
            program_name=payload.get("programName"),
            program_price=payload.get("programPrice"),
            email=payload.get("email"),
            name=payload.get("name"),
        )


def program_price_to_cents(value: Any) -> Any:
    """Convert a price expressed in dollars (``"29.99"``) into cents.

    Only the leading number of a string is read, so ``"29.99 USD"`` gives
    ``2999``.  A value with no leading number is returned unchanged and left
    for Stripe to reject.
    """

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        amount = float(value)
    else:
        match = LEADING_NUMBER.match(value) if isinstance(value, str) else None
        if match is None:
            return value
        amount = float(match.group(0))
    if not math.isfinite(amount * 100):
        return value
    return int(round(amount * 100))


def get_price_id_for_program(program_name: Any, price_ids: Mapping[str, str]) -> Optional[str]:
    if program_name is None:
        return None
    return price_ids.get(str(program_name))


def _resolve_price_id(settings: Settings, request: PaymentRequest) -> str:
    if settings.use_program_price_ids:
        price_id = get_price_id_for_program(request.program_name, settings.program_price_ids)
        if price_id:
            LOGGER.info("Using configured price %s for %s", price_id, request.program_name)
            return price_id

    price = stripe.Price.create(
        unit_amount=program_price_to_cents(request.program_price),
        currency=settings.currency,
        recurring={"interval": settings.billing_interval},
        product_data={"name": request.program_name},
    )
    LOGGER.info("Price created: %s", price["id"])
    return price["id"]


def create_subscription(settings: Settings, payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Create the customer, price and subscription for a program purchase.

    Returns the JSON body expected by the front end:
    ``{"subscriptionId": ..., "clientSecret": ...}``.  Stripe errors are
    propagated untouched.
    """

    stripe.api_key = ensure_stripe_secret(settings)
    request = PaymentRequest.from_payload(payload)

    customer = stripe.Customer.create(
        email=request.email,
        name=request.name,
        metadata={"programName": request.program_name},
    )
    LOGGER.info("Customer created: %s", customer["id"])

    price_id = _resolve_price_id(settings, request)

    subscription = stripe.Subscription.create(
        customer=customer["id"],
        items=[{"price": price_id}],
        payment_behavior="default_incomplete",
        payment_settings={"save_default_payment_method": "on_subscription"},
        expand=["latest_invoice.payment_intent"],
    )
    LOGGER.info("Subscription created: %s", subscription["id"])

    payment_intent = subscription["latest_invoice"]["payment_intent"]
    return {
        "subscriptionId": subscription["id"],
        "clientSecret": payment_intent["client_secret"],
    }


def describe_error(exc: Exception) -> Dict[str, str]:
    """Return the ``{"message", "type"}`` pair reported to the front end."""

    if isinstance(exc, stripe.StripeError):
        message = exc.user_message or str(exc)
    else:
        message = str(exc)
    return {"message": message, "type": type(exc).__name__}


def construct_webhook_event(
    settings: Settings, payload: bytes, sig_header: str
) -> stripe.Event:
    """Verify the signature of a webhook delivery and parse the event.

    Raises ``ValueError`` for an unparsable payload,
    ``stripe.SignatureVerificationError`` for a bad signature and
    ``ConfigurationError`` when no signing secret is configured.
    """

    return stripe.Webhook.construct_event(payload, sig_header, ensure_webhook_secret(settings))


def handle_webhook_event(event: Mapping[str, Any]) -> str:
    event_type = event["type"]
    message = WEBHOOK_LOG_MESSAGES.get(event_type)
    if message is None:
        LOGGER.info("Unhandled event type %s", event_type)
    else:
        LOGGER.info(message, event["data"]["object"]["id"])
    return event_type
