"""
Stripe Integration Utilities

Helpers for the Pro membership checkout, webhook verification and payment
confirmation. All calls use the Stripe Python SDK synchronously; routes run
them in a threadpool.

Example usage:
    # Create the Pro checkout session
    session = create_pro_checkout(settings, user_id='uid_123', user_email='user@example.com')

    # Handle webhook events
    event = handle_stripe_webhook(settings, payload, signature)
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import stripe

from core.billing import (
    PRO_CURRENCY,
    PRO_PAYMENT_TYPE,
    PRO_PRICE_PENCE,
    PRO_PRODUCT_DESCRIPTION,
    PRO_PRODUCT_NAME,
)
from core.config import Settings
from core.errors import PaymentFailure, ServiceUnavailable, ValidationFailure
from core.logging import get_logger

logger = get_logger(__name__)


def is_stripe_configured(settings: Settings) -> bool:
    """
    Check if Stripe keys are available.

    Example:
        >>> if is_stripe_configured(settings):
        ...     session = create_pro_checkout(settings, uid, email)
    """
    return bool(settings.stripe_secret_key)


def _require_key(settings: Settings) -> str:
    if not settings.stripe_secret_key:
        logger.error("STRIPE_SECRET_KEY not configured")
        raise ServiceUnavailable("Payment processing not available")
    return settings.stripe_secret_key


def _payment_failure(e: stripe.StripeError, fallback: str) -> PaymentFailure:
    return PaymentFailure(
        e.user_message or str(e) or fallback,
        status_code=e.http_status or 500,
        detail=str(e),
    )


def create_pro_checkout(settings: Settings, user_id: str, user_email: Optional[str]) -> Dict[str, Any]:
    """
    Create a Stripe checkout session for the one-off Pro membership.

    Args:
        settings: Runtime settings with the Stripe key and public base URL
        user_id: Verified uid; stored in session and payment intent metadata
        user_email: Prefilled customer email, if known

    Returns:
        Dict with session ``id`` and hosted checkout ``url``

    Raises:
        ServiceUnavailable: Stripe is not configured
        PaymentFailure: Stripe rejected the request or returned no URL
    """
    api_key = _require_key(settings)
    metadata = {"userId": user_id, "type": PRO_PAYMENT_TYPE}
    params: Dict[str, Any] = dict(
        payment_method_types=["card"],
        line_items=[{
            "price_data": {
                "currency": PRO_CURRENCY,
                "product_data": {
                    "name": PRO_PRODUCT_NAME,
                    "description": PRO_PRODUCT_DESCRIPTION,
                    "metadata": {"type": PRO_PAYMENT_TYPE},
                },
                "unit_amount": PRO_PRICE_PENCE,
            },
            "quantity": 1,
        }],
        mode="payment",
        success_url=f"{settings.base_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{settings.base_url}/pricing",
        metadata={**metadata, "timestamp": datetime.now(timezone.utc).isoformat()},
        payment_intent_data={"metadata": metadata},
        allow_promotion_codes=True,
        billing_address_collection="required",
        customer_creation="always",
    )
    if user_email:
        params["customer_email"] = user_email

    try:
        session = stripe.checkout.Session.create(api_key=api_key, **params)
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating checkout session: {e}")
        raise _payment_failure(e, "Failed to create checkout session")

    if not session.url:
        raise PaymentFailure("Failed to create checkout session", detail="session has no url")

    logger.info(f"Created Pro checkout session for {user_id}", extra={"session_id": session.id})
    return {"id": session.id, "url": session.url}


def handle_stripe_webhook(settings: Settings, payload: bytes, sig_header: Optional[str]) -> Any:
    """
    Verify a Stripe webhook and return the parsed event.

    Raises:
        ValidationFailure: missing signature, bad payload or failed verification
        ServiceUnavailable: webhook secret not configured

    Example:
        >>> event = handle_stripe_webhook(settings, body, request.headers.get('stripe-signature'))
        >>> if event['type'] == 'checkout.session.completed':
        ...     upgrade(event['data']['object'])
    """
    if not sig_header:
        raise ValidationFailure("No signature found in request")
    if not settings.stripe_webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        raise ServiceUnavailable("Webhook processing not available")

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, settings.stripe_webhook_secret)
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        raise ValidationFailure("Webhook signature verification failed")
    except stripe.SignatureVerificationError as e:
        logger.error(f"Invalid webhook signature: {e}")
        raise ValidationFailure("Webhook signature verification failed")

    logger.info(f"Verified webhook event: {event['type']}")
    return event


def get_checkout_session(settings: Settings, session_id: str) -> Any:
    """
    Retrieve a checkout session with its payment intent and customer expanded.

    Raises:
        PaymentFailure: Stripe lookup failed
    """
    api_key = _require_key(settings)
    try:
        return stripe.checkout.Session.retrieve(
            session_id, api_key=api_key, expand=["payment_intent", "customer"]
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error getting checkout session: {e}")
        raise _payment_failure(e, "Failed to verify payment")


def verify_pro_payment(session: Any) -> Dict[str, Any]:
    """
    Confirm a retrieved session paid the Pro price in full.

    Returns:
        Verification payload for the client

    Raises:
        ValidationFailure: payment incomplete, not succeeded or wrong amount
    """
    if session.get("payment_status") != "paid":
        raise ValidationFailure("Payment not completed")

    intent = session.get("payment_intent")
    if not intent or isinstance(intent, str) or intent.get("status") != "succeeded":
        raise ValidationFailure("Payment not fully processed")
    if intent.get("amount") != PRO_PRICE_PENCE:
        raise ValidationFailure("Invalid payment amount")

    customer = session.get("customer")
    return {
        "success": True,
        "customer": customer if isinstance(customer, (str, type(None))) else customer.get("id"),
        "paymentIntent": {
            "id": intent.get("id"),
            "amount": intent.get("amount"),
            "status": intent.get("status"),
        },
    }
