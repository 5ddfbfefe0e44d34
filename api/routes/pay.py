"""
Payment and Billing API Routes

This module provides API endpoints for the one-off Pro membership purchase,
Stripe webhook handling and the caller's subscription summary.

Example usage:
    POST /api/create-checkout-session - Create Pro checkout session
    POST /api/stripe-webhook          - Handle Stripe webhooks
    GET  /api/verify-payment          - Confirm a completed checkout
    GET  /api/subscription            - Plan, usage and limits
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from auth.identity import require_actor
from auth.models import Actor, SubscriptionType
from core.errors import ServiceUnavailable, StoreError, ValidationFailure
from core.logging import get_logger, log_with_context
from core.stripe_util import (
    create_pro_checkout,
    get_checkout_session,
    handle_stripe_webhook,
    is_stripe_configured,
    verify_pro_payment,
)
from middleware.subscription import get_usage_summary

logger = get_logger(__name__)

# Create router for payment endpoints
router = APIRouter(prefix="/api", tags=["billing"])


@router.post("/create-checkout-session")
async def create_checkout_session(
    request: Request,
    actor: Actor = Depends(require_actor),
) -> JSONResponse:
    """
    Create Stripe checkout session for the Pro membership.

    The uid comes from the verified token, never from the request body.

    Example:
        POST /api/create-checkout-session
        Returns: {"url": "https://checkout.stripe.com/c/pay/cs_test_..."}
    """
    settings = request.app.state.services.settings
    if not is_stripe_configured(settings):
        raise ServiceUnavailable("Payment processing not available")

    session = await run_in_threadpool(create_pro_checkout, settings, actor.uid, actor.email)
    return JSONResponse({"url": session["url"]})


@router.post("/stripe-webhook")
async def stripe_webhook(request: Request) -> JSONResponse:
    """
    Handle Stripe webhook events.

    ``checkout.session.completed`` upgrades the user named in the session
    metadata to Pro. Every other verified event is acknowledged and ignored.
    """
    services = request.app.state.services
    payload = await request.body()
    event = handle_stripe_webhook(services.settings, payload, request.headers.get("stripe-signature"))

    if event["type"] == "checkout.session.completed":
        session = event["data"]["object"]
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        if not user_id:
            logger.error("No user ID found in session metadata", extra={"session_id": session.get("id")})
            raise ValidationFailure("No user ID found in session metadata")

        try:
            await services.users.set_subscription(user_id, SubscriptionType.PRO.value)
        except StoreError as e:
            logger.error(f"Failed to upgrade {user_id} after checkout: {e}")
            raise ServiceUnavailable("Webhook handler failed", detail=str(e))
        log_with_context(logger, "info", f"User {user_id} upgraded to pro", request=request,
                         session_id=session.get("id"))

    return JSONResponse({"received": True})


@router.get("/verify-payment")
async def verify_payment(
    request: Request,
    session_id: Optional[str] = Query(default=None),
) -> JSONResponse:
    """
    Confirm that a checkout session paid the Pro price.

    Example:
        GET /api/verify-payment?session_id=cs_test_123
        Returns: {"success": true, "customer": "cus_...", "paymentIntent": {...}}
    """
    if not session_id:
        raise ValidationFailure("No session ID provided")

    settings = request.app.state.services.settings
    session = await run_in_threadpool(get_checkout_session, settings, session_id)
    return JSONResponse(verify_pro_payment(session))


@router.get("/subscription")
async def subscription_summary(request: Request, actor: Actor = Depends(require_actor)) -> JSONResponse:
    """
    Example:
        GET /api/subscription
        Returns: {"subscription": "free", "usage": {"market": 1, ...}, "limits": {"market": 3, ...}}
    """
    services = request.app.state.services
    return JSONResponse(await get_usage_summary(actor, services.users, services.reports))
