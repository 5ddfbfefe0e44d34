"""
Subscription Allowance

Free accounts may generate a fixed lifetime number of each AI report family;
Pro accounts are unlimited. Usage is the number of saved reports the actor
owns in the matching collection.

Example usage:
    allowed, error_data = await check_generation_allowance(actor, ReportKind.MARKET, users, reports)
    if not allowed:
        raise QuotaExceeded(error_data['error'], payload=error_data)
"""

from typing import Any, Dict, Optional, Tuple

from auth.models import Actor, SubscriptionType
from core.billing import FEATURES, PRO_PRICE_PENCE, feature_for, get_limits, normalize_plan
from core.logging import get_logger
from core.models import ReportKind

logger = get_logger(__name__)


async def load_plan(actor: Actor, users: Any) -> str:
    """Return the actor's plan; unreadable or missing profiles count as free."""
    try:
        return normalize_plan(await users.get_subscription(actor.uid))
    except Exception as e:
        logger.warning(f"Subscription lookup failed for {actor.uid}, assuming free: {e}")
        return SubscriptionType.FREE.value


async def check_generation_allowance(
    actor: Actor,
    kind: ReportKind,
    users: Any,
    reports: Any,
) -> Tuple[bool, Optional[Dict[str, Any]]]:
    """
    Check whether the actor may generate another report of ``kind``.

    Args:
        actor: Verified caller
        kind: Report family being generated
        users: Store exposing ``get_subscription(uid)``
        reports: Store exposing ``count_reports(kind, uid)``

    Returns:
        Tuple of (allowed, error_response_data)

    Example:
        >>> allowed, error = await check_generation_allowance(actor, ReportKind.VISIBILITY, users, reports)
        >>> error['code'] if error else None
        'FREE_LIMIT_REACHED'
    """
    plan = await load_plan(actor, users)
    feature = feature_for(kind)
    limit = get_limits(plan)[feature]
    if limit is None:
        return True, None

    try:
        used = await reports.count_reports(kind, actor.uid)
    except Exception as e:
        logger.warning(f"Usage count failed for {actor.uid}/{feature}, allowing: {e}")
        return True, None

    if used < limit:
        return True, None

    logger.info(f"Free limit reached for {actor.uid}: {feature} {used}/{limit}")
    return False, {
        "error": "Free plan limit reached. Upgrade to Pro for unlimited reports.",
        "code": "FREE_LIMIT_REACHED",
        "feature": feature,
        "used": used,
        "limit": limit,
        "plan": plan,
        "upgrade": {
            "name": "Pro",
            "price_pence": PRO_PRICE_PENCE,
            "checkout_endpoint": "/api/create-checkout-session",
        },
    }


async def get_usage_summary(actor: Actor, users: Any, reports: Any) -> Dict[str, Any]:
    """
    Plan, per-feature usage and per-feature limits for the actor.

    Features whose usage cannot be counted report ``None``.
    """
    plan = await load_plan(actor, users)
    usage: Dict[str, Optional[int]] = {}
    for feature, kind in FEATURES.items():
        try:
            usage[feature] = await reports.count_reports(kind, actor.uid)
        except Exception as e:
            logger.warning(f"Usage count failed for {actor.uid}/{feature}: {e}")
            usage[feature] = None

    return {"subscription": plan, "usage": usage, "limits": get_limits(plan)}
