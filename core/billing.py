"""
CeyLog Plans and Pricing

Two plans exist. Free accounts get a small lifetime allowance per AI report
family; Pro is a one-off £19.00 payment that removes the allowance.

Example usage:
    limits = get_limits('free')
    print(f"Market analyses allowed: {limits['market']}")
"""

from typing import Any, Dict, Optional

from auth.models import SubscriptionType
from core.models import ReportKind

PRO_PRICE_PENCE = 1900
PRO_CURRENCY = "gbp"
PRO_PRODUCT_NAME = "CeyLog Pro Membership"
PRO_PRODUCT_DESCRIPTION = "One-time payment for Pro features"
PRO_PAYMENT_TYPE = "pro_membership"

# Feature key -> report family counted against it
FEATURES: Dict[str, ReportKind] = {
    "market": ReportKind.MARKET,
    "matchmaking": ReportKind.MATCHMAKING,
    "visibility": ReportKind.VISIBILITY,
}

# None means unlimited
PLANS: Dict[str, Dict[str, Any]] = {
    SubscriptionType.FREE.value: {
        "name": "Free",
        "price_pence": 0,
        "limits": {"market": 3, "matchmaking": 2, "visibility": 2},
    },
    SubscriptionType.PRO.value: {
        "name": "Pro",
        "price_pence": PRO_PRICE_PENCE,
        "limits": {"market": None, "matchmaking": None, "visibility": None},
    },
}


def normalize_plan(plan_name: Optional[str]) -> str:
    """Map a stored subscription value to a known plan, defaulting to free."""
    if plan_name and plan_name.lower() in PLANS:
        return plan_name.lower()
    return SubscriptionType.FREE.value


def get_plan(plan_name: Optional[str]) -> Dict[str, Any]:
    return PLANS[normalize_plan(plan_name)]


def get_limits(plan_name: Optional[str]) -> Dict[str, Optional[int]]:
    """
    Per-feature allowance for a plan.

    Example:
        >>> get_limits('pro')['market'] is None
        True
    """
    return dict(get_plan(plan_name)["limits"])


def feature_for(kind: ReportKind) -> str:
    for feature, report_kind in FEATURES.items():
        if report_kind is kind:
            return feature
    raise KeyError(kind)
