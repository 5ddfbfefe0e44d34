"""
AI Generation API Routes

    POST /api/generate-market-analysis     - Sectioned market analysis
    POST /api/generate-buyer-matches       - Prospective UK buyers
    POST /api/generate-visibility-content  - SEO, LinkedIn, eBay and email copy

Each route requires a bearer token, checks the caller's plan allowance, is
throttled per client IP and saves the generated report so it counts toward
the allowance.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request

from auth.identity import require_actor
from auth.models import Actor
from core.config import Settings
from core.errors import QuotaExceeded
from core.logging import get_logger
from core.models import ProductIn, ReportKind
from core.rate_limit import ip_rate_limit
from middleware.subscription import check_generation_allowance

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["ai"])

# Decorators bind at import time, so the throttle reads the environment here.
_import_settings = Settings.from_env()
rate_limited = ip_rate_limit(
    _import_settings.ip_rate_limit_per_min,
    disabled=_import_settings.disable_ip_rate_limit,
)


async def _ensure_allowance(request: Request, actor: Actor, kind: ReportKind) -> None:
    services = request.app.state.services
    allowed, error_data = await check_generation_allowance(actor, kind, services.users, services.reports)
    if not allowed:
        raise QuotaExceeded(error_data["error"], payload=error_data)


async def _save(request: Request, kind: ReportKind, actor: Actor, product: ProductIn,
                content: Dict[str, Any]) -> None:
    # Saved reports are the usage count; a failed save is logged, not surfaced.
    try:
        await request.app.state.services.reports.save_report(kind, actor.uid, product.product_id, content)
    except Exception as e:
        logger.error(f"Failed to save {kind.value} for {actor.uid}: {e}")


@router.post("/generate-market-analysis")
@rate_limited
async def generate_market_analysis(
    request: Request,
    product: ProductIn,
    actor: Actor = Depends(require_actor),
) -> Dict[str, str]:
    """
    Example:
        POST /api/generate-market-analysis
        {"name": "Ceylon Cinnamon", "description": "Alba grade quills", "sector": "Spices"}
        Returns: {"marketsize": "...", "growthtrends": "...", ...}
    """
    await _ensure_allowance(request, actor, ReportKind.MARKET)
    sections = await request.app.state.services.require_advisor().market_analysis(product)
    await _save(request, ReportKind.MARKET, actor, product, {"analysis": sections})
    logger.info(f"Market analysis generated for {actor.uid}", extra={"product": product.name})
    return sections


@router.post("/generate-buyer-matches")
@rate_limited
async def generate_buyer_matches(
    request: Request,
    product: ProductIn,
    actor: Actor = Depends(require_actor),
) -> List[Dict[str, Any]]:
    """
    Example:
        POST /api/generate-buyer-matches
        {"name": "Ceylon Cinnamon", "description": "Alba grade quills", "sector": "Spices"}
        Returns: [{"company": "...", "website": "...", "department": "...", "contacts": [...]}]
    """
    await _ensure_allowance(request, actor, ReportKind.MATCHMAKING)
    matches = await request.app.state.services.require_advisor().buyer_matches(product)
    await _save(request, ReportKind.MATCHMAKING, actor, product, {"matches": matches})
    logger.info(f"{len(matches)} buyer matches generated for {actor.uid}")
    return matches


@router.post("/generate-visibility-content")
@rate_limited
async def generate_visibility_content(
    request: Request,
    product: ProductIn,
    actor: Actor = Depends(require_actor),
) -> Dict[str, str]:
    await _ensure_allowance(request, actor, ReportKind.VISIBILITY)
    content = await request.app.state.services.require_advisor().visibility_content(product)
    await _save(request, ReportKind.VISIBILITY, actor, product, content)
    return content
