"""
Product Registry API Routes

    POST /api/products - Register a product for the caller
    GET  /api/products - List the caller's products, newest first
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from auth.identity import require_actor
from auth.models import Actor
from core.errors import ServiceUnavailable, StoreError
from core.logging import get_logger
from core.models import ProductIn

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["products"])


@router.post("/products", status_code=201)
async def create_product(
    request: Request,
    product: ProductIn,
    actor: Actor = Depends(require_actor),
) -> JSONResponse:
    """
    Example:
        POST /api/products
        {"name": "Ceylon Cinnamon", "description": "Alba grade quills", "sector": "Spices", "price": 12.5}
        Returns: {"id": "abc123", "name": "Ceylon Cinnamon", ...}
    """
    fields: Dict[str, Any] = product.model_dump(exclude={"product_id"}, exclude_none=True)
    try:
        product_id = await request.app.state.services.reports.create_product(actor.uid, fields)
    except StoreError as e:
        logger.error(f"Error creating product for {actor.uid}: {e}")
        raise ServiceUnavailable("Failed to save product", detail=str(e))

    logger.info(f"Product {product_id} registered by {actor.uid}")
    return JSONResponse(status_code=201, content={"id": product_id, **fields})


@router.get("/products")
async def list_products(request: Request, actor: Actor = Depends(require_actor)) -> JSONResponse:
    try:
        products = await request.app.state.services.reports.list_products(actor.uid)
    except StoreError as e:
        logger.error(f"Error listing products for {actor.uid}: {e}")
        raise ServiceUnavailable("Failed to load products", detail=str(e))

    for product in products:
        created = product.get("createdAt")
        if hasattr(created, "isoformat"):
            product["createdAt"] = created.isoformat()
    return JSONResponse({"products": products})
