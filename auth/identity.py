"""
Bearer-token identity resolution.

Tokens are Firebase ID tokens minted by the web client. Verification is
delegated to Firebase Admin; any failure, whether a bad token or an
unreachable Firebase, surfaces to the caller as the same 401.

Example usage:
    @router.get("/api/products")
    async def list_products(actor: Actor = Depends(require_actor)):
        ...
"""

from typing import Any, Dict, Optional

from fastapi import Request
from firebase_admin import auth as firebase_auth
from starlette.concurrency import run_in_threadpool

from auth.models import Actor
from core.errors import AuthFailure
from core.logging import get_logger
from core.security import extract_bearer_token

logger = get_logger(__name__)


class FirebaseTokenVerifier:
    """Verify Firebase ID tokens against a specific firebase_admin app."""

    def __init__(self, app: Optional[Any] = None, check_revoked: bool = False):
        self.app = app
        self.check_revoked = check_revoked

    async def verify(self, token: str) -> Actor:
        """
        Verify ``token`` and return the actor it identifies.

        Raises:
            AuthFailure: the token is invalid, expired, revoked, or Firebase
                could not be reached
        """
        try:
            claims: Dict[str, Any] = await run_in_threadpool(
                firebase_auth.verify_id_token, token, self.app, self.check_revoked
            )
        except Exception as e:
            logger.warning(f"ID token verification failed: {type(e).__name__}: {e}")
            raise AuthFailure(detail=str(e))

        uid = claims.get("uid") or claims.get("sub")
        if not uid:
            raise AuthFailure(detail="token carries no uid")
        return Actor(uid=uid, email=claims.get("email"))


async def resolve_actor(authorization: Optional[str], verifier: Any) -> Actor:
    """Extract the bearer token from a header value and verify it."""
    token = extract_bearer_token(authorization)
    return await verifier.verify(token)


async def require_actor(request: Request) -> Actor:
    """
    FastAPI dependency returning the verified caller.

    Uses the verifier held on ``app.state.services``.
    """
    services = request.app.state.services
    actor = await resolve_actor(request.headers.get("authorization"), services.token_verifier)
    request.state.actor = actor
    return actor
