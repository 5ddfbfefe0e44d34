"""
Authentication module for CeyLog.

Firebase ID-token verification and the ``require_actor`` route dependency.
"""

from .identity import FirebaseTokenVerifier, require_actor, resolve_actor
from .models import Actor, SubscriptionType

__all__ = [
    "Actor",
    "FirebaseTokenVerifier",
    "SubscriptionType",
    "require_actor",
    "resolve_actor",
]
