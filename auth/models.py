"""
Authentication models for CeyLog.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class SubscriptionType(str, Enum):
    """Access tiers stored on ``users/{uid}.subscription``."""
    FREE = "free"
    PRO = "pro"


class Actor(BaseModel):
    """The authenticated identity behind a request, resolved from a Firebase ID token."""
    uid: str
    email: Optional[str] = None
