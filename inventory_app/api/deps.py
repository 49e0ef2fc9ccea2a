"""
API Dependencies
Common dependencies for API endpoints
"""

from typing import Optional
from fastapi import Header

from inventory_app.core.config import settings
from inventory_app.core.database import get_db  # noqa: F401


def get_current_actor(
    x_user: Optional[str] = Header(None, alias="X-User", max_length=50)
) -> str:
    """
    Name of the acting user.

    Authentication happens upstream; the caller identifies itself in the
    X-User header and anonymous requests act as the default actor.
    """
    if x_user and x_user.strip():
        return x_user.strip()
    return settings.DEFAULT_ACTOR
