# backend/courtbook/api/dependencies/auth.py
"""
Caller identity dependencies.

Authentication happens upstream; the gateway forwards the caller's id and
role in the ``X-Actor-Id`` and ``X-Actor-Role`` headers.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from ...core.actor import Actor
from ...core.enums import ActorRole

logger = logging.getLogger(__name__)


def get_current_actor(
    x_actor_id: Optional[str] = Header(None, alias="X-Actor-Id"),
    x_actor_role: Optional[str] = Header(None, alias="X-Actor-Role"),
) -> Actor:
    """Resolve the acting user; requests without a role act as a client."""
    role = ActorRole.CLIENT
    if x_actor_role:
        try:
            role = ActorRole(x_actor_role.strip().lower())
        except ValueError:
            logger.warning(f"Rejected unknown actor role: {x_actor_role}")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"message": "Unknown actor role", "code": "INVALID_ACTOR_ROLE"},
            )
    return Actor(id=x_actor_id or None, role=role)


def require_privileged_actor(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Only establishment staff and admins may pass."""
    if not actor.is_privileged:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Staff or admin role required", "code": "FORBIDDEN"},
        )
    return actor
