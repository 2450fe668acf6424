# backend/app/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

Routes receive a principal rather than a user row: a ``UserPrincipal`` for
students, tutors and admins, or a ``ServicePrincipal`` for platform services.
The role always comes from the database, never from the token.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...auth import SERVICE_TOKEN_TYPE, get_token_payload
from ...core.enums import RoleName
from ...models.user import User
from ...principal import ServicePrincipal, UserPrincipal
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def _lookup_user(db: Session, user_id: str) -> Optional[User]:
    return RepositoryFactory.create_user_repository(db).get_by_id(user_id, load_relationships=False)


async def get_current_principal(
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: Session = Depends(get_db),
) -> UserPrincipal:
    """
    Resolve a user token to a ``UserPrincipal``.

    Raises:
        HTTPException: 401 for service tokens or unknown users
    """
    if payload.get("token_type") == SERVICE_TOKEN_TYPE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User credentials required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = payload["sub"]
    user = await asyncio.to_thread(_lookup_user, db, user_id)
    if user is None:
        logger.warning(f"Token refers to unknown user {user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return UserPrincipal(user_id=user.id, role=RoleName(user.role))


def require_service_principal(scope: str) -> Callable[..., Any]:
    """
    Dependency factory for service-only endpoints.

    Usage:
        principal: ServicePrincipal = Depends(require_service_principal(SCOPE_PAYMENT_WEBHOOK))
    """

    async def dependency(payload: Dict[str, Any] = Depends(get_token_payload)) -> ServicePrincipal:
        scopes = tuple((payload.get("scope") or "").split())
        if payload.get("token_type") != SERVICE_TOKEN_TYPE or scope not in scopes:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Service credentials with the required scope are needed",
            )
        return ServicePrincipal(client_id=payload["sub"], scopes=scopes)

    return dependency
