"""
JWT handling for the TutorBook API.

Two kinds of bearer token are issued with the same secret:

- user tokens: ``sub`` is the user id
- service tokens: ``sub`` is the client id, ``token_type`` is ``service`` and
  ``scope`` is a space-separated list (payment webhooks, scheduled jobs)
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, Sequence, cast

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt import PyJWTError

from .core.config import settings

logger = logging.getLogger(__name__)

SERVICE_TOKEN_TYPE = "service"

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def _secret_value(secret_obj: Any) -> str:
    getter = getattr(secret_obj, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return cast(str, secret_obj)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: The data to encode in the token
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )
    to_encode.update({"exp": expire})

    encoded_jwt = cast(
        str,
        jwt.encode(to_encode, _secret_value(settings.secret_key), algorithm=settings.algorithm),
    )
    logger.debug(f"Created access token for: {data.get('sub')}")
    return encoded_jwt


def create_service_token(
    client_id: str, scopes: Sequence[str], expires_delta: Optional[timedelta] = None
) -> str:
    """Token for a platform service such as the payment webhook relay."""
    return create_access_token(
        {"sub": client_id, "token_type": SERVICE_TOKEN_TYPE, "scope": " ".join(scopes)},
        expires_delta=expires_delta,
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    payload_raw = jwt.decode(
        token,
        _secret_value(settings.secret_key),
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload_raw)


async def get_token_payload(token: Optional[str] = Depends(oauth2_scheme_optional)) -> Dict[str, Any]:
    """
    Dependency returning the verified claims of the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    not_authenticated = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    invalid_credentials = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise not_authenticated
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise invalid_credentials

    if not isinstance(payload.get("sub"), str):
        logger.warning("Token payload missing 'sub' field")
        raise invalid_credentials
    return payload
