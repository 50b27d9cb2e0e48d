"""Bearer token authentication.

Tokens are HS256 JWTs carrying the owner identifier in a ``userId`` claim.
"""

import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing_extensions import Annotated

from tasktracker.core.config import Settings, SettingsDep
from tasktracker.core.exceptions import InvalidTokenError, MissingTokenError

logger = logging.getLogger(__name__)

# Security scheme for JWT tokens
security = HTTPBearer(auto_error=False)


def create_access_token(
    owner_id: str, settings: Settings, expires_in: timedelta = timedelta(hours=1)
) -> str:
    payload = {
        "userId": owner_id,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def authenticate(token: str | None, settings: Settings) -> str:
    """Return the owner identifier for a token, or raise an AuthError."""
    if not token:
        raise MissingTokenError()
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.PyJWTError as e:
        logger.info(f"Rejected token: {e}")
        raise InvalidTokenError() from e

    owner_id = payload.get("userId")
    if not owner_id:
        raise InvalidTokenError()
    return str(owner_id)


def get_current_owner(
    settings: SettingsDep,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    token = credentials.credentials if credentials else None
    return authenticate(token, settings)


CurrentOwner = Annotated[str, Depends(get_current_owner)]
