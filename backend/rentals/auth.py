"""
Access token handling.

Tokens are issued by the identity provider and carry the user id in ``sub``
and the role name in ``role``. This service only verifies them;
``create_access_token`` exists for the identity provider's shared secret
setup and for tests.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi.security import OAuth2PasswordBearer
import jwt
from jwt import PyJWTError

from .core.config import settings
from .core.enums import RoleName
from .principal import Actor

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def _secret_value(secret_obj: Any) -> str:
    getter = getattr(secret_obj, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return cast(str, secret_obj)


def create_access_token(
    user_id: str,
    role: RoleName | str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: Subject of the token
        role: Role name carried in the ``role`` claim
        expires_delta: Optional expiration time delta

    Returns:
        str: The encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode: Dict[str, Any] = {
        "sub": user_id,
        "role": RoleName(role).value,
        "exp": expire,
    }
    return jwt.encode(to_encode, _secret_value(settings.secret_key), algorithm=settings.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and validate a token; raises ``PyJWTError`` when it is invalid or expired."""
    return cast(
        Dict[str, Any],
        jwt.decode(
            token,
            _secret_value(settings.secret_key),
            algorithms=[settings.algorithm],
            options={"require": ["sub", "exp"]},
        ),
    )


def actor_from_token(token: Optional[str]) -> Optional[Actor]:
    """
    Resolve a bearer token into an ``Actor``.

    Returns None for a missing, invalid or expired token, or one whose role is
    not recognized.
    """
    if not token:
        return None
    try:
        payload = decode_access_token(token)
    except PyJWTError as exc:
        logger.info("Rejected access token: %s", exc)
        return None

    user_id = payload.get("sub")
    try:
        role = RoleName(payload.get("role", RoleName.USER.value))
    except ValueError:
        logger.warning("Access token for %s carries unknown role %r", user_id, payload.get("role"))
        return None
    if not isinstance(user_id, str) or not user_id:
        return None
    return Actor(user_id=user_id, role=role)
