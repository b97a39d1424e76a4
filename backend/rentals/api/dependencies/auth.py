# backend/rentals/api/dependencies/auth.py
"""
Identity dependencies.

Routes receive the caller as an ``Actor``; missing or invalid tokens become an
AuthenticationRequired problem response carrying the login URL.
"""

from typing import Optional

from fastapi import Depends

from ...auth import actor_from_token, oauth2_scheme_optional
from ...core.config import settings
from ...core.exceptions import AuthenticationRequiredException
from ...principal import Actor


def get_optional_actor(token: Optional[str] = Depends(oauth2_scheme_optional)) -> Optional[Actor]:
    return actor_from_token(token)


def get_current_actor(actor: Optional[Actor] = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise AuthenticationRequiredException(
            "Not authenticated", login_url=settings.login_path
        ).to_http_exception()
    return actor
