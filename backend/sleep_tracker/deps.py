from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from .config import TOKEN_COOKIE
from .errors import Unauthorized
from .models import User
from .services import SleepService, UserService
from .tokens import TokenError, TokenService

_logger = logging.getLogger(__name__)


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_user_service(request: Request) -> UserService:
    return request.app.state.users


def get_sleep_service(request: Request) -> SleepService:
    return request.app.state.sleep


def extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization", "")
    if authorization.startswith("Bearer"):
        parts = authorization.split(" ")
        return parts[1] if len(parts) > 1 and parts[1] else None
    return request.cookies.get(TOKEN_COOKIE) or None


def current_user(request: Request) -> User:
    """Gate for protected routes: resolves the bearer token to an active user."""

    token = extract_token(request)
    if not token:
        raise Unauthorized("Not authorized to access this route")

    try:
        payload = get_tokens(request).verify(token)
    except TokenError as exc:
        _logger.debug("Rejected token: %s", exc)
        raise Unauthorized("Not authorized to access this route") from exc

    user = get_user_service(request).get_user(payload["id"])
    if user is None:
        raise Unauthorized("User not found")
    if not user.is_active:
        raise Unauthorized("User account is deactivated")

    request.state.user_id = user.id
    return user
