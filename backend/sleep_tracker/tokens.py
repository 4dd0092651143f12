from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Any, Dict, Union

import jwt
from fastapi.responses import JSONResponse

from .config import LOGOUT_COOKIE_SECONDS, TOKEN_COOKIE
from .models import PublicUser, User
from .responses import send_response
from .timeutils import now_utc

_logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

_DURATION = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


class TokenError(Exception):
    """Base class for bearer token failures."""


class InvalidToken(TokenError):
    """Raised when a token is malformed or its signature does not verify."""


class ExpiredToken(TokenError):
    """Raised when a token is past its expiry."""


def parse_duration(value: Union[str, int, timedelta]) -> timedelta:
    """Parse ``30d``, ``12h``, ``15m``, ``45s`` or a bare number of seconds."""

    if isinstance(value, timedelta):
        return value
    if isinstance(value, int):
        return timedelta(seconds=value)
    match = _DURATION.match(value)
    if match is None:
        raise ValueError(f"Unrecognised duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(seconds=int(amount) * _UNIT_SECONDS[unit])


class TokenService:
    def __init__(
        self,
        secret: str,
        expires_in: Union[str, int, timedelta] = "30d",
        cookie_expire_days: int = 30,
        secure_cookies: bool = False,
    ) -> None:
        if not secret:
            raise ValueError("A token signing secret is required")
        self._secret = secret
        self.expires_in = parse_duration(expires_in)
        self.cookie_expire_days = cookie_expire_days
        self.secure_cookies = secure_cookies

    def issue(self, user_id: str) -> str:
        issued_at = now_utc()
        payload = {"id": user_id, "iat": issued_at, "exp": issued_at + self.expires_in}
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM], options={"require": ["exp", "id"]})
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredToken("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidToken("Invalid token") from exc
        if not isinstance(payload.get("id"), str):
            raise InvalidToken("Invalid token")
        return payload

    def set_cookie(self, response: JSONResponse, token: str) -> None:
        response.set_cookie(
            TOKEN_COOKIE,
            token,
            expires=now_utc() + timedelta(days=self.cookie_expire_days),
            httponly=True,
            secure=self.secure_cookies,
            samesite="lax",
        )

    def clear_cookie(self, response: JSONResponse) -> None:
        response.set_cookie(
            TOKEN_COOKIE,
            "none",
            expires=now_utc() + timedelta(seconds=LOGOUT_COOKIE_SECONDS),
            httponly=True,
            secure=self.secure_cookies,
            samesite="lax",
        )

    def attach_to_response(self, user: User, status_code: int, message: str) -> JSONResponse:
        """Issue a token for ``user`` and answer with it in both the body and a cookie."""

        token = self.issue(user.id)
        public = PublicUser(id=user.id, name=user.name, email=user.email)
        response = send_response(
            status_code,
            True,
            message,
            data={"token": token, "user": public.model_dump(mode="json", by_alias=True)},
        )
        self.set_cookie(response, token)
        _logger.debug("Issued token for user %s", user.id)
        return response
