"""
Tests for bearer token issuing and verification
"""

from datetime import timedelta

import jwt
import pytest

from sleep_tracker.models import User
from sleep_tracker.tokens import ExpiredToken, InvalidToken, TokenService, parse_duration


@pytest.fixture
def tokens():
    return TokenService("secret", "30d")


class TestParseDuration:
    """Test expiry parsing"""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("30d", timedelta(days=30)),
            ("12h", timedelta(hours=12)),
            ("15m", timedelta(minutes=15)),
            ("45s", timedelta(seconds=45)),
            ("3600", timedelta(hours=1)),
            (60, timedelta(minutes=1)),
        ],
    )
    def test_formats(self, raw, expected):
        assert parse_duration(raw) == expected

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_duration("soon")


class TestTokenService:
    """Test signing and verification"""

    def test_verify_returns_subject(self, tokens):
        payload = tokens.verify(tokens.issue("abc"))

        assert payload["id"] == "abc"
        assert payload["exp"] - payload["iat"] == int(timedelta(days=30).total_seconds())

    def test_tampered_token(self, tokens):
        token = tokens.issue("abc")
        header, body, signature = token.split(".")
        tampered = ".".join([header, body, signature[::-1]])

        with pytest.raises(InvalidToken):
            tokens.verify(tampered)

    def test_other_secret(self, tokens):
        with pytest.raises(InvalidToken):
            tokens.verify(TokenService("other").issue("abc"))

    def test_expired(self):
        service = TokenService("secret", timedelta(seconds=-5))

        with pytest.raises(ExpiredToken):
            service.verify(service.issue("abc"))

    def test_token_without_subject(self, tokens):
        token = jwt.encode({"exp": 4102444800}, "secret", algorithm="HS256")

        with pytest.raises(InvalidToken):
            tokens.verify(token)

    def test_empty_secret_is_refused(self):
        with pytest.raises(ValueError):
            TokenService("")

    def test_attach_to_response(self, tokens):
        user = User(name="A", email="a@x.com", password_hash="$2b$stored-secret-hash")

        response = tokens.attach_to_response(user, 201, "User registered successfully")

        assert response.status_code == 201
        assert b"stored-secret-hash" not in response.body
        assert response.headers["set-cookie"].startswith("token=")

    def test_secure_cookie_in_production(self):
        service = TokenService("secret", secure_cookies=True)
        user = User(name="A", email="a@x.com")

        response = service.attach_to_response(user, 200, "Login successful")

        assert "Secure" in response.headers["set-cookie"]
