"""Tests for JWT session tokens."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from satoshi_daily.auth.jwt import create_access_token, verify_token
from satoshi_daily.config import get_settings


class TestAccessToken:
    def test_create_and_verify(self):
        token = create_access_token("5f1c6a0e-0000-4000-8000-000000000001", "satoshi@gmx.com")
        payload = verify_token(token, expected_type="access")
        assert payload["sub"] == "5f1c6a0e-0000-4000-8000-000000000001"
        assert payload["email"] == "satoshi@gmx.com"
        assert payload["type"] == "access"

    def test_wrong_type_rejected(self):
        token = create_access_token("p1", "satoshi@gmx.com")
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token, expected_type="refresh")

    def test_expired_rejected(self):
        settings = get_settings()
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "p1", "iat": past, "exp": past + timedelta(minutes=1), "iss": settings.jwt_issuer, "type": "access"},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError, match="expired"):
            verify_token(token)

    def test_foreign_secret_rejected(self):
        token = jwt.encode({"sub": "p1", "type": "access"}, "another-secret-another-secret-000", algorithm="HS256")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token)
