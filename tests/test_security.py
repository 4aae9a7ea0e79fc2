"""
Tests for bearer token encoding and validation.
"""

from datetime import timedelta

import pytest
from jose import jwt

from car_stock.core.config import get_settings
from car_stock.core.security import TokenError, create_access_token, decode_access_token


class TestAccessTokens:
    def test_round_trip_keeps_subject(self) -> None:
        token = create_access_token({"sub": "4b0e5a9c-1111-4c1c-9a52-2f0f1f0f0f0f"})

        payload = decode_access_token(token)

        assert payload["sub"] == "4b0e5a9c-1111-4c1c-9a52-2f0f1f0f0f0f"
        assert payload["type"] == "access"
        assert payload["exp"] > payload["iat"]

    def test_empty_token(self) -> None:
        with pytest.raises(TokenError) as exc_info:
            decode_access_token("")

        assert exc_info.value.code == "EMPTY_TOKEN"

    def test_expired_token(self) -> None:
        token = create_access_token({"sub": "someone"}, expires_delta=timedelta(seconds=-5))

        with pytest.raises(TokenError) as exc_info:
            decode_access_token(token)

        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_garbage_token(self) -> None:
        with pytest.raises(TokenError) as exc_info:
            decode_access_token("not.a.token")

        assert exc_info.value.code == "TOKEN_INVALID"

    def test_wrong_signature(self) -> None:
        settings = get_settings()
        token = jwt.encode({"sub": "someone"}, "another-secret-key-of-enough-length", algorithm=settings.jwt_algorithm)

        with pytest.raises(TokenError) as exc_info:
            decode_access_token(token)

        assert exc_info.value.code == "TOKEN_INVALID"

    def test_refresh_token_rejected(self) -> None:
        settings = get_settings()
        token = jwt.encode(
            {"sub": "someone", "type": "refresh"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            decode_access_token(token)

        assert exc_info.value.code == "TOKEN_WRONG_TYPE"

    def test_missing_subject(self) -> None:
        token = create_access_token({"role": "ADMIN"})

        with pytest.raises(TokenError) as exc_info:
            decode_access_token(token)

        assert exc_info.value.code == "TOKEN_NO_SUBJECT"
