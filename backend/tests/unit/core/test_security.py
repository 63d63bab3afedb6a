"""
Unit Tests for Security Module
Tests for: password hashing, JWT tokens, OTP and download tokens
"""
import pytest
from datetime import timedelta
from types import SimpleNamespace
from jose import jwt

from app.core.config import settings
from app.core.exceptions import TokenExpiredError, InvalidTokenError
from app.core.security import (
    verify_password,
    get_password_hash,
    create_access_token,
    create_user_token,
    create_password_reset_token,
    decode_token,
    generate_otp,
    generate_download_token,
    ACCESS_TOKEN_TYPE,
    PASSWORD_RESET_TOKEN_TYPE,
)
from app.models.user import UserType


class TestPasswordHashing:
    """Test password hashing functions"""

    def test_hash_is_not_plaintext(self):
        hashed = get_password_hash("testpassword123")

        assert hashed != "testpassword123"
        assert hashed.startswith("$2")

    def test_hash_different_each_time(self):
        """Bcrypt generates different salts"""
        assert get_password_hash("testpassword123") != get_password_hash("testpassword123")

    def test_verify_password_correct(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("testpassword123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = get_password_hash("testpassword123")

        assert verify_password("wrongpassword", hashed) is False

    def test_verify_password_against_garbage_hash(self):
        assert verify_password("testpassword123", "not-a-bcrypt-hash") is False


class TestJWTTokens:
    """Test JWT token creation and decoding"""

    def test_user_token_claims(self):
        user = SimpleNamespace(id="user-1", user_type=UserType.ADMIN)

        payload = decode_token(create_user_token(user))

        assert payload["sub"] == "user-1"
        assert payload["userType"] == "admin"
        assert payload["type"] == ACCESS_TOKEN_TYPE
        assert "exp" in payload

    def test_access_token_default_expiry_is_seven_days(self):
        payload = decode_token(create_access_token({"sub": "user-1"}))

        lifetime = payload["exp"] - payload["iat"]
        assert abs(lifetime - settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60) <= 1

    def test_password_reset_token_type(self):
        payload = decode_token(create_password_reset_token("user-1"))

        assert payload["sub"] == "user-1"
        assert payload["type"] == PASSWORD_RESET_TOKEN_TYPE

    def test_expired_token_raises(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(minutes=-5))

        with pytest.raises(TokenExpiredError):
            decode_token(token)

    def test_expired_token_accepted_without_exp_check(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(minutes=-5))

        payload = decode_token(token, verify_exp=False)

        assert payload["sub"] == "user-1"

    def test_malformed_token_raises(self):
        with pytest.raises(InvalidTokenError):
            decode_token("not.a.jwt")

    def test_wrong_secret_raises(self):
        token = jwt.encode({"sub": "user-1"}, "some-other-secret", algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(InvalidTokenError):
            decode_token(token)


class TestRandomTokens:

    def test_otp_is_six_digits(self):
        for _ in range(50):
            otp = generate_otp()
            assert len(otp) == 6
            assert otp.isdigit()
            assert otp[0] != "0"

    def test_download_token_is_64_hex(self):
        token = generate_download_token()

        assert len(token) == 64
        int(token, 16)

    def test_download_tokens_unique(self):
        assert generate_download_token() != generate_download_token()
