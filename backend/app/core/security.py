from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
import secrets

from app.core.config import settings
from app.core.exceptions import InvalidTokenError, TokenExpiredError


ACCESS_TOKEN_TYPE = "access"
PASSWORD_RESET_TOKEN_TYPE = "password_reset"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against a bcrypt hash; malformed hashes never match"""
    if not plain_password or not hashed_password:
        return False
    # Bcrypt has a 72 byte limit - truncate password if necessary
    password_bytes = plain_password.encode('utf-8')[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    """Hash password with configurable rounds (BCRYPT_ROUNDS in .env)"""
    password_bytes = password.encode('utf-8')[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def _encode(claims: Dict[str, Any], expires_delta: timedelta, token_type: str) -> str:
    to_encode = claims.copy()
    to_encode.update({
        "exp": datetime.utcnow() + expires_delta,
        "iat": datetime.utcnow(),
        "type": token_type,
    })
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token (7 days unless overridden)"""
    return _encode(
        data,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        ACCESS_TOKEN_TYPE,
    )


def create_user_token(user) -> str:
    """Access token for a User row: sub is the user id, userType its role"""
    return create_access_token({"sub": str(user.id), "userType": user.user_type})


def create_password_reset_token(user_id: str) -> str:
    return _encode(
        {"sub": str(user_id)},
        timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        PASSWORD_RESET_TOKEN_TYPE,
    )


def decode_token(token: str, verify_exp: bool = True) -> Dict[str, Any]:
    """
    Decode a JWT.

    Raises TokenExpiredError when the signature is valid but expired and
    InvalidTokenError for anything else that fails verification.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": verify_exp},
        )
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError()


def generate_otp() -> str:
    """Six-digit numeric one-time code"""
    return str(100000 + secrets.randbelow(900000))


def generate_download_token() -> str:
    """64 hex chars (32 random bytes)"""
    return secrets.token_hex(32)
