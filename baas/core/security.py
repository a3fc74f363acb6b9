import hashlib
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt
from fastapi import HTTPException, status

from baas.core.config import get_settings

ENV_TAGS = ("live", "test")
MASK_PLACEHOLDER = "***"

_API_KEY_PATTERN = re.compile(r"^(live|test)_[a-f0-9]{64}$")


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token for a dashboard user."""
    settings = get_settings()
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> Dict[str, Any]:
    """Verify and decode a JWT token."""
    settings = get_settings()

    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def generate_api_key(env_tag: str = "live", byte_length: int = 32) -> str:
    """
    Generate an API key secret of the form ``<env_tag>_<hex>``.

    Args:
        env_tag: ``live`` or ``test``
        byte_length: Number of random bytes drawn from the OS CSPRNG

    Returns:
        The generated secret
    """
    if env_tag not in ENV_TAGS:
        raise ValueError(f"env_tag must be one of {ENV_TAGS}, got {env_tag!r}")
    if byte_length < 1:
        raise ValueError("byte_length must be positive")
    return f"{env_tag}_{secrets.token_hex(byte_length)}"


def is_valid_api_key_format(api_key: Any) -> bool:
    """True iff ``api_key`` is ``live_`` or ``test_`` followed by 64 lowercase hex characters."""
    if not api_key or not isinstance(api_key, str):
        return False
    return _API_KEY_PATTERN.match(api_key) is not None


def get_api_key_env_tag(api_key: Any) -> Optional[str]:
    """Return ``live``/``test`` for a well-formed secret, else None."""
    if not is_valid_api_key_format(api_key):
        return None
    return api_key.split("_", 1)[0]


def mask_api_key(api_key: Any) -> str:
    """Display form of a secret: first 8 and last 4 characters."""
    if not api_key or not isinstance(api_key, str) or len(api_key) < 12:
        return MASK_PLACEHOLDER
    return api_key[:8] + "..." + api_key[-4:]


def hash_api_key(api_key: str) -> str:
    """Hash an API key for storage and lookup."""
    return hashlib.sha256(api_key.encode()).hexdigest()

