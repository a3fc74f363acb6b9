from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from baas.schemas.common import CamelModel


class UserLogin(BaseModel):
    """Dashboard login request."""
    email: EmailStr
    password: str = Field(min_length=6, max_length=255)


class UserRegister(BaseModel):
    """Dashboard registration request."""
    email: EmailStr
    password: str = Field(min_length=6, max_length=255)


class TokenResponse(BaseModel):
    """Token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UserResponse(CamelModel):
    """User response."""
    id: str
    email: str
    is_active: bool
    last_login: Optional[datetime]
    created_at: datetime
