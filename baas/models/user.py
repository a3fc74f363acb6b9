from typing import Optional

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import Field

from baas.models.base import BaseModel


class User(BaseModel, table=True):
    """Dashboard user who owns projects."""
    email: str = Field(unique=True, index=True, max_length=255)
    hashed_password: str = Field(max_length=255)
    is_active: bool = Field(default=True)
    last_login: Optional[NaiveDatetime] = Field(default=None, sa_type=DateTime)
