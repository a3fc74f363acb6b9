import re
import secrets
from datetime import datetime, timezone
from typing import Any

from pydantic import NaiveDatetime
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

_OBJECT_ID_PATTERN = re.compile(r"^[a-f0-9]{24}$")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every table stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_object_id() -> str:
    """24 lowercase hex characters, the identifier shape used on the wire."""
    return secrets.token_hex(12)


def is_valid_object_id(value: Any) -> bool:
    return isinstance(value, str) and _OBJECT_ID_PATTERN.match(value) is not None


class BaseModel(SQLModel):
    """Shared id and timestamp columns."""
    id: str = Field(default_factory=new_object_id, primary_key=True, max_length=24)
    created_at: NaiveDatetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
    updated_at: NaiveDatetime = Field(default_factory=utcnow, sa_type=DateTime)

    def touch(self) -> None:
        self.updated_at = utcnow()
