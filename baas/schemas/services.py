"""Request bodies for the simulated auth, database and storage APIs."""
from typing import Any, Dict

from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class InsertRequest(BaseModel):
    data: Dict[str, Any]


class UploadRequest(BaseModel):
    filename: str = Field(min_length=1)
    content: str = Field(min_length=1)