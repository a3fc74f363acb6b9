from sqlmodel import Field

from baas.models.base import BaseModel


class Project(BaseModel, table=True):
    """Project that API keys are issued against."""
    name: str = Field(max_length=200)
    description: str = Field(default="", max_length=1000)
    owner_id: str = Field(foreign_key="user.id", index=True, max_length=24)
