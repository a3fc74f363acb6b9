from datetime import datetime
from typing import List

from pydantic import Field

from baas.schemas.common import CamelModel


class ProjectCreate(CamelModel):
    """Project creation request."""
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)


class ProjectResponse(CamelModel):
    """Project response."""
    id: str
    name: str
    description: str
    owner_id: str
    created_at: datetime
    updated_at: datetime


class ProjectSummary(CamelModel):
    id: str
    name: str


class ProjectListResponse(CamelModel):
    projects: List[ProjectResponse]
