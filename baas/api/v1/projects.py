import logging

from fastapi import APIRouter, Depends, status
from sqlmodel import Session, select

from baas.api.deps import get_current_user, get_owned_project
from baas.db.session import get_session
from baas.models.project import Project
from baas.models.user import User
from baas.schemas.common import MessageResponse
from baas.schemas.project import ProjectCreate, ProjectListResponse, ProjectResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Create a project owned by the current user."""
    project = Project(
        name=project_data.name,
        description=project_data.description,
        owner_id=current_user.id,
    )
    session.add(project)
    session.commit()
    session.refresh(project)

    logger.info(f"Project {project.id} created by {current_user.email}")

    return ProjectResponse.model_validate(project)


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """List the current user's projects, newest first."""
    projects = session.exec(
        select(Project)
        .where(Project.owner_id == current_user.id)
        .order_by(Project.created_at.desc())
    ).all()

    return ProjectListResponse(projects=[ProjectResponse.model_validate(p) for p in projects])


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    return ProjectResponse.model_validate(get_owned_project(session, project_id, current_user))


@router.delete("/{project_id}", response_model=MessageResponse)
async def delete_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Delete a project. Its keys stay behind and are rejected as orphaned."""
    project = get_owned_project(session, project_id, current_user)
    session.delete(project)
    session.commit()

    logger.info(f"Project {project_id} deleted by {current_user.email}")

    return MessageResponse(message="Project deleted successfully")
