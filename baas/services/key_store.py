"""Durable API key records and request-time key resolution."""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from baas.core.config import get_settings
from baas.core.exceptions import (
    DuplicateSecret,
    InvalidKey,
    MalformedIdentifier,
    MissingKey,
    OrphanedKey,
)
from baas.core.logging import get_logger
from baas.core.security import (
    generate_api_key,
    hash_api_key,
    is_valid_api_key_format,
    mask_api_key,
)
from baas.db.session import engine
from baas.models.api_key import APIKey, DEFAULT_CAPABILITIES, normalize_capabilities
from baas.models.base import is_valid_object_id, utcnow
from baas.models.project import Project

logger = get_logger(__name__)

GENERATION_ATTEMPTS = 2


@dataclass(frozen=True)
class KeyContext:
    """Identity resolved from an inbound API key.

    ``verified`` is False for the format-only check, which never consults the
    store; such a context carries no key or project record.
    """
    project_id: str
    key: Optional[APIKey] = None
    project: Optional[Project] = None
    verified: bool = True

    @property
    def key_id(self) -> Optional[str]:
        return self.key.id if self.key else None

    @property
    def capabilities(self) -> List[str]:
        return list(self.key.capabilities or []) if self.key else []


class KeyStore:
    """CRUD and lookup over ``APIKey`` records."""

    def __init__(self, session: Session):
        self.session = session
        self.settings = get_settings()

    def create(
        self,
        project_id: str,
        capabilities: Optional[Iterable] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
        env_tag: Optional[str] = None,
    ) -> Tuple[APIKey, str]:
        """
        Issue a new key for a project.

        Args:
            project_id: Owning project
            capabilities: Granted capabilities; defaults to auth + database
            name: Display name
            description: Free text
            env_tag: ``live`` or ``test``; defaults to the configured env

        Returns:
            The persisted record and the full secret, which is not recoverable later

        Raises:
            DuplicateSecret: If generated secrets collided twice in a row
        """
        env_tag = env_tag or self.settings.API_KEY_DEFAULT_ENV
        granted = (
            normalize_capabilities(capabilities)
            if capabilities is not None
            else list(DEFAULT_CAPABILITIES)
        )

        for attempt in range(1, GENERATION_ATTEMPTS + 1):
            secret = generate_api_key(env_tag, self.settings.API_KEY_BYTES)
            record = APIKey(
                project_id=project_id,
                hashed_key=hash_api_key(secret),
                masked_key=mask_api_key(secret),
                env_tag=env_tag,
                name=name or "Production Key",
                description=description or "",
                capabilities=granted,
                is_active=True,
                last_used_at=None,
            )
            self.session.add(record)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                logger.warning(f"Generated API key collided with an existing key (attempt {attempt})")
                continue

            self.session.refresh(record)
            logger.info(f"API key {record.id} ({record.masked_key}) issued for project {project_id}")
            return record, secret

        raise DuplicateSecret()

    def get(self, key_id: str) -> Optional[APIKey]:
        return self.session.get(APIKey, key_id)

    def find_by_secret(self, secret: str) -> Optional[APIKey]:
        """Exact-match lookup through the unique digest index."""
        if not is_valid_api_key_format(secret):
            return None
        return self.session.exec(
            select(APIKey).where(APIKey.hashed_key == hash_api_key(secret))
        ).first()

    def list_by_project(self, project_id: str) -> List[APIKey]:
        return list(self.session.exec(
            select(APIKey)
            .where(APIKey.project_id == project_id)
            .order_by(APIKey.created_at.desc())
        ).all())

    def update(
        self,
        record: APIKey,
        name: Optional[str] = None,
        description: Optional[str] = None,
        capabilities: Optional[Iterable] = None,
        active: Optional[bool] = None,
    ) -> APIKey:
        if name is not None:
            record.name = name
        if description is not None:
            record.description = description
        if capabilities is not None:
            record.capabilities = normalize_capabilities(capabilities)
        if active is not None:
            record.is_active = active
        record.touch()

        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        logger.info(f"API key {record.id} updated (active={record.is_active}, capabilities={record.capabilities})")
        return record

    def delete(self, record: APIKey) -> None:
        """Hard-delete the key; its usage records are left to expire on their own."""
        self.session.delete(record)
        self.session.commit()
        logger.info(f"API key {record.id} deleted")

    def authenticate(self, secret: Optional[str]) -> KeyContext:
        """
        Resolve a presented secret to a live key and its project.

        Raises:
            MissingKey: No secret presented
            InvalidKey: Unknown, malformed or inactive key
            OrphanedKey: The key's project no longer exists
        """
        if not secret:
            raise MissingKey(f"Please provide {self.settings.API_KEY_HEADER} header")

        record = self.find_by_secret(secret)
        if record is None:
            raise InvalidKey("The provided API key is not valid")
        if not record.is_active:
            raise InvalidKey("The provided API key is inactive")

        project = self.session.get(Project, record.project_id)
        if project is None:
            raise OrphanedKey()

        return KeyContext(project_id=project.id, key=record, project=project)

    def check_format(self, secret: Optional[str], project_id: Optional[str]) -> KeyContext:
        """Header-shape check only; the key is not confirmed to exist or be active."""
        if not secret:
            raise MissingKey(f"Please provide {self.settings.API_KEY_HEADER} header")
        if not project_id:
            raise MissingKey(f"Please provide {self.settings.PROJECT_ID_HEADER} header")
        if not is_valid_api_key_format(secret):
            raise InvalidKey("API key must start with live_ or test_ followed by 64 hex characters")
        if not is_valid_object_id(project_id):
            raise MalformedIdentifier("Project ID must be a 24-character hex identifier")
        return KeyContext(project_id=project_id, verified=False)


def touch_last_used(key_id: str) -> None:
    """Best-effort ``last_used_at`` bump, run after the response is sent."""
    try:
        with Session(engine) as session:
            session.execute(
                update(APIKey)
                .where(APIKey.id == key_id)
                .values(last_used_at=utcnow())
            )
            session.commit()
    except Exception as e:
        logger.error(f"Failed to update last_used_at for API key {key_id}: {e}")
