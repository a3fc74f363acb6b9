"""Database initialization script."""
import logging

from sqlmodel import Session, select

from baas.core.security import get_password_hash
from baas.db.session import create_db_and_tables, engine
from baas.models.project import Project
from baas.models.user import User
from baas.services.key_store import KeyStore

logger = logging.getLogger(__name__)

DEMO_EMAIL = "owner@baas.dev"
DEMO_PASSWORD = "owner123!"


def init_database():
    """Initialize database with tables and a demo owner, project and key."""
    # Plain handler: the one-time secret below must reach the console unmasked
    logging.basicConfig(level=logging.INFO)

    logger.info("Creating database tables...")
    create_db_and_tables()

    with Session(engine) as session:
        existing_user = session.exec(select(User).where(User.email == DEMO_EMAIL)).first()
        if existing_user:
            logger.info("Demo owner already exists")
            return

        logger.info("Creating demo owner...")
        owner = User(
            email=DEMO_EMAIL,
            hashed_password=get_password_hash(DEMO_PASSWORD),
            is_active=True
        )
        session.add(owner)
        session.commit()
        session.refresh(owner)

        project = Project(name="Demo Project", description="Seeded by init_db", owner_id=owner.id)
        session.add(project)
        session.commit()
        session.refresh(project)

        logger.info("Creating initial API key...")
        record, secret = KeyStore(session).create(
            project_id=project.id,
            capabilities=["auth", "database", "storage"],
            name="Demo Key",
        )

        logger.info("Database initialization complete!")
        logger.info(f"Owner email: {DEMO_EMAIL}")
        logger.info(f"Owner password: {DEMO_PASSWORD}")
        logger.info(f"Project ID: {project.id}")
        logger.info(f"API key ({record.id}): {secret}")


if __name__ == "__main__":
    init_database()
