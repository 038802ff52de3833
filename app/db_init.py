import logging
import time
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.models.database import Base, _normalize_database_url, engine
from app.models import AdminUser  # importing app.models registers every table on Base

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def wait_for_db(retries: int, retry_delay_seconds: int, bind: Engine | None = None) -> None:
    """Block until the database answers ``SELECT 1`` or ``retries`` attempts are used up."""
    target = bind or engine
    last_error = None
    for attempt in range(1, retries + 1):
        try:
            with target.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database reachable (attempt %s/%s)", attempt, retries)
            return
        except OperationalError as exc:
            last_error = exc
            logger.warning("Database unavailable (attempt %s/%s): %s", attempt, retries, exc)
            if attempt < retries:
                time.sleep(retry_delay_seconds)

    raise RuntimeError(
        f"Database is unreachable after {retries} attempts. "
        "Check DATABASE_URL and that the database server accepts connections."
    ) from last_error


def init_db() -> None:
    """SQLite gets ``create_all``; every other backend is migrated to the Alembic head."""
    wait_for_db(
        retries=settings.DB_CONNECT_RETRIES,
        retry_delay_seconds=settings.DB_CONNECT_RETRY_DELAY_SECONDS,
    )
    database_url = settings.DATABASE_URL
    if database_url.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
        logger.info("SQLite schema created from models")
        return
    run_migrations(database_url)


def _alembic_config(database_url: str):
    from alembic.config import Config

    alembic_ini = PROJECT_ROOT / "alembic.ini"
    script_location = PROJECT_ROOT / "alembic"
    if not alembic_ini.exists() or not script_location.is_dir():
        raise RuntimeError(f"Alembic configuration not found under {PROJECT_ROOT} (alembic.ini, alembic/).")
    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(script_location))
    config.set_main_option("sqlalchemy.url", _normalize_database_url(database_url))
    config.attributes["configure_logger"] = False
    return config


def run_migrations(database_url: str | None = None) -> None:
    from alembic import command

    command.upgrade(_alembic_config(database_url or settings.DATABASE_URL), "head")
    logger.info("Database migrated to head")


def seed_admin_user(db_session) -> AdminUser | None:
    """Create the first admin from ADMIN_BOOTSTRAP_EMAIL/PASSWORD when no admin with that email exists."""
    email = settings.ADMIN_BOOTSTRAP_EMAIL
    password = settings.ADMIN_BOOTSTRAP_PASSWORD
    if not email or not password:
        return None
    existing = db_session.query(AdminUser).filter(AdminUser.email == email).first()
    if existing:
        return existing

    from app.api.auth import get_password_hash

    admin = AdminUser(email=email, name="Administrator", hashed_password=get_password_hash(password), is_active=True)
    db_session.add(admin)
    db_session.commit()
    logger.info("Bootstrap admin %s created", email)
    return admin
