import logging

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from rehapp.core.config import settings
from rehapp.models.base import Base

# Imported for their side effect of registering tables on Base.metadata.
from rehapp.models import assignment, exercise_log, user, video, walk_session  # noqa: F401
from rehapp.services.seed_service import seed_demo_data

logger = logging.getLogger(__name__)


def make_engine(database_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args, future=True)


def make_session_factory(bind: Engine) -> sessionmaker[Session]:
    # expire_on_commit=False: records are converted to schemas after the transaction closes.
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind, future=True)


engine = make_engine(settings.database_url)
SessionLocal = make_session_factory(engine)


def init_db(bind: Engine = engine, session_factory: sessionmaker[Session] = SessionLocal, seed: bool | None = None) -> None:
    # Create tables (MVP). For production, use Alembic migrations.
    Base.metadata.create_all(bind=bind)

    if settings.seed_demo_data if seed is None else seed:
        # Idempotent.
        with session_factory() as db:
            seed_demo_data(db)
        logger.info("Demo data seeded")
