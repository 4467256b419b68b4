import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import Engine

from rehapp.api.router import api_router
from rehapp.core.config import settings
from rehapp.core.logging_config import setup_logging
from rehapp.database.session import SessionLocal, engine, init_db, make_session_factory
from rehapp.services.activity_store import SqlActivityLogStore
from rehapp.services.clock import Clock, Scheduler, system_clock, thread_scheduler
from rehapp.services.session_registry import SessionRegistry
from rehapp.services.video_catalog import SqlVideoCatalog
from rehapp.services.walk_session import WalkSessionMachine

logger = logging.getLogger("rehapp")


def create_app(
    bind: Engine | None = None,
    clock: Clock = system_clock,
    scheduler: Scheduler = thread_scheduler,
    seed: bool | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    if configure_logging:
        setup_logging()

    db_engine = bind or engine
    session_factory = SessionLocal if bind is None else make_session_factory(bind)
    store = SqlActivityLogStore(session_factory)
    registry = SessionRegistry(lambda: WalkSessionMachine(store, clock=clock, scheduler=scheduler))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(db_engine, session_factory, seed=seed)
        logger.info("%s started (env=%s)", settings.app_name, settings.env)
        yield
        registry.shutdown()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)

    app.state.session_factory = session_factory
    app.state.store = store
    app.state.catalog = SqlVideoCatalog(session_factory)
    app.state.registry = registry
    app.state.clock = clock

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    def health():
        return {"status": "ok", "active_sessions": len(registry)}

    return app


app = create_app()
