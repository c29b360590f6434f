from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import uvicorn

from core.config import Settings, get_settings
from core.logging import get_logger, setup_logging
from core.middleware import RequestLoggingMiddleware
from models.database import get_engine, get_session_maker, init_db
from routes import health, users, teams, pull_request
from services.service import Service, build_sql_service


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = None
    if app.state.service is None:
        settings: Settings = app.state.settings
        engine = get_engine(settings)
        await init_db(engine)
        app.state.service = build_sql_service(get_session_maker(engine))
        logger.info("database_ready", env=settings.env)

    yield

    if engine is not None:
        await engine.dispose()


def create_app(service: Optional[Service] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API. Without ``service`` the lifespan wires the database-backed one."""
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(title="PR Reviewer Assignment Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(teams.router)
    app.include_router(pull_request.router)
    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
