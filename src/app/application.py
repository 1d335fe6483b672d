import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dishka import AsyncContainer
from dishka.integrations.fastapi import setup_dishka
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from app.api import register_routers
from app.api.modules.auth import models as auth_models  # noqa: F401
from app.api.modules.auth.exceptions import AuthServiceError, auth_service_error_handler
from app.database.base import Base
from app.ioc import get_async_container
from app.services.logging import setup_logging
from app.settings import Config, get_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    container: AsyncContainer = app.state.dishka_container
    engine = await container.get(AsyncEngine)

    logger.info("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Starting application...")
    yield
    logger.info("Shutting down application...")
    await container.close()


def create_app(
    config: Config,
    container: AsyncContainer | None = None,
) -> FastAPI:
    """Build the FastAPI application around an already resolved config."""
    app = FastAPI(
        title=config.api.title,
        version=config.api.version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_hosts,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AuthServiceError, auth_service_error_handler)

    api_router = APIRouter()
    register_routers(api_router)
    app.include_router(api_router)

    setup_dishka(container or get_async_container(config), app)

    return app


def get_production_app() -> FastAPI:
    """Get the FastAPI application instance."""
    config = get_config()
    setup_logging(config.env)
    return create_app(config)
