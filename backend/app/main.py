"""FastAPI entrypoint for the Threadbaire entry service."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.dependencies import close_entry_store, get_settings
from .api.errors import install_error_handlers
from .api.routers import entries, health, init, rundown
from .infra.logging import configure_logging


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    yield
    close_entry_store()


def create_app() -> FastAPI:
    """Instantiate the FastAPI app and register routers."""

    settings = get_settings()
    configure_logging(settings.logging.level, json_lines=settings.logging.json)
    application = FastAPI(title="Threadbaire API", version="0.1.0", lifespan=_lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(application)
    for router in (
        health.router,
        rundown.router,
        init.router,
        entries.router,
    ):
        application.include_router(router)
    return application


app = create_app()
