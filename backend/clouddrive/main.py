import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clouddrive import __version__
from clouddrive.config import CORS_ORIGINS
from clouddrive.db import init_db
from clouddrive.logging_config import setup_logging
from clouddrive.routes.auth_routes import router as auth_router
from clouddrive.routes.item_routes import router as item_router
from clouddrive.routes.share_routes import router as share_router
from clouddrive.routes.users_routes import router as users_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db()
    logger.info("CloudDrive API %s started", __version__)
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="CloudDrive API", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(item_router)
    app.include_router(share_router)

    @app.get("/")
    def root():
        return {"message": "CloudDrive API is running"}

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
