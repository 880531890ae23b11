import logging
from dotenv import load_dotenv

# Settings read the environment at import time
load_dotenv(override=True)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from workbooks.core import settings
from workbooks.api import api_router
from workbooks.storage import get_storage, DynamoDBRecordStore

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager."""
    logger.info("Starting %s...", settings.APP_TITLE)

    store = get_storage()
    if isinstance(store, DynamoDBRecordStore):
        logger.info("DynamoDB enabled: %s / %s", settings.WORKBOOKS_TABLE_NAME, settings.ACCESS_GRANTS_TABLE_NAME)
        if settings.DYNAMODB_ENDPOINT_URL:
            # DynamoDB Local has no infrastructure stack, create tables on boot
            await store.create_tables()
    else:
        logger.info("Using file-based storage (local dev): %s", settings.WORKBOOK_STORAGE_DIR)

    if settings.MAINTAIN_ACCESS_GRANTS:
        logger.info("Access grants maintained; shared lookups use %s", settings.ACCESS_GRANTS_USER_INDEX)
    else:
        logger.info("Access grants disabled; shared lookups scan %s", settings.WORKBOOKS_TABLE_NAME)

    yield
    logger.info("Shutting down...")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    configure_logging()
    app = FastAPI(
        title=settings.APP_TITLE,
        lifespan=lifespan,
        debug=settings.DEBUG
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router with /api/v1 prefix
    app.include_router(api_router, prefix="/api/v1")

    # Health check endpoint
    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
