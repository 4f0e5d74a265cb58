import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.api_v1.api import api_router
from core.config import settings
from core.db import create_db_engine
from log import setup_logging_to_console, setup_logging_to_file

logger = logging.getLogger("yap_rewards_api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging_to_console()
    setup_logging_to_file(app="yap_rewards_api", level=logging.INFO)
    if getattr(app.state, "engine", None) is None:
        app.state.engine = create_db_engine()
    logger.info("YAP rewards API started (%s)", settings.ENVIRONMENT_NAME)
    yield
    app.state.engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)
