from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi_pagination import add_pagination

from packtrack.config import get_settings
from packtrack.infra.logging_config import LoggingConfig, get_logger
from packtrack.routers import (
    content_items_router,
    metadata_router,
    traffic_router,
    versions_router,
)

logger = get_logger("main")


def create_app(testing: bool = False) -> FastAPI:
    settings = get_settings()
    LoggingConfig(settings.log_level)

    app = FastAPI(title="Packtrack API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(content_items_router.router)
    app.include_router(versions_router.router)
    app.include_router(traffic_router.router)
    app.include_router(metadata_router.router)

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "ok"}

    add_pagination(app)

    if not testing:
        logger.info("Starting %s (%s)", settings.app_name, settings.environment)
    return app


app = create_app()
