# src/simillimum/api/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI

from simillimum import __version__
from simillimum.api.reference import router as reference_router
from simillimum.api.suggestions import router as suggestions_router
from simillimum.config import get_settings
from simillimum.core.error_handlers import register_error_handlers
from simillimum.core.health import router as health_router
from simillimum.core.logging import setup_json_logging
from simillimum.core.middleware import RequestIDMiddleware

log = logging.getLogger("simillimum.api")

ENGINE_VERSION = "classical_rule_engine_v1"


def create_app() -> FastAPI:
    settings = get_settings()
    setup_json_logging(settings.LOG_LEVEL)

    app = FastAPI(title=settings.APP_NAME, version=__version__)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(suggestions_router)
    app.include_router(reference_router)

    @app.get("/version")
    async def version():
        return {"api_version": __version__, "engine_version": ENGINE_VERSION}

    log.info("app ready env=%s", settings.ENV)
    return app


app = create_app()
