from fastapi import FastAPI

from app.fixpos.api import api_router
from app.fixpos.core.config import settings
from app.fixpos.core.errors import setup_exception_handlers
from app.fixpos.core.logging import configure_logging
from app.fixpos.middleware.observability import ObservabilityMiddleware
from app.fixpos.middleware.trace import TraceIdMiddleware


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME)
    app.add_middleware(TraceIdMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    setup_exception_handlers(app)
    app.include_router(api_router)
    return app


app = create_app()
