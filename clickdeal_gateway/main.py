import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import api
from .config import get_settings
from .notifications import get_notifier
from .shopify_client import get_shopify_client

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.info("ClickDeal API starting up for store %s", settings.SHOPIFY_STORE_DOMAIN or "<unset>")
    if not settings.API_KEY:
        logging.warning("API_KEY is not set; every protected endpoint will answer 401.")
    logging.info(
        "WhatsApp notifications %s.",
        "enabled" if settings.notifications_enabled else "disabled",
    )
    yield
    logging.info("Application shutting down...")
    if get_shopify_client.cache_info().currsize:
        get_shopify_client().close()
    if get_notifier.cache_info().currsize:
        get_notifier().close()


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc)},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="ClickDeal API",
        description="Shopify catalog, stock and draft orders for the ClickDeal assistant.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(api.monitoring_router)
    app.include_router(api.catalog_router)
    app.include_router(api.order_router)

    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
