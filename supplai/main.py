"""
FastAPI application entry point.

Configures middleware, routes, and exception handlers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from supplai.core.config import settings
from supplai.core.exceptions import RedirectRequired, redirect_exception_handler
from supplai.core.middleware import SessionGuardMiddleware

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("supplai")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("Starting Supplai API in %s mode", settings.ENVIRONMENT)
    yield
    logger.info("Shutting down Supplai API")


app = FastAPI(
    title="Supplai API",
    description="Multi-tenant supplier ordering",
    version="1.0.0",
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    openapi_url="/api/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(SessionGuardMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

app.add_exception_handler(RedirectRequired, redirect_exception_handler)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    if settings.DEBUG:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": {
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": str(exc),
                    "type": type(exc).__name__,
                }
            },
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "version": "1.0.0",
    }


from supplai.routers import (  # noqa: E402
    auth,
    auth_pages,
    cron,
    history,
    manifest,
    orders,
    organizations,
    pages,
    suppliers,
    websocket,
)

app.include_router(auth.router, prefix="/api/v1/auth", tags=["Auth"])
app.include_router(organizations.router, prefix="/api/v1/organizations", tags=["Organizations"])
app.include_router(suppliers.router, prefix="/api/v1", tags=["Suppliers"])
app.include_router(orders.router, prefix="/api/v1", tags=["Orders"])
app.include_router(history.router, prefix="/api/v1", tags=["History"])
app.include_router(websocket.router, prefix="/api/v1", tags=["WebSocket"])
app.include_router(cron.router, prefix="/api/cron", tags=["Cron"])
app.include_router(manifest.router, tags=["Manifest"])
app.include_router(auth_pages.router, tags=["Pages"])
# /{slug} catch-all pages go last
app.include_router(pages.router, tags=["Pages"])
