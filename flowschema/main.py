"""FastAPI application factory."""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Type

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from flowschema.config import settings
from flowschema.exceptions import ConfigurationError, FlowSchemaException, NodeTypeNotFoundError
from flowschema.metrics import REQUEST_COUNT, REQUEST_DURATION
from flowschema.nodes.dependencies import get_schema_registry

logger = structlog.get_logger()

API_ENDPOINTS = {
    "nodes": "/api/v1/nodes",
    "credentials": "/api/v1/credentials",
    "validateNode": "/api/v1/validate/node",
    "validateWorkflow": "/api/v1/validate/workflow",
    "fixWorkflow": "/api/v1/fix/workflow",
    "workflowSchema": "/api/v1/workflow",
    "types": "/api/v1/types",
}

ERROR_STATUS: Dict[Type[FlowSchemaException], int] = {
    NodeTypeNotFoundError: 404,
    ConfigurationError: 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the schema registry before serving requests."""
    logger.info("Starting FlowSchema application", version=settings.app_version)
    stats = get_schema_registry().stats
    logger.info(
        "Schema registry ready",
        nodes=stats.total_nodes,
        versioned=stats.versioned_nodes,
        failed_nodes=stats.failed_nodes,
    )
    try:
        yield
    finally:
        logger.info("Shutting down FlowSchema application")


def _endpoint_label(request: Request) -> str:
    # Route templates keep one series per route instead of one per node name.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _add_middleware(app: FastAPI) -> None:
    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=settings.cors_methods,
            allow_headers=settings.cors_headers,
        )

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next) -> Response:
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        endpoint = _endpoint_label(request)
        REQUEST_COUNT.labels(
            method=request.method, endpoint=endpoint, status=response.status_code
        ).inc()
        REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration)

        logger.info(
            "Request completed",
            method=request.method,
            endpoint=endpoint,
            url=str(request.url),
            status_code=response.status_code,
            duration=duration,
            client_host=request.client.host if request.client else None,
        )
        return response


def _add_exception_handlers(app: FastAPI) -> None:
    from flowschema.validation.routes import InvalidJSONBody, invalid_json_handler

    app.add_exception_handler(InvalidJSONBody, invalid_json_handler)

    @app.exception_handler(FlowSchemaException)
    async def flowschema_exception_handler(request: Request, exc: FlowSchemaException):
        """Map project errors that escape a route to an HTTP status."""
        status_code = next(
            (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 400
        )
        logger.warning(
            "Request failed",
            error=str(exc),
            error_type=type(exc).__name__,
            url=str(request.url),
            status_code=status_code,
        )
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            url=str(request.url),
            method=request.method,
            exc_info=True,
        )
        content = {"error": "Internal Server Error"}
        if settings.is_development:
            content.update(detail=str(exc), type=type(exc).__name__)
        return JSONResponse(status_code=500, content=content)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Node schemas and validation for n8n-style workflows",
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )
    _add_middleware(app)
    _add_exception_handlers(app)

    @app.get("/")
    async def info():
        """Service information."""
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "endpoints": API_ENDPOINTS,
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        registry = get_schema_registry()
        stats = registry.stats
        return {
            "status": "healthy" if registry.is_initialized and stats.total_nodes else "degraded",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "timestamp": time.time(),
            "nodes": stats.total_nodes,
            "failedNodes": stats.failed_nodes,
            "unknownParameterPolicy": settings.unknown_parameter_policy,
        }

    if settings.metrics_enabled:
        @app.get("/metrics")
        async def metrics():
            """Prometheus metrics endpoint."""
            return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    from flowschema.nodes.routes import credentials_router, router as nodes_router
    from flowschema.validation.routes import router as validation_router

    app.include_router(nodes_router)
    app.include_router(credentials_router)
    app.include_router(validation_router)

    return app


app = create_app()
