"""Embedding service main application."""

import asyncio
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from .api.routes import router as api_router
from .encoders.base import EncoderLoader
from .encoders.lifecycle import ModelLifecycleManager
from .encoders.sentence_transformer import loader_from_config
from .pipelines.embedding import EmbeddingPipeline
from .pipelines.prefixes import RolePrefixes
from .ranking.reranker import Reranker
from .runtime.metrics import get_metrics_collector
from .runtime.server import (
    ImmediateExitServer,
    build_server_config,
    immediate_exit_on_signals,
    log_transport,
)
from .runtime.transport import resolve_transport
from libs.common.config import EmbeddingConfig
from libs.common.errors import (
    InvalidRequestError,
    ModelInitializationError,
    NotFoundError,
    ServiceError,
)
from libs.common.logging import configure_logging
from libs.common.security import SecurityHeaders

logger = structlog.get_logger("embedding_service")

SERVICE_NAME = "embedding-service"
SERVICE_VERSION = "0.1.0"
AVAILABLE_ENDPOINTS = [
    "/health",
    "/live",
    "/ready",
    "/metrics",
    "/models",
    "/v1/models",
    "/v1/embeddings",
    "/embed",
    "/rerank",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    config: EmbeddingConfig = app.state.config
    app.state.startup_time = time.time()
    logger.info("Starting embedding service", model_name=config.ml_embedding_model)

    if config.ml_embedding_preload:
        # A load failure aborts startup; the process must not serve as if ready
        await app.state.model_manager.ensure_ready()

    logger.info("Embedding service started successfully")

    yield

    logger.info("Shutting down embedding service")
    await app.state.model_manager.cleanup()
    logger.info("Embedding service shutdown complete")


def _summarize_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"Invalid request body: {location}: {message}" if location else f"Invalid request body: {message}"


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": {...}}`` without internals."""

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "Request failed",
            path=request.url.path,
            status=exc.status_code,
            code=exc.code,
            message=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = InvalidRequestError(_summarize_validation_error(exc))
        logger.warning("Request validation failed", path=request.url.path, message=error.message)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            content = NotFoundError("Endpoint not found").to_dict()
            content["available_endpoints"] = AVAILABLE_ENDPOINTS
            return JSONResponse(status_code=404, content=content)
        error = ServiceError(str(exc.detail), code=f"http_{exc.status_code}")
        error.error_type = "invalid_request_error" if exc.status_code < 500 else "server_error"
        return JSONResponse(status_code=exc.status_code, content=error.to_dict(), headers=exc.headers)


def create_app(
    config: Optional[EmbeddingConfig] = None,
    encoder_loader: Optional[EncoderLoader] = None,
) -> FastAPI:
    """Build the FastAPI application and its components.

    Parameters
    - config: service configuration (read from the environment if omitted)
    - encoder_loader: zero-argument callable producing the ``TextEncoder``;
      defaults to the sentence-transformers loader for ``config``
    """
    config = config or EmbeddingConfig()
    loader = encoder_loader or loader_from_config(config)

    app = FastAPI(
        title="Embedding Service",
        description="Text embeddings (with Matryoshka reduction) and document reranking",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    model_manager = ModelLifecycleManager(loader, model_name=config.ml_embedding_model)
    prefixes = RolePrefixes.from_config(config)

    app.state.config = config
    app.state.startup_time = time.time()
    app.state.model_manager = model_manager
    app.state.embedding_pipeline = EmbeddingPipeline(
        model_manager, prefixes, configured_dimension=config.ml_embedding_dimension
    )
    app.state.reranker = Reranker(model_manager, prefixes)
    app.state.metrics_collector = get_metrics_collector(SERVICE_NAME)

    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ml_cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    register_exception_handlers(app)

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        """Add processing time header to responses."""
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        return response

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Collect metrics for HTTP requests."""
        start_time = time.time()

        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            logger.exception("Unhandled error", path=request.url.path, error_type=type(e).__name__)
            status_code = 500
            response = JSONResponse(
                status_code=500,
                content=ServiceError("Internal server error").to_dict(),
            )

        duration = time.time() - start_time
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        app.state.metrics_collector.record_http_request(
            method=request.method,
            endpoint=endpoint,
            status=status_code,
            duration=duration,
        )
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        """Add security headers to every response.

        Registered last so it also wraps the generic 500 from metrics_middleware.
        """
        response = await call_next(request)
        for name, value in SecurityHeaders.get_security_headers().items():
            response.headers.setdefault(name, value)
        return response

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "initialized": app.state.model_manager.is_ready,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/live")
    async def liveness():
        """Liveness probe. Returns quickly if process is responsive."""
        return {
            "status": "alive",
            "service": SERVICE_NAME,
            "uptime_seconds": time.time() - app.state.startup_time,
        }

    @app.get("/ready")
    async def readiness():
        """Readiness probe. 503 until the model is loaded."""
        manager: ModelLifecycleManager = app.state.model_manager
        body = {
            "status": "ready" if manager.is_ready else "not_ready",
            "service": SERVICE_NAME,
            "model_state": manager.state.value,
        }
        return JSONResponse(status_code=200 if manager.is_ready else 503, content=body)

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        manager: ModelLifecycleManager = app.state.model_manager
        collector = app.state.metrics_collector
        collector.set_model_state(manager.model_name, manager.is_ready, manager.load_duration)
        return Response(content=collector.get_metrics(), media_type="text/plain")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "status": "running",
            "model": config.ml_embedding_model_id,
            "endpoints": AVAILABLE_ENDPOINTS,
        }

    return app


async def serve(config: EmbeddingConfig, app: Optional[FastAPI] = None) -> int:
    """Load the model, resolve the transport and run the server.

    Returns the process exit status.
    """
    app = app or create_app(config)

    with immediate_exit_on_signals(asyncio.get_running_loop()):
        try:
            await app.state.model_manager.ensure_ready()
        except ModelInitializationError:
            logger.error("Failed to start server: embedding model could not be loaded")
            return 1

    transport = resolve_transport(
        config.ml_use_ssl,
        keyfile=config.ml_ssl_key_path,
        certfile=config.ml_ssl_cert_path,
    )
    log_transport(transport, config)

    server = ImmediateExitServer(build_server_config(app, config, transport))
    await server.serve()
    return 0


def run() -> None:
    """Console entrypoint."""
    config = EmbeddingConfig()
    configure_logging(SERVICE_NAME, config.ml_log_level, config.ml_log_format)
    logger.info("Starting embedding service process", env=config.ml_env)
    sys.exit(asyncio.run(serve(config)))


if __name__ == "__main__":
    run()
