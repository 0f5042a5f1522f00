"""
Key-Value Gateway service.
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import Settings, get_settings
from shared.errors import KeyValueError, render_error
from shared.logging import configure_logging, get_logger, level_for_verbosity
from shared.metrics import get_metrics_collector
from shared.tracing import configure_tracing

from . import __version__
from .context import RequestContext, check_deadline
from .pipeline import ConcurrencyLimiter, build_middleware
from .routes import build_router
from .store import KeyValueStore


class KeyValueService:
    """Key-Value Gateway service implementation."""

    def __init__(self, settings: Optional[Settings] = None, store: Optional[KeyValueStore] = None):
        self.config = settings or get_settings()
        self.service_name = self.config.service_name
        self.logger = get_logger(f"{self.service_name}.service")
        self.metrics = get_metrics_collector(self.service_name)

        self.store = store or KeyValueStore(
            self.config.redis_url,
            max_connections=self.config.redis_max_connections,
            metrics=self.metrics,
            deadline_check=check_deadline,
        )
        self.limiter = ConcurrencyLimiter(self.config.concurrency_limit, metrics=self.metrics)
        self.context = RequestContext(store=self.store, settings=self.config)

        self.app = self._create_app()
        self._setup_routes()
        self._setup_error_handlers()

        # Expose service instance via app state for introspection/testing
        self.app.state.kv_service = self

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with the request pipeline."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            self.logger.info("Key-Value service starting", redis_url=self.config.redis_url)
            yield
            await self.store.close()
            self.logger.info("Key-Value service stopped")

        app = FastAPI(
            title="Key-Value Gateway",
            description="Byte-oriented key-value API backed by Redis",
            version=__version__,
            # Every single-segment GET path is a key.
            openapi_url=None,
            docs_url=None,
            redoc_url=None,
            middleware=build_middleware(self.config, self.limiter, self.metrics),
            lifespan=lifespan,
        )
        app.state.context = self.context
        return app

    def _setup_routes(self):
        self.app.include_router(build_router())

    def _setup_error_handlers(self):

        @self.app.exception_handler(KeyValueError)
        async def key_value_error_handler(request: Request, exc: KeyValueError):
            """Render handler failures through the shared mapper."""
            self.logger.info(
                "Key-value error",
                code=exc.code,
                message=exc.message,
                path=request.url.path,
            )
            self.metrics.record_error(exc.code)
            return render_error(exc)

        @self.app.exception_handler(StarletteHTTPException)
        async def routing_error_handler(request: Request, exc: StarletteHTTPException):
            """Unknown paths and unknown methods on known paths are plain 404s."""
            if exc.status_code in (404, 405):
                return PlainTextResponse("Not Found", status_code=404)
            return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    def run(self):
        """Run the service."""
        import uvicorn

        uvicorn.run(
            self.app,
            host=self.config.server_host,
            port=self.config.server_port,
            log_level=logging.getLevelName(level_for_verbosity(self.config.verbose)).lower(),
        )


def create_app(settings: Optional[Settings] = None, store: Optional[KeyValueStore] = None) -> FastAPI:
    """Create FastAPI application."""
    service = KeyValueService(settings, store)
    return service.app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kv-gateway",
        description="HTTP key-value gateway backed by Redis.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=None,
                        help="Make the server more talkative (repeat for more).")
    parser.add_argument("-p", "--server-port", type=int, default=None,
                        help="The port for the Key-Value server to listen on (default 3000).")
    parser.add_argument("--redis-port", type=int, default=None,
                        help="The port of the Redis server to connect to (default 6379).")
    parser.add_argument("-s", "--server-host", default=None,
                        help="The address for the Key-Value server to listen on (default localhost).")
    parser.add_argument("-r", "--redis-host", default=None,
                        help="The address of the Redis server to connect to (default localhost).")
    parser.add_argument("-c", "--concurrency-limit", type=int, default=None,
                        help="Limit the max number of in-flight requests (default 1024).")
    parser.add_argument("-t", "--timeout-in-millis", type=int, default=None,
                        help="Fail requests that take longer than this (default 10000).")
    parser.add_argument("--max-payload-bytes", type=int, default=None,
                        help="Largest accepted value size in bytes (default 5120000).")
    parser.add_argument("--admin-token", default=None,
                        help="Bearer token required by the /admin routes.")
    parser.add_argument("--metrics-port", type=int, default=None,
                        help="Serve Prometheus metrics on this port (0 disables).")
    parser.add_argument("--enable-tracing", action="store_true", default=None,
                        help="Export OpenTelemetry traces over OTLP.")
    return parser


def settings_from_args(argv: Optional[List[str]] = None) -> Settings:
    """Parse CLI flags into settings; unset flags fall back to the environment."""
    args = build_parser().parse_args(argv)
    return get_settings(**vars(args))


async def verify_backend(settings: Settings) -> None:
    """Ping Redis once with a throwaway client."""
    store = KeyValueStore(settings.redis_url, max_connections=1)
    try:
        await store.ping()
    finally:
        await store.close()


def main(argv: Optional[List[str]] = None) -> None:
    settings = settings_from_args(argv)

    configure_logging(settings.service_name, settings.verbose)
    logger = get_logger(f"{settings.service_name}.bootstrap")
    logger.debug("Running server with settings", settings=settings.model_dump(exclude={"admin_token"}))

    try:
        asyncio.run(verify_backend(settings))
    except KeyValueError as e:
        logger.error("Unable to reach Redis", redis_url=settings.redis_url, error=e.message)
        sys.exit(1)

    if settings.enable_tracing:
        configure_tracing(settings.service_name, settings.otel_exporter)

    service = KeyValueService(settings)
    if settings.metrics_port:
        service.metrics.start_metrics_server(settings.metrics_port)

    logger.info("Server listening", host=settings.server_host, port=settings.server_port)
    service.run()


if __name__ == "__main__":
    main()
