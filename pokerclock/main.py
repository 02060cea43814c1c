"""pokerclock ASGI application.

One process owns every live tournament clock. Run it as a single worker:
clock state lives in memory and is rebuilt from the backend on demand.

    uvicorn pokerclock.main:app --port 3000
"""

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from pokerclock import __version__
from pokerclock.clock.api import clock_router, webhook_router
from pokerclock.clock.engine import ClockEngine
from pokerclock.config import Settings, get_settings
from pokerclock.logging_config import configure_logging, get_logger
from pokerclock.utils.json_utils import ORJSONResponse
from pokerclock.ws.gateway import router as ws_router

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
UNLOGGED_PATHS = frozenset({"/"})  # 헬스 체크


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Engine up before the first request, down after the last one.

    Tests may pre-install `app.state.engine` to inject a fake backend.
    """
    settings: Settings = app.state.settings
    engine: Optional[ClockEngine] = getattr(app.state, "engine", None)
    if engine is None:
        engine = app.state.engine = ClockEngine(settings)

    await engine.start()
    logger.info(f"pokerclock {__version__} ready ({settings.app_env})")
    try:
        yield
    finally:
        await engine.stop()
        logger.info("pokerclock stopped")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Echo or mint X-Request-ID and tag the request's log lines with it.

    Webhook calls from the backend usually carry their own id, which makes
    a relayed control traceable across both services.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        started = time.perf_counter()
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
            if request.url.path not in UNLOGGED_PATHS:
                logger.info(
                    f"{request.method} {request.url.path} -> {response.status_code} "
                    f"in {(time.perf_counter() - started) * 1000:.1f}ms"
                )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the app. `settings` defaults to the cached environment config."""
    settings = settings or get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.app_env == "production",
        app_env=settings.app_env,
    )

    app = FastAPI(
        title="Poker Tournament Clock",
        version=__version__,
        description="Authoritative tournament clocks pushed to consoles and displays",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )

    app.include_router(webhook_router)
    app.include_router(clock_router)
    app.include_router(ws_router)  # /ws, /ws/stats

    @app.get("/", tags=["Health"])
    async def health(request: Request) -> dict[str, Any]:
        engine: Optional[ClockEngine] = getattr(request.app.state, "engine", None)
        return {
            "status": "healthy",
            "service": "pokerclock",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "activeClocks": len(engine.registry) if engine else 0,
            "connections": engine.manager.connection_count if engine else 0,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    # workers=1 고정: 시계 상태가 프로세스 메모리에 있음
    uvicorn.run(
        "pokerclock.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug,
        log_level=settings.log_level.lower(),
    )
