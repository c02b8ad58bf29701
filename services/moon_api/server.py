"""
HOSHIYOMI Moon API Service

JSON-over-HTTP service exposing the moon engine, built on aiohttp.

Endpoints:
    POST /moon.MoonApi/MoonInfo   {"date": ..., "longitude": ..., "latitude": ...}
    GET  /health

Each request runs under a correlation ID (taken from the X-Correlation-ID
header or generated) which is echoed back in the response. The engine call
itself runs on a worker thread with a per-request timeout, so a slow
computation never blocks the event loop.

Usage:
    server = MoonApiServer(config.server, engine)
    await server.start()
    ...
    await server.stop()
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Optional

from aiohttp import web

from hoshiyomi.config import ServerConfig
from hoshiyomi.constants import (
    CORRELATION_HEADER,
    CORRELATION_PREFIX,
    HEALTH_ROUTE,
    HOSHIYOMI_VERSION,
    MOON_INFO_ROUTE,
)
from hoshiyomi.exceptions import InternalError, InvalidInputError
from hoshiyomi.logging_config import correlation_context, get_logger, log_exception, log_timing
from services.ephemeris.engine import MoonEngine, get_engine, make_geo, make_instant
from services.ephemeris.models import GeoCoordinate, PhaseResult, RiseSetResult
from services.ephemeris.timescale import Instant

__all__ = [
    "MoonInfoRequest",
    "MoonInfoService",
    "MoonApiServer",
    "create_app",
    "build_moon_info_response",
]

logger = get_logger("moon_api")

ENGINE_KEY = web.AppKey("engine", MoonEngine)
TIMEOUT_KEY = web.AppKey("request_timeout_sec", float)

# Computations slower than this are logged as warnings
SLOW_REQUEST_SEC = 1.0


# =============================================================================
# Request / Response Mapping
# =============================================================================


@dataclass(frozen=True)
class MoonInfoRequest:
    """Validated moon info request."""

    instant: Instant
    geo: GeoCoordinate

    @classmethod
    def from_payload(cls, payload: Any) -> MoonInfoRequest:
        """
        Validate a decoded JSON body.

        Raises:
            InvalidInputError: Body is not an object, or a field is missing
                or invalid.
        """
        if not isinstance(payload, dict):
            raise InvalidInputError("Request body must be a JSON object")
        for field in ("date", "longitude", "latitude"):
            if payload.get(field) is None:
                raise InvalidInputError(f"Missing field: {field}", field=field)
        return cls(
            instant=make_instant(payload["date"]),
            geo=make_geo(payload["latitude"], payload["longitude"]),
        )


def _format_instant(instant: Optional[Instant]) -> Optional[str]:
    return instant.isoformat() if instant is not None else None


def build_moon_info_response(
    rise_set: RiseSetResult,
    phase: PhaseResult,
    new_moon: Optional[Instant] = None,
) -> dict:
    """Map engine results to the response body."""
    body = {
        "riseTime": _format_instant(rise_set.rise_time),
        "setTime": _format_instant(rise_set.set_time),
        "circumpolar": rise_set.circumpolar,
        "neverRises": rise_set.never_rises,
        "moonAge": phase.age_days,
        "elongation": phase.elongation_deg,
        "illumination": phase.illuminated_fraction,
        "events": [
            {"type": event.type.value, "time": event.instant.isoformat()}
            for event in rise_set.events
        ],
    }
    if new_moon is not None:
        body["newMoonTime"] = new_moon.isoformat()
    return body


class MoonInfoService:
    """Synchronous moon info computation behind the HTTP handler."""

    def __init__(self, engine: Optional[MoonEngine] = None):
        self.engine = engine or get_engine()

    def moon_info(self, request: MoonInfoRequest) -> dict:
        """Compute rise/set, age and previous new Moon for one request."""
        rise_set = self.engine.compute_rise_set(request.instant, request.geo)
        phase = self.engine.compute_age(request.instant)
        new_moon = self.engine.compute_previous_new_moon(request.instant)
        return build_moon_info_response(rise_set, phase, new_moon)


SERVICE_KEY = web.AppKey("moon_info_service", MoonInfoService)


# =============================================================================
# Middlewares
# =============================================================================


def _error_response(status: int, error: str, message: str, field: Optional[str] = None) -> web.Response:
    body = {"error": error, "message": message}
    if field:
        body["field"] = field
    return web.json_response(body, status=status)


@web.middleware
async def correlation_middleware(request: web.Request, handler):
    """Run the request under a correlation ID and log its outcome."""
    with correlation_context(request.headers.get(CORRELATION_HEADER), prefix=CORRELATION_PREFIX) as cid:
        start = time.perf_counter()
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers[CORRELATION_HEADER] = cid
            logger.info(f"{request.method} {request.path} -> {exc.status}")
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers[CORRELATION_HEADER] = cid
        logger.info(
            f"{request.method} {request.path} -> {response.status} ({elapsed_ms:.1f}ms)",
            extra={"status": response.status, "elapsed_ms": round(elapsed_ms, 1)},
        )
        return response


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Map engine errors to JSON error responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except InvalidInputError as e:
        logger.info(f"Rejected request: {e}")
        return _error_response(400, "invalid_input", str(e), e.field)
    except InternalError as e:
        log_exception(logger, "Moon info computation failed", e)
        return _error_response(500, "internal", str(e))
    except asyncio.TimeoutError:
        logger.warning(f"Request exceeded {request.app[TIMEOUT_KEY]}s timeout")
        return _error_response(504, "timeout", "Computation timed out")
    except Exception as e:
        log_exception(logger, "Unhandled error", e)
        return _error_response(500, "internal", "Internal server error")


# =============================================================================
# Handlers
# =============================================================================


async def handle_moon_info(request: web.Request) -> web.Response:
    """POST /moon.MoonApi/MoonInfo"""
    try:
        payload = await request.json()
    except ValueError as e:
        raise InvalidInputError(f"Request body is not valid JSON: {e}") from e

    moon_request = MoonInfoRequest.from_payload(payload)
    service = request.app[SERVICE_KEY]

    with log_timing(logger, "moon_info", warn_threshold_sec=SLOW_REQUEST_SEC):
        body = await asyncio.wait_for(
            asyncio.to_thread(service.moon_info, moon_request),
            timeout=request.app[TIMEOUT_KEY],
        )
    return web.json_response(body)


async def handle_health(request: web.Request) -> web.Response:
    """GET /health"""
    return web.json_response({"status": "ok", "version": HOSHIYOMI_VERSION})


def create_app(config: Optional[ServerConfig] = None, engine: Optional[MoonEngine] = None) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        config: Server settings (defaults when None)
        engine: Moon engine (default parameters when None)
    """
    config = config or ServerConfig()
    engine = engine or get_engine()

    app = web.Application(middlewares=[correlation_middleware, error_middleware])
    app[ENGINE_KEY] = engine
    app[SERVICE_KEY] = MoonInfoService(engine)
    app[TIMEOUT_KEY] = config.request_timeout_sec

    app.router.add_post(MOON_INFO_ROUTE, handle_moon_info)
    app.router.add_get(HEALTH_ROUTE, handle_health)
    return app


# =============================================================================
# Server
# =============================================================================


class MoonApiServer:
    """
    Lifecycle wrapper around the aiohttp application.

    Binds to config.host:config.port on start() and releases the socket on
    stop().
    """

    def __init__(self, config: Optional[ServerConfig] = None, engine: Optional[MoonEngine] = None):
        self.config = config or ServerConfig()
        self.app = create_app(self.config, engine)
        self._runner: Optional[web.AppRunner] = None

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    @property
    def addresses(self) -> list:
        """Bound socket addresses (empty when stopped)."""
        if self._runner is None:
            return []
        return list(self._runner.addresses)

    async def start(self) -> None:
        """Start listening."""
        if self._runner is not None:
            return
        runner = web.AppRunner(self.app, access_log=None)
        await runner.setup()
        site = web.TCPSite(runner, self.config.host, self.config.port)
        try:
            await site.start()
        except OSError:
            await runner.cleanup()
            raise
        self._runner = runner
        logger.info(f"Moon API listening on {self.addresses}")

    async def stop(self) -> None:
        """Stop listening and release resources."""
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info("Moon API stopped")
