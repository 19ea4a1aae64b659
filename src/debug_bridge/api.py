"""HTTP routes of the debug bridge.

Every handler answers ``200`` with a JSON body, ``400 {"error": ...}`` when
the caller sent something invalid, or ``500 {"error": ...}`` when the debug
host or the adapter failed. The API is unauthenticated and must only be bound
to a loopback address: ``/debug/evaluate`` runs arbitrary expressions in the
debuggee.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictInt

from .context import capture_context
from .errors import BridgeError, InvalidArgument, NoActiveSession

if TYPE_CHECKING:
    from .service import ServiceState

logger = logging.getLogger(__name__)


# =============================================================================
# Request bodies
# =============================================================================


class StepRequest(BaseModel):
    """Body of POST /debug/step."""

    action: str | None = None


class ControlRequest(BaseModel):
    """Body of POST /debug/control."""

    action: str | None = None


class BreakpointRequest(BaseModel):
    """Body of POST /debug/breakpoint. ``line`` is 1-based."""

    file: str | None = None
    line: StrictInt | None = None
    action: str = "set"


class EvaluateRequest(BaseModel):
    """Body of POST /debug/evaluate."""

    expression: str | None = None
    context: str | None = None
    frame_id: StrictInt | None = Field(default=None, alias="frameId")


# =============================================================================
# Helpers
# =============================================================================


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _service(request: Request) -> ServiceState:
    return request.app.state.service


def _error(status_code: int, exc: BaseException) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc) or type(exc).__name__})


async def _respond(
    operation: Callable[[], Awaitable[dict[str, Any]]],
    client_errors: tuple[type[BridgeError], ...] = (InvalidArgument,),
) -> JSONResponse:
    """Run an operation and map its outcome to a JSON response."""
    try:
        result = await operation()
    except client_errors as e:
        return _error(400, e)
    except BridgeError as e:
        logger.warning(f"Request failed: {e}")
        return _error(500, e)
    except Exception as e:
        logger.exception("Unhandled error while serving request")
        return _error(500, e)
    return JSONResponse(content=result)


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Malformed JSON body"
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


# =============================================================================
# Application
# =============================================================================


def create_app(state: ServiceState) -> FastAPI:
    """Create the FastAPI application serving one bridge service."""
    app = FastAPI(
        title="Debug Bridge",
        description="HTTP bridge to a live debug session",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.service = state

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": _describe_validation_error(exc)})

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        service = _service(request)
        return JSONResponse(
            content={
                "status": "ok",
                "port": service.port,
                "hasActiveSession": service.translator.has_active_session,
                "timestamp": _now(),
            }
        )

    @app.get("/debug/status")
    async def debug_status(request: Request) -> JSONResponse:
        translator = _service(request).translator

        async def operation() -> dict[str, Any]:
            return translator.status()

        return await _respond(operation)

    @app.get("/debug/context")
    async def debug_context(request: Request) -> JSONResponse:
        host = _service(request).host

        async def operation() -> dict[str, Any]:
            snapshot = await capture_context(host.active_session)
            return snapshot.to_dict()

        return await _respond(operation)

    @app.post("/debug/step")
    async def debug_step(request: Request, body: StepRequest) -> JSONResponse:
        translator = _service(request).translator
        return await _respond(lambda: translator.step(body.action))

    @app.post("/debug/control")
    async def debug_control(request: Request, body: ControlRequest) -> JSONResponse:
        translator = _service(request).translator
        return await _respond(lambda: translator.control(body.action))

    @app.post("/debug/breakpoint")
    async def debug_breakpoint(request: Request, body: BreakpointRequest) -> JSONResponse:
        translator = _service(request).translator
        return await _respond(lambda: translator.breakpoint(body.action, body.file, body.line))

    @app.get("/debug/breakpoints")
    async def debug_breakpoints(request: Request) -> JSONResponse:
        translator = _service(request).translator

        async def operation() -> dict[str, Any]:
            return translator.list_breakpoints()

        return await _respond(operation)

    @app.post("/debug/evaluate")
    async def debug_evaluate(request: Request, body: EvaluateRequest) -> JSONResponse:
        translator = _service(request).translator
        return await _respond(
            lambda: translator.evaluate(body.expression, body.context, body.frame_id),
            client_errors=(InvalidArgument, NoActiveSession),
        )

    return app
