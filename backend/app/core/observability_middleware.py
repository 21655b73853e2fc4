from __future__ import annotations

import json
import logging
from time import perf_counter
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from app.services.observability import observability_tracker

logger = logging.getLogger("brewwizard.request")


def _request_payload(event: str, request: Request, request_id: str, status_code: int, duration_ms: float) -> str:
    return json.dumps(
        {
            "event": event,
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        }
    )


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id

        started = perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (perf_counter() - started) * 1000
            observability_tracker.record(
                method=request.method,
                path=request.url.path,
                status_code=500,
                duration_ms=duration_ms,
            )
            logger.exception(_request_payload("request_error", request, request_id, 500, duration_ms))
            response = JSONResponse(
                status_code=500,
                content={"success": False, "message": "Internal server error", "error": "internal_error"},
            )
        else:
            duration_ms = (perf_counter() - started) * 1000
            status_code = response.status_code
            observability_tracker.record(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=duration_ms,
            )

            payload = _request_payload("request_completed", request, request_id, status_code, duration_ms)
            if status_code >= 500:
                logger.error(payload)
            elif status_code >= 400:
                logger.warning(payload)
            else:
                logger.info(payload)

        response.headers["X-Request-ID"] = request_id
        return response
