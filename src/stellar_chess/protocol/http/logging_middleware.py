from __future__ import annotations

import logging
import re
import time
import uuid
from typing import Any, Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request


logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"

_GAME_PATH = re.compile(r"^/api/games/([^/]+)")


def game_id_from_path(path: str) -> Optional[str]:
    """Return the session id addressed by a ``/api/games/{id}/...`` path."""
    m = _GAME_PATH.match(path)
    return m.group(1) if m else None


class RequestIDLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log it with the game it addresses.

    A client-supplied ``x-request-id`` is reused; otherwise a UUID4 is
    generated. Game routes add ``game_id`` to both log records so one
    session's traffic can be followed.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        context: Dict[str, Any] = {"request_id": request_id}
        game_id = game_id_from_path(request.url.path)
        if game_id is not None:
            context["game_id"] = game_id

        logger.info(
            "request",
            extra={**context, "method": request.method, "path": request.url.path},
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            "response",
            extra={
                **context,
                "status_code": response.status_code,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return response
