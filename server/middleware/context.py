"""
Request context middleware.

Propagates the X-Request-ID header (generating one when absent) and binds
the caller's X-User-Id to the logging context for the request.
"""

import uuid
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from logging_config import request_id_var, user_id_var

USER_ID_HEADER = "X-User-Id"
REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    HTTP middleware that sets request-scoped logging context.

    - Uses X-Request-ID from the request, or generates a UUID
    - Sets request_id and user_id context vars while the request runs
    - Echoes X-Request-ID on the response
    """

    def __init__(
        self,
        app,
        generator: Optional[Callable[[], str]] = None,
    ):
        super().__init__(app)
        self.generator = generator or (lambda: str(uuid.uuid4()))

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or self.generator()
        request.state.request_id = request_id

        request_token = request_id_var.set(request_id)
        user_token = user_id_var.set(request.headers.get(USER_ID_HEADER))
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            user_id_var.reset(user_token)
            request_id_var.reset(request_token)
