from __future__ import annotations

import uuid
from contextvars import ContextVar

from fastapi.routing import APIRoute
from starlette.requests import Request


current_endpoint: ContextVar[str] = ContextVar('current_endpoint', default='background')
current_request_id: ContextVar[str] = ContextVar('current_request_id', default='-')


class EndpointNameRoute(APIRoute):
    """Labels every request with its route template and a request id for log correlation."""

    def get_route_handler(self):
        original_handler = super().get_route_handler()

        async def custom_handler(request: Request):
            endpoint_token = current_endpoint.set(f"{request.method} {self.path}")
            request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex[:12]
            request_token = current_request_id.set(request_id)
            try:
                return await original_handler(request)
            finally:
                current_request_id.reset(request_token)
                current_endpoint.reset(endpoint_token)

        return custom_handler
