from __future__ import annotations

from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp

from albtrace.application.propagation.amazon import AMAZON_TRACE_HEADER
from albtrace.application.propagation.hooks import http_trace_parser_hook
from albtrace.domain.propagation.context import PropagationContext

propagation_context_var: ContextVar[PropagationContext | None] = ContextVar(
    "propagation_context", default=None
)


def get_propagation_context() -> PropagationContext | None:
    return propagation_context_var.get()


class AmazonTraceMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, header_name: str = AMAZON_TRACE_HEADER) -> None:
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next):
        propagation_context = http_trace_parser_hook(request.headers, self.header_name)
        token = propagation_context_var.set(propagation_context)
        request.state.propagation_context = propagation_context
        try:
            return await call_next(request)
        finally:
            propagation_context_var.reset(token)
