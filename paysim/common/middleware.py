"""ASGI middleware shared by every route: access logging, timeouts, metrics."""

import asyncio
from datetime import datetime
from time import perf_counter
from uuid import uuid4

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from paysim.common.config import settings
from paysim.common.logging import access_logger, request_id_ctx
from paysim.common.metrics import http_request_duration_seconds, http_requests_total


class RequestReadTimeout(Exception):
    """Raised from `receive` when the request body does not arrive in time."""


def access_log_line(
    client: str,
    timestamp: datetime,
    method: str,
    uri: str,
    protocol: str,
    status_code: int,
    size: int,
) -> str:
    """Render one request in Common Log Format."""

    ts = timestamp.strftime("%d/%b/%Y:%H:%M:%S %z")
    return f'{client} - - [{ts}] "{method} {uri} {protocol}" {status_code} {size}'


def _request_uri(scope: Scope) -> str:
    uri = scope.get("root_path", "") + scope["path"]
    query = scope.get("query_string", b"")
    if query:
        uri = f"{uri}?{query.decode('latin-1')}"
    return uri


class AccessLogMiddleware:
    """Write one access-log line per HTTP request once the response is sent."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started_at = datetime.now().astimezone()
        token = request_id_ctx.set(str(uuid4()))
        status_code = 500
        size = 0

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, size
            if message["type"] == "http.response.start":
                status_code = message["status"]
            elif message["type"] == "http.response.body":
                size += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            client = scope.get("client")
            access_logger.info(
                access_log_line(
                    client=client[0] if client else "-",
                    timestamp=started_at,
                    method=scope["method"],
                    uri=_request_uri(scope),
                    protocol=f"HTTP/{scope.get('http_version', '1.1')}",
                    status_code=status_code,
                    size=size,
                )
            )
            request_id_ctx.reset(token)


class ConnectionTimeoutMiddleware:
    """Bound the body read and every response write of a request.

    The whole request body must arrive within `read_timeout` of the request
    starting, otherwise `RequestReadTimeout` is raised to the handler. A write
    that exceeds `write_timeout` aborts the request.
    """

    def __init__(self, app: ASGIApp, read_timeout: float, write_timeout: float) -> None:
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.read_timeout
        body_complete = False

        async def receive_wrapper() -> Message:
            nonlocal body_complete
            # Once the body is in, later receives only wait for disconnect.
            if body_complete:
                return await receive()
            remaining = max(0.0, deadline - loop.time())
            try:
                message = await asyncio.wait_for(receive(), timeout=remaining)
            except asyncio.TimeoutError as exc:
                raise RequestReadTimeout(f"request body not received within {self.read_timeout}s") from exc
            if message["type"] != "http.request" or not message.get("more_body", False):
                body_complete = True
            return message

        async def send_wrapper(message: Message) -> None:
            await asyncio.wait_for(send(message), timeout=self.write_timeout)

        await self.app(scope, receive_wrapper, send_wrapper)


class MetricsMiddleware:
    """Record request count and latency for every HTTP call."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = perf_counter()
        method = scope["method"]
        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            # Router fills in the matched route; fall back to the raw path.
            route = scope["path"]
            route_obj = scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()
