"""
FastAPI application served by every listener.

One catch-all route accepts any method on any path and hands the request to
the handler chain. The docs/OpenAPI routes are disabled so every path echoes.
"""

import logging

from fastapi import FastAPI, Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from httpecho.handlers import Handler


class ResponseWriteGuard:
    """
    Logs responses that never reach the client, instead of failing the request.

    uvicorn silently drops writes to a disconnected client, so the disconnect
    is read from `receive` (an "http.disconnect" message) before the response
    starts. A send that raises OSError is handled the same way.
    """

    def __init__(self, app: ASGIApp, logger: logging.Logger):
        self.app = app
        self.logger = logger

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        dropped = False

        async def guarded_send(message: Message) -> None:
            nonlocal dropped
            if dropped:
                return
            if message["type"] == "http.response.start" and await request.is_disconnected():
                dropped = True
                self.logger.warning("Unable to write response: client disconnected")
                return
            try:
                await send(message)
            except OSError as e:
                dropped = True
                self.logger.warning("Unable to write response: %s", e)

        await self.app(scope, receive, guarded_send)


def create_app(handler: Handler, logger: logging.Logger) -> FastAPI:
    app = FastAPI(title="httpecho", docs_url=None, redoc_url=None, openapi_url=None)
    app.add_middleware(ResponseWriteGuard, logger=logger)
    # methods=None: every method, including non-standard ones, reaches the handler
    app.add_route("/{path:path}", handler, methods=None, include_in_schema=False)
    return app
