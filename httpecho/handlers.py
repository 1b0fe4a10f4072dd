"""
Request handlers served by the catch-all route (see httpecho.app).

A handler is an async callable taking a Request and returning a Response.
Handlers compose by plain wrapping:

    app = create_app(log_handler(logger, dump_handler), logger)
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

from fastapi import Request
from fastapi.responses import PlainTextResponse, Response
from starlette.requests import ClientDisconnect

from httpecho.errors import SerializationError

Handler = Callable[[Request], Awaitable[Response]]

# Written separately (Host, Transfer-Encoding) or not at all (Trailer).
_EXCLUDED_HEADERS = {"host", "transfer-encoding", "trailer"}


def canonical_header_key(name: str) -> str:
    """content-type -> Content-Type"""
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


def _request_target(scope: Dict[str, Any]) -> str:
    raw_path = scope.get("raw_path")
    if raw_path:
        target = raw_path.decode("latin-1")
    else:
        target = quote(scope.get("path") or "/")
    query = scope.get("query_string") or b""
    if query:
        target += "?" + query.decode("latin-1")
    return target


async def dump_request(request: Request) -> bytes:
    """
    Render the full request (request line, headers, body) as the client sent it.

    Header names are canonicalized and sorted, Host always comes first and a
    chunked body is re-chunked, so the output reads like the request on the wire.
    """
    scope = request.scope
    version = scope.get("http_version", "1.1")
    lines = [f"{request.method} {_request_target(scope)} HTTP/{version}"]

    grouped: Dict[str, List[str]] = {}
    host: Optional[str] = None
    transfer_encoding: List[str] = []
    for raw_name, raw_value in request.headers.raw:
        name = raw_name.decode("latin-1")
        value = raw_value.decode("latin-1")
        lowered = name.lower()
        if lowered == "host":
            if host is None:
                host = value
        elif lowered == "transfer-encoding":
            transfer_encoding.extend(v.strip() for v in value.split(",") if v.strip())
        elif lowered not in _EXCLUDED_HEADERS:
            grouped.setdefault(canonical_header_key(name), []).append(value)

    if host:
        lines.append(f"Host: {host}")
    if transfer_encoding:
        lines.append("Transfer-Encoding: " + ",".join(transfer_encoding))
    for name in sorted(grouped):
        lines.extend(f"{name}: {value}" for value in grouped[name])

    head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

    try:
        body = await request.body()
    except ClientDisconnect as e:
        raise SerializationError("client disconnected while sending the request body") from e

    chunked = bool(transfer_encoding) and transfer_encoding[0].lower() == "chunked"
    if chunked:
        framed = b""
        if body:
            framed += f"{len(body):x}\r\n".encode("ascii") + body + b"\r\n"
        body = framed + b"0\r\n\r\n"
    return head + body


async def dump_handler(request: Request) -> Response:
    try:
        dump = await dump_request(request)
    except SerializationError as e:
        return PlainTextResponse(str(e), status_code=500)
    return Response(content=dump, media_type="text/plain")


def _peer_host(client: Any) -> str:
    if client is None:
        return "-"
    try:
        host, _port = client
    except (TypeError, ValueError):
        return str(client)
    return str(host)


def format_host_port(host: str, port: Any) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _local_address(server: Any) -> str:
    if server is None:
        return "-"
    try:
        host, port = server
    except (TypeError, ValueError):
        return str(server)
    if port is None:
        return str(host)
    return format_host_port(str(host), port)


def log_handler(logger: logging.Logger, inner: Handler) -> Handler:
    """
    Log one access line per request, then hand the request to `inner`.

    Both addresses come from the connection itself (the ASGI "client" and
    "server" entries), never from the Host header.
    """

    async def handler(request: Request) -> Response:
        remote = _peer_host(request.scope.get("client"))
        local = _local_address(request.scope.get("server"))
        logger.info("%s request from %s on %s", request.method, remote, local)
        return await inner(request)

    return handler
