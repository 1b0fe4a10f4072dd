"""
Serve one ASGI app on several ports at once.

Every listener owns its socket and its uvicorn server; all of them share the
same handler chain and logger. The listeners run as one unit: the first one
that fails to bind or stops serving brings the whole process down through
serve(), which is the only place that exits.
"""

import asyncio
import logging
import socket
import signal
import sys
import threading
from typing import Awaitable, Callable, List, Sequence

import uvicorn
from starlette.types import ASGIApp

from httpecho.address import parse_port
from httpecho.errors import BindError, ServeError

ServeFunc = Callable[[ASGIApp, socket.socket], Awaitable[None]]


def bind_socket(ip: str, port: str) -> socket.socket:
    host = ip.strip("[]")
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    try:
        return socket.create_server((host, parse_port(port)), family=family)
    except OSError as e:
        raise BindError(f"listen tcp {ip}:{port}: {e.strerror or e}") from e


async def uvicorn_serve(app: ASGIApp, sock: socket.socket) -> None:
    host, port = sock.getsockname()[:2]
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        interface="asgi3",
        lifespan="off",
        log_config=None,
        access_log=False,
        # remote address must be the TCP peer, not X-Forwarded-For
        proxy_headers=False,
        server_header=False,
    )
    await uvicorn.Server(config).serve(sockets=[sock])


class ServerSupervisor:
    def __init__(self, ip: str, ports: Sequence[str], app: ASGIApp,
                 logger: logging.Logger, serve_func: ServeFunc = uvicorn_serve):
        if not ports:
            raise ValueError("ServerSupervisor needs at least one port")
        self.ip = ip
        self.ports = list(ports)
        self.app = app
        self.logger = logger
        self.serve_func = serve_func

    async def listen_and_serve(self, port: str) -> None:
        self.logger.info("Listening on %s:%s", self.ip, port)
        sock = bind_socket(self.ip, port)
        try:
            await self.serve_func(self.app, sock)
        except Exception as e:
            raise ServeError(f"serving {self.ip}:{port}: {e}") from e
        finally:
            sock.close()

    async def run(self) -> None:
        """
        Start one listener per port and wait for the first one to stop.

        All ports but the last run as background tasks, the last one is the
        foreground listener. A listener error (BindError or ServeError) is
        re-raised here; the remaining listeners are cancelled in any case.
        """
        *background_ports, foreground_port = self.ports
        tasks: List[asyncio.Task] = [
            asyncio.create_task(self.listen_and_serve(port), name=f"listener {self.ip}:{port}")
            for port in background_ports
        ]
        tasks.append(asyncio.create_task(self.listen_and_serve(foreground_port),
                                         name=f"listener {self.ip}:{foreground_port}"))
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    raise task.exception()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


def _interrupt(signum, frame):
    raise KeyboardInterrupt


def serve(ip: str, ports: Sequence[str], app: ASGIApp, logger: logging.Logger) -> None:
    """
    Run the listeners until a fatal error (exit status 1) or SIGINT/SIGTERM.

    uvicorn hands a captured signal back to the previously installed handler
    once its server has stopped. SIGTERM is routed to KeyboardInterrupt here
    so both signals end the same way whatever the number of ports.
    """
    supervisor = ServerSupervisor(ip, ports, app, logger)
    previous = None
    if threading.current_thread() is threading.main_thread():
        previous = signal.signal(signal.SIGTERM, _interrupt)
    try:
        asyncio.run(supervisor.run())
    except KeyboardInterrupt:
        logger.debug("Interrupted by signal")
    except (BindError, ServeError) as e:
        logger.critical("Error while serving requests: %s", e)
        sys.exit(1)
    finally:
        if previous is not None:
            signal.signal(signal.SIGTERM, previous)
    logger.info("Shutting down")
