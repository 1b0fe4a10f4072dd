import asyncio
import io
import logging
import socket
import threading
import time
import uuid

import pytest
from fastapi import Request

from httpecho.app import create_app
from httpecho.handlers import dump_handler, log_handler
from httpecho.server import ServerSupervisor


class CapturedLog:
    def __init__(self):
        self.stream = io.StringIO()
        self.logger = logging.getLogger(f"httpecho.test.{uuid.uuid4().hex}")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        handler = logging.StreamHandler(self.stream)
        handler.setFormatter(logging.Formatter("%(message)s"))
        self.logger.addHandler(handler)

    def output(self) -> str:
        return self.stream.getvalue()

    def lines(self):
        return self.output().splitlines()

    def clear(self):
        self.stream.seek(0)
        self.stream.truncate()

    def wait_for(self, text, timeout=5.0) -> bool:
        deadline = time.time() + timeout
        while time.time() < deadline:
            if any(text in line for line in self.lines()):
                return True
            time.sleep(0.05)
        return False


@pytest.fixture
def captured_log():
    return CapturedLog()


def _make_request(method="GET", path="/", headers=(), body=b"", query=b"",
                  client=("127.0.0.1", 54321), server=("127.0.0.1", 1234),
                  disconnect=False):
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("latin-1"),
        "root_path": "",
        "query_string": query,
        "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in headers],
        "client": client,
        "server": server,
    }

    async def receive():
        if disconnect:
            return {"type": "http.disconnect"}
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


@pytest.fixture
def make_request():
    """Build a Request from a hand-written ASGI scope."""
    return _make_request


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def free_port():
    return _free_port


def wait_for_port(port, timeout=10.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            with socket.create_connection(("127.0.0.1", port), timeout=0.5):
                return
        except OSError:
            time.sleep(0.05)
    raise AssertionError(f"nothing listening on port {port}")


@pytest.fixture
def running_listeners(captured_log):
    """Run a real supervisor (uvicorn listeners) on its own loop in a thread."""
    loops = []

    def start(ports, handler=dump_handler):
        app = create_app(log_handler(captured_log.logger, handler), captured_log.logger)
        supervisor = ServerSupervisor("127.0.0.1", [str(p) for p in ports], app, captured_log.logger)
        loop = asyncio.new_event_loop()
        task = loop.create_task(supervisor.run())

        def runner():
            asyncio.set_event_loop(loop)
            try:
                loop.run_until_complete(task)
            except asyncio.CancelledError:
                pass

        thread = threading.Thread(target=runner, daemon=True)
        thread.start()
        loops.append((loop, task, thread))
        for port in ports:
            wait_for_port(port)

    yield start

    for loop, task, thread in loops:
        loop.call_soon_threadsafe(task.cancel)
        thread.join(timeout=10)
        loop.close()
