from httpecho.address import ListenAddress, validate
from httpecho.app import create_app
from httpecho.handlers import dump_handler, dump_request, log_handler
from httpecho.server import ServerSupervisor, serve

__version__ = "0.1.0"

__all__ = [
    "ListenAddress",
    "validate",
    "create_app",
    "dump_handler",
    "dump_request",
    "log_handler",
    "ServerSupervisor",
    "serve",
]
