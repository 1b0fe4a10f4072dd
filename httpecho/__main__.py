#!/usr/bin/env python3
import sys
from typing import List, Optional

from httpecho.address import validate
from httpecho.app import create_app
from httpecho.errors import ArgumentError
from httpecho.handlers import dump_handler, log_handler
from httpecho.logger import get_logger
from httpecho.server import serve

USAGE = "usage: httpecho [ip] <port> [port]..."


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if args and args[0] in ("-h", "--help"):
        print(USAGE)
        return 0
    if not args:
        print(USAGE, file=sys.stderr)
        return 1

    logger = get_logger()
    try:
        address = validate(args)
    except ArgumentError as e:
        logger.error("Error while validating arguments: %s", e)
        print(USAGE, file=sys.stderr)
        return 1

    app = create_app(log_handler(logger, dump_handler), logger)
    serve(address.ip, address.ports, app, logger)
    return 0


if __name__ == "__main__":
    sys.exit(main())
