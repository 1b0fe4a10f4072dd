"""
Turns command-line tokens into the address the listeners bind to.

    httpecho [ip] <port> [port]...

The first token is tried as an IP literal before it is tried as a port, so
"8080 8081" binds every interface while "::1 8080" binds the IPv6 loopback.
Hostnames are never resolved.
"""

import ipaddress
import re
from typing import List, Sequence

from pydantic import BaseModel, Field

from httpecho.errors import InsufficientArguments, InvalidAddress, InvalidPort

ANY_ADDRESS = "0.0.0.0"
MAX_PORT = 65535

_DIGITS = re.compile(r"[0-9]+")


class ListenAddress(BaseModel):
    ip: str = Field(..., description="IPv4 literal or bracketed IPv6 literal")
    ports: List[str] = Field(..., min_length=1, description="Decimal ports, 0-65535")


def parse_port(value: str) -> int:
    """Parse an unsigned 16-bit decimal port, raising InvalidPort otherwise."""
    candidate = value.strip()
    # int() alone would also take "+80", "8_0" and non-ASCII digits
    if not _DIGITS.fullmatch(candidate):
        raise InvalidPort(value)
    port = int(candidate)
    if port > MAX_PORT:
        raise InvalidPort(value)
    return port


def _canonical_ip(token: str) -> str:
    addr = ipaddress.ip_address(token)
    if addr.version == 6:
        if addr.ipv4_mapped is not None:
            return str(addr.ipv4_mapped)
        return f"[{addr}]"
    return str(addr)


def validate(tokens: Sequence[str]) -> ListenAddress:
    if not tokens:
        raise InsufficientArguments()

    first, rest = tokens[0], list(tokens[1:])
    try:
        ip = _canonical_ip(first)
        ports = rest
    except ValueError:
        try:
            parse_port(first)
        except InvalidPort:
            raise InvalidAddress(first) from None
        ip = ANY_ADDRESS
        ports = list(tokens)

    for port in ports:
        parse_port(port)
    if not ports:
        raise InsufficientArguments(f"no port numbers given for {ip}")

    return ListenAddress(ip=ip, ports=[p.strip() for p in ports])
