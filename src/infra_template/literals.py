"""
Typed literal parsing for parameter and variable values.

The grammar only checks the shape of numbers and addresses ([0-9]+ runs
separated by dots), so text like 300.1.1.1 or 10.0.0.0/33 reaches these
functions and is rejected here.
"""

from __future__ import annotations

import ipaddress
import re

from .errors import InvalidLiteralError

_INT_RE = re.compile(r"[+-]?[0-9]+")


def parse_int(text: str) -> int:
    """Strict decimal integer"""
    if not _INT_RE.fullmatch(text):
        raise InvalidLiteralError("int", text)
    return int(text)


def parse_ip(text: str) -> str:
    """Validate an IP address and return its canonical string form"""
    try:
        return str(ipaddress.ip_address(text))
    except ValueError:
        raise InvalidLiteralError("net ip", text) from None


def parse_cidr(text: str) -> str:
    """
    Validate address/prefix and return the network it denotes, host bits masked:
    10.0.0.12/16 becomes 10.0.0.0/16.
    """
    if "/" not in text:
        raise InvalidLiteralError("net cidr", text)
    try:
        return str(ipaddress.ip_network(text, strict=False))
    except ValueError:
        raise InvalidLiteralError("net cidr", text) from None
