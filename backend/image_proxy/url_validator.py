"""
URL Validation

Rejects non-HTTP schemes and private/loopback hosts before any network
call is made.

The check is lexical: it looks at the literal hostname in the URL and never
resolves DNS. A public name that resolves to a private address passes. Pair
it with network-level egress controls where full SSRF protection matters.
"""

import ipaddress
import logging
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")

BLOCKED_HOSTNAMES = {
    "localhost",
    "0.0.0.0",
}

BLOCKED_HOST_PREFIXES = (
    "127.",
    "10.",
    "192.168.",
    "172.16.",
)

_PRIVATE_172 = ipaddress.IPv4Network("172.16.0.0/12")

_RADIX_DIGITS = {
    8: set("01234567"),
    10: set("0123456789"),
    16: set("0123456789abcdefABCDEF"),
}


def _parse_ipv4_part(part: str) -> int:
    """One dotted part: 0x-prefixed hex, 0-prefixed octal, or decimal."""
    if part[:2] in ("0x", "0X"):
        digits, base = part[2:], 16
    elif len(part) > 1 and part.startswith("0"):
        digits, base = part[1:], 8
    else:
        digits, base = part, 10
    if not digits:
        if base == 16:
            return 0
        raise ValueError("Empty IPv4 part")
    if any(c not in _RADIX_DIGITS[base] for c in digits):
        raise ValueError(f"Not a number: {part}")
    return int(digits, base)


def normalize_ipv4_host(host: str) -> Optional[str]:
    """
    Rewrite numeric IPv4 spellings to dotted-quad form.

    Browsers and getaddrinfo accept "2130706433", "0x7f000001",
    "0177.0.0.1" and "127.1" as 127.0.0.1, so the blocklist must see the
    same address they do.

    Returns:
        Dotted-quad string, or None when the host is a name.

    Raises:
        ValueError: Host ends in a number but is not a valid IPv4 address.
    """
    parts = host.split(".")
    try:
        _parse_ipv4_part(parts[-1])
    except ValueError:
        return None

    if len(parts) > 4:
        raise ValueError(f"Invalid IPv4 host: {host}")
    numbers = [_parse_ipv4_part(p) for p in parts]

    *leading, last = numbers
    if any(n > 255 for n in leading) or last >= 256 ** (5 - len(numbers)):
        raise ValueError(f"Invalid IPv4 host: {host}")

    value = last
    for i, n in enumerate(leading):
        value += n << (8 * (3 - i))
    return str(ipaddress.IPv4Address(value))


def _in_full_172_block(hostname: str) -> bool:
    try:
        addr = ipaddress.IPv4Address(hostname)
    except ValueError:
        return False
    return addr in _PRIVATE_172


def is_blocked_hostname(hostname: str, block_full_private_172: bool = False) -> bool:
    """Check a hostname against the loopback/private blocklist."""
    host = hostname.lower().rstrip(".")
    try:
        host = normalize_ipv4_host(host) or host
    except ValueError:
        return True
    if host in BLOCKED_HOSTNAMES:
        return True
    if host.startswith(BLOCKED_HOST_PREFIXES):
        return True
    if block_full_private_172 and _in_full_172_block(host):
        return True
    return False


def is_valid_image_url(url: str, block_full_private_172: bool = False) -> bool:
    """
    Check whether a URL may be proxied.

    Args:
        url: Absolute URL string from the client
        block_full_private_172: Block all of 172.16.0.0/12 instead of
            only the 172.16. prefix

    Returns:
        True if the URL is http(s) and its host is not blocked.
        Malformed input returns False.
    """
    try:
        parsed = urlparse(url)
        if parsed.scheme.lower() not in ALLOWED_SCHEMES:
            return False
        hostname = parsed.hostname
        if not hostname:
            return False
        # Raises ValueError on a non-numeric or out-of-range port
        parsed.port
    except ValueError:
        return False

    if is_blocked_hostname(hostname, block_full_private_172):
        logger.info(f"[ImageProxy] Blocked host: {hostname}")
        return False

    return True
