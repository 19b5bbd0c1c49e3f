"""URL validation: the SSRF guard in front of every browser navigation.

Pure functions over configuration and input. No DNS lookups or other network
I/O happen here; a URL must pass ``validate_url`` before the extractor is
allowed to hand it to the browser.
"""

from __future__ import annotations

import fnmatch
import ipaddress
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import structlog

from siteprofile.errors import ErrorCode, SiteProfileError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from siteprofile.config import SecuritySettings

log = structlog.get_logger()

MAX_URL_LENGTH = 2048

REASON_INVALID = "Invalid URL format"
REASON_INTERNAL = "Local/internal URLs not allowed"
REASON_NOT_ALLOWED = "Domain not allowed for analysis"

PRIVATE_NETWORKS: list[ipaddress.IPv4Network | ipaddress.IPv6Network] = [
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

# Hostnames that merely start like a private address ("10.intranet.example")
_PRIVATE_PREFIX_RE = re.compile(r"^(127\.|10\.|192\.168\.|172\.(1[6-9]|2[0-9]|3[0-1])\.)")
_LABEL_RE = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
_TLD_RE = re.compile(r"^([a-z]{2,63}|xn--[a-z0-9-]{1,59})$")


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: str | None = None

    @classmethod
    def accepted(cls) -> ValidationResult:
        return cls(ok=True)

    @classmethod
    def rejected(cls, reason: str) -> ValidationResult:
        return cls(ok=False, reason=reason)


def _is_dns_name(hostname: str) -> bool:
    labels = hostname.rstrip(".").split(".")
    if len(labels) < 2:
        return False
    return all(_LABEL_RE.match(label) for label in labels) and bool(_TLD_RE.match(labels[-1]))


def _is_internal_host(hostname: str) -> bool:
    if hostname == "localhost" or hostname.endswith(".localhost"):
        return True
    try:
        addr = ipaddress.ip_address(hostname)
    except ValueError:
        return bool(_PRIVATE_PREFIX_RE.match(hostname))
    return any(addr in net for net in PRIVATE_NETWORKS)


def is_domain_allowed(hostname: str, patterns: Iterable[str]) -> bool:
    """Match a hostname against glob patterns such as ``*.nl`` (case-insensitive)."""
    hostname = hostname.lower().rstrip(".")
    return any(fnmatch.fnmatchcase(hostname, pattern.strip().lower()) for pattern in patterns)


def validate_url(url: object, settings: SecuritySettings) -> ValidationResult:
    """Decide whether ``url`` may be fetched.

    Rejects malformed or non-http(s) URLs, internal/loopback hosts and hosts
    outside the allow-list, in that order.
    """
    if not isinstance(url, str) or not url or len(url) > MAX_URL_LENGTH:
        return ValidationResult.rejected(REASON_INVALID)

    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname or ""
        parts.port  # noqa: B018 - out-of-range ports raise ValueError
    except ValueError:
        return ValidationResult.rejected(REASON_INVALID)

    if parts.scheme not in ("http", "https") or not hostname:
        return ValidationResult.rejected(REASON_INVALID)
    if parts.username is not None or parts.password is not None:
        return ValidationResult.rejected(REASON_INVALID)

    if settings.block_private_hosts and _is_internal_host(hostname):
        return ValidationResult.rejected(REASON_INTERNAL)

    try:
        ipaddress.ip_address(hostname)
        is_ip_literal = True
    except ValueError:
        is_ip_literal = False
    if not is_ip_literal and not _is_dns_name(hostname):
        return ValidationResult.rejected(REASON_INVALID)

    if not is_domain_allowed(hostname, settings.allowed_domains):
        return ValidationResult.rejected(REASON_NOT_ALLOWED)

    return ValidationResult.accepted()


def ensure_url_allowed(url: str, settings: SecuritySettings) -> None:
    """Raise ``SiteProfileError(VALIDATION_REJECTED)`` unless ``url`` validates."""
    result = validate_url(url, settings)
    if result.ok:
        return
    log.warning("url_rejected", url=url, reason=result.reason)
    raise SiteProfileError(
        code=ErrorCode.VALIDATION_REJECTED,
        message=f"{result.reason}: {url}",
        suggestion="Provide a public http(s) URL on one of the allowed domains.",
        recoverable=False,
    )
