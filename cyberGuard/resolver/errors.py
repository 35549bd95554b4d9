"""Failure taxonomy for lookups and scans."""
from __future__ import annotations

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    INVALID_DOMAIN = "InvalidDomain"
    NXDOMAIN = "Nxdomain"
    TIMEOUT = "Timeout"
    SERVER_ERROR = "ServerError"
    TRUNCATED = "Truncated"


class ReconError(Exception):
    """Base class for every failure raised by cyberGuard."""

    kind: FailureKind = FailureKind.SERVER_ERROR

    def __init__(self, message: str, *, domain: Optional[str] = None) -> None:
        super().__init__(message)
        self.domain = domain


class InvalidDomain(ReconError, ValueError):
    """Input rejected before any network call."""

    kind = FailureKind.INVALID_DOMAIN


class ResolveFailure(ReconError):
    """A single query could not produce records."""

    @property
    def transient(self) -> bool:
        return self.kind in (FailureKind.TIMEOUT, FailureKind.SERVER_ERROR)


class Nxdomain(ResolveFailure):
    """Authoritative negative answer; never retried."""

    kind = FailureKind.NXDOMAIN


class QueryTimeout(ResolveFailure):
    kind = FailureKind.TIMEOUT


class ServerError(ResolveFailure):
    """Malformed, refused or failed response, or a transport error."""

    kind = FailureKind.SERVER_ERROR


class LookupFailure(ReconError):
    """Every record type failed with a transport error; no nameserver reachable."""


class ScanFailure(ReconError):
    """Every candidate failed identically; the scanner could not reach the network."""
