"""Data models for DNS lookups."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cyberGuard.resolver.errors import FailureKind, InvalidDomain

MAX_DOMAIN_LENGTH = 253

LABEL_PATTERN = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")
TLD_PATTERN = re.compile(r"^(?:[a-z]{2,63}|xn--[a-z0-9-]{1,59})$")


def is_valid_label(label: str) -> bool:
    return bool(LABEL_PATTERN.match(label))


def parse_domain(raw: str) -> str:
    """Validate and normalize a fully-qualified domain name.

    Lower-cases the input and strips surrounding whitespace and a single
    trailing dot. Raises InvalidDomain when the name does not match the
    grammar: 1-63 char alphanumeric/hyphen labels, at least two labels,
    at most 253 characters, and an alphabetic (or punycode) final label.
    """
    if not isinstance(raw, str):
        raise InvalidDomain(f"Domain must be a string, got {type(raw).__name__}")
    domain = raw.strip().lower()
    if domain.endswith("."):
        domain = domain[:-1]
    if not domain:
        raise InvalidDomain("Domain is empty")
    if len(domain) > MAX_DOMAIN_LENGTH:
        raise InvalidDomain(f"Domain exceeds {MAX_DOMAIN_LENGTH} characters", domain=domain)
    labels = domain.split(".")
    if len(labels) < 2:
        raise InvalidDomain(f"Domain must contain at least one dot: {domain}", domain=domain)
    for label in labels:
        if not is_valid_label(label):
            raise InvalidDomain(f"Invalid label {label!r} in {domain}", domain=domain)
    if not TLD_PATTERN.match(labels[-1]):
        raise InvalidDomain(f"Invalid top-level label {labels[-1]!r} in {domain}", domain=domain)
    return domain


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordType(str, Enum):
    A = "A"
    AAAA = "AAAA"
    MX = "MX"
    NS = "NS"
    CNAME = "CNAME"
    TXT = "TXT"


class DNSRecord(BaseModel):
    """One answer record as returned by a nameserver."""
    type: RecordType
    value: str
    ttl: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)


class RecordError(BaseModel):
    kind: FailureKind
    detail: str = ""

    model_config = ConfigDict(frozen=True)


class DNSResult(BaseModel):
    """Outcome of one lookup_all invocation.

    records_by_type always holds all six record types; a type that failed
    has an empty tuple and an entry in errors.
    """
    domain: str
    queried_at: datetime = Field(default_factory=utcnow)
    records_by_type: Mapping[RecordType, Tuple[DNSRecord, ...]]
    errors: Mapping[RecordType, RecordError] = Field(default_factory=dict, validate_default=True)
    truncated: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("records_by_type", "errors", mode="after")
    @classmethod
    def _read_only(cls, value: Mapping) -> Mapping:
        return MappingProxyType(dict(value))

    def records(self, record_type: RecordType) -> Tuple[DNSRecord, ...]:
        return self.records_by_type.get(record_type, ())

    @property
    def total_records(self) -> int:
        return sum(len(items) for items in self.records_by_type.values())
