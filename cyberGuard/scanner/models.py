"""Data models for subdomain discovery."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, IPvAnyAddress, model_validator

from cyberGuard.resolver.models import utcnow


class SubdomainStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ServiceTag(str, Enum):
    HTTP = "HTTP"
    HTTPS = "HTTPS"
    SMTP = "SMTP"
    IMAP = "IMAP"
    FTP = "FTP"
    API = "API"


class SubdomainCandidate(BaseModel):
    label: str
    domain: str

    model_config = ConfigDict(frozen=True)

    @property
    def fqdn(self) -> str:
        return f"{self.label}.{self.domain}"


class SubdomainRecord(BaseModel):
    fqdn: str
    resolved_address: Optional[IPvAnyAddress] = None
    status: SubdomainStatus
    services: FrozenSet[ServiceTag] = Field(default_factory=frozenset)
    last_checked: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def classify(
        cls,
        fqdn: str,
        address: str,
        services: FrozenSet[ServiceTag],
        checked_at: Optional[datetime] = None,
    ) -> "SubdomainRecord":
        status = SubdomainStatus.ACTIVE if services else SubdomainStatus.INACTIVE
        return cls(
            fqdn=fqdn,
            resolved_address=address,
            status=status,
            services=services,
            last_checked=checked_at or utcnow(),
        )


class SubdomainResult(BaseModel):
    """Outcome of one scan: surviving candidates sorted by fqdn."""
    domain: str
    scanned_at: datetime = Field(default_factory=utcnow)
    subdomains: Tuple[SubdomainRecord, ...] = ()
    total_found: int = 0
    truncated: bool = False
    wildcard_addresses: FrozenSet[str] = Field(default_factory=frozenset)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_total(self) -> "SubdomainResult":
        if self.total_found != len(self.subdomains):
            raise ValueError("total_found must equal the number of subdomains")
        return self

    @property
    def active(self) -> Tuple[SubdomainRecord, ...]:
        return tuple(sub for sub in self.subdomains if sub.status == SubdomainStatus.ACTIVE)
