"""Configuration loader for lookups and subdomain scans."""
from __future__ import annotations

import ipaddress
from pathlib import Path
from typing import List, Optional

import dns.resolver
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

PUBLIC_NAMESERVERS = ["8.8.8.8", "1.1.1.1"]


def system_nameservers() -> List[str]:
    """Nameservers from the host resolver configuration, or public ones."""
    try:
        configured = dns.resolver.Resolver(configure=True).nameservers
    except (dns.resolver.NoResolverConfiguration, OSError):
        return list(PUBLIC_NAMESERVERS)
    servers = [str(ns) for ns in configured]
    return servers or list(PUBLIC_NAMESERVERS)


class ResolverConfig(BaseModel):
    nameservers: List[str] = Field(default_factory=list)
    timeout_seconds: float = Field(default=2.0, gt=0)

    @field_validator("nameservers")
    @classmethod
    def _check_nameservers(cls, value: List[str]) -> List[str]:
        cleaned = []
        for item in value:
            try:
                cleaned.append(str(ipaddress.ip_address(item.strip())))
            except ValueError as exc:
                raise ValueError(f"Nameserver must be an IP address: {item!r}") from exc
        return cleaned

    def effective_nameservers(self) -> List[str]:
        return list(self.nameservers) if self.nameservers else system_nameservers()


class LookupConfig(BaseModel):
    deadline_seconds: Optional[float] = Field(default=None, gt=0)


class ScanConfig(BaseModel):
    concurrency: int = Field(default=20, ge=1, le=500)
    probe_timeout_seconds: float = Field(default=1.5, gt=0)
    wordlist_path: Optional[str] = None
    deadline_seconds: Optional[float] = Field(default=None, gt=0)
    detect_api: bool = Field(default=True)
    filter_wildcard: bool = Field(default=True)


class GuardConfig(BaseModel):
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    lookup: LookupConfig = Field(default_factory=LookupConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)

    @classmethod
    def load(cls, path: Optional[str]) -> "GuardConfig":
        if not path:
            return cls()
        cfg_path = Path(path)
        if not cfg_path.exists():
            raise FileNotFoundError(f"cyberGuard config not found: {cfg_path}")
        try:
            raw = yaml.safe_load(cfg_path.read_text()) or {}
            return cls(**raw)
        except ValidationError as exc:
            raise ValueError(f"Invalid cyberGuard config: {exc}") from exc
