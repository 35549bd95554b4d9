"""Resolver client: one record type, ordered nameserver fallback, bounded retries."""
from __future__ import annotations

import asyncio
import time
from typing import Any, List, Optional, Protocol, Sequence

import dns.asyncresolver
import dns.exception
import dns.resolver

from cyberGuard.logging_config import get_logger
from cyberGuard.resolver.config import ResolverConfig, system_nameservers
from cyberGuard.resolver.errors import Nxdomain, QueryTimeout, ResolveFailure, ServerError
from cyberGuard.resolver.models import DNSRecord, RecordType, parse_domain

logger = get_logger("resolver")

ATTEMPTS_PER_SERVER = 2


class ResolverClient(Protocol):
    """Anything able to answer a single record-type query."""

    async def resolve(
        self,
        domain: str,
        record_type: RecordType,
        nameservers: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> List[DNSRecord]:
        ...


def record_from_rdata(record_type: RecordType, rdata: Any, ttl: Optional[int]) -> DNSRecord:
    """Render a dnspython rdata object as a DNSRecord value."""
    if record_type in (RecordType.A, RecordType.AAAA):
        value = str(rdata.address)
    elif record_type == RecordType.MX:
        value = f"{rdata.preference} {rdata.exchange.to_text(omit_final_dot=True)}"
    elif record_type in (RecordType.NS, RecordType.CNAME):
        value = rdata.target.to_text(omit_final_dot=True)
    else:
        value = "".join(part.decode("utf-8", errors="replace") for part in rdata.strings)
    return DNSRecord(type=record_type, value=value, ttl=ttl)


class DnsPythonResolver:
    """ResolverClient backed by dns.asyncresolver.

    Each nameserver gets ATTEMPTS_PER_SERVER tries on timeout; a server error
    moves straight on to the next nameserver. NXDOMAIN stops the search.
    The whole call is bounded by timeout * attempts * server count.
    """

    def __init__(self, nameservers: Optional[Sequence[str]] = None, timeout: float = 2.0) -> None:
        self.nameservers: List[str] = list(nameservers) if nameservers else system_nameservers()
        self.timeout = timeout

    @classmethod
    def from_config(cls, cfg: ResolverConfig) -> "DnsPythonResolver":
        return cls(cfg.effective_nameservers(), cfg.timeout_seconds)

    async def resolve(
        self,
        domain: str,
        record_type: RecordType,
        nameservers: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> List[DNSRecord]:
        domain = parse_domain(domain)
        servers = list(nameservers) if nameservers else list(self.nameservers)
        if not servers:
            raise ValueError("At least one nameserver is required")
        per_query = timeout if timeout is not None else self.timeout
        if per_query <= 0:
            raise ValueError("timeout must be positive")

        deadline = per_query * ATTEMPTS_PER_SERVER * len(servers)
        try:
            return await asyncio.wait_for(
                self._resolve_with_fallback(domain, record_type, servers, per_query),
                timeout=deadline,
            )
        except asyncio.TimeoutError as exc:
            raise QueryTimeout(
                f"{record_type.value} {domain}: no answer within {deadline:.1f}s",
                domain=domain,
            ) from exc

    async def _resolve_with_fallback(
        self,
        domain: str,
        record_type: RecordType,
        servers: List[str],
        timeout: float,
    ) -> List[DNSRecord]:
        last_failure: Optional[ResolveFailure] = None
        for nameserver in servers:
            for attempt in range(1, ATTEMPTS_PER_SERVER + 1):
                start_time = time.time()
                try:
                    records = await self._query_once(domain, record_type, nameserver, timeout)
                except Nxdomain:
                    logger.debug(
                        "Authoritative negative answer",
                        extra={
                            "domain": domain,
                            "record_type": record_type.value,
                            "nameserver": nameserver,
                            "outcome": "nxdomain",
                        },
                    )
                    raise
                except ResolveFailure as exc:
                    last_failure = exc
                    logger.debug(
                        f"Query failed: {exc}",
                        extra={
                            "domain": domain,
                            "record_type": record_type.value,
                            "nameserver": nameserver,
                            "attempt": attempt,
                            "error_kind": exc.kind.value,
                            "outcome": "retry",
                        },
                    )
                    if isinstance(exc, ServerError):
                        break
                    continue

                logger.debug(
                    "Query answered",
                    extra={
                        "domain": domain,
                        "record_type": record_type.value,
                        "nameserver": nameserver,
                        "attempt": attempt,
                        "found": len(records),
                        "duration": round((time.time() - start_time) * 1000, 2),
                        "outcome": "success",
                    },
                )
                return records

        if last_failure is None:
            raise ServerError(f"No nameserver answered for {domain}", domain=domain)
        raise last_failure

    async def _query_once(
        self,
        domain: str,
        record_type: RecordType,
        nameserver: str,
        timeout: float,
    ) -> List[DNSRecord]:
        """Send one query to one nameserver and translate dnspython errors."""
        resolver = dns.asyncresolver.Resolver(configure=False)
        resolver.nameservers = [nameserver]
        resolver.timeout = timeout
        resolver.lifetime = timeout

        try:
            answer = await resolver.resolve(domain, record_type.value, raise_on_no_answer=False)
        except dns.resolver.NXDOMAIN as exc:
            raise Nxdomain(f"{domain} does not exist", domain=domain) from exc
        except dns.exception.Timeout as exc:
            raise QueryTimeout(f"{nameserver} timed out for {record_type.value} {domain}", domain=domain) from exc
        except dns.resolver.NoAnswer:
            return []
        except (dns.exception.DNSException, OSError) as exc:
            raise ServerError(f"{nameserver}: {exc}", domain=domain) from exc

        if answer.rrset is None:
            return []
        ttl = answer.rrset.ttl
        return [record_from_rdata(record_type, rdata, ttl) for rdata in answer.rrset]
