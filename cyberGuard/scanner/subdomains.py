"""Subdomain scanner: bounded worker pool over wordlist candidates."""
from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set

from cyberGuard.logging_config import get_logger
from cyberGuard.resolver.client import DnsPythonResolver, ResolverClient
from cyberGuard.resolver.config import GuardConfig
from cyberGuard.resolver.errors import FailureKind, Nxdomain, ResolveFailure, ScanFailure
from cyberGuard.resolver.models import MAX_DOMAIN_LENGTH, RecordType, parse_domain, utcnow
from cyberGuard.scanner.models import SubdomainCandidate, SubdomainRecord, SubdomainResult
from cyberGuard.scanner.probe import ServiceProber, TcpServiceProber
from cyberGuard.scanner.wordlist import CandidateGenerator, load_wordlist

logger = get_logger("scanner")

ADDRESS_TYPES = (RecordType.A, RecordType.AAAA)
WILDCARD_LABEL_MIN = 8


@dataclass
class _WorkerSlot:
    """Results owned by a single worker; merged after the pool settles."""
    records: List[SubdomainRecord] = field(default_factory=list)
    failures: List[FailureKind] = field(default_factory=list)
    settled: int = 0


class SubdomainScanner:
    def __init__(
        self,
        resolver: ResolverClient,
        prober: ServiceProber,
        *,
        concurrency: int = 20,
        nameservers: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        filter_wildcard: bool = True,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.resolver = resolver
        self.prober = prober
        self.concurrency = concurrency
        self.nameservers = list(nameservers) if nameservers else None
        self.timeout = timeout
        self.filter_wildcard = filter_wildcard

    @classmethod
    def from_config(
        cls,
        cfg: GuardConfig,
        resolver: Optional[ResolverClient] = None,
        prober: Optional[ServiceProber] = None,
    ) -> "SubdomainScanner":
        return cls(
            resolver or DnsPythonResolver.from_config(cfg.resolver),
            prober or TcpServiceProber(
                timeout=cfg.scan.probe_timeout_seconds,
                detect_api=cfg.scan.detect_api,
            ),
            concurrency=cfg.scan.concurrency,
            nameservers=cfg.resolver.nameservers or None,
            timeout=cfg.resolver.timeout_seconds,
            filter_wildcard=cfg.scan.filter_wildcard,
        )

    async def scan(
        self,
        domain: str,
        wordlist: Optional[Iterable[str]] = None,
        *,
        deadline: Optional[float] = None,
    ) -> SubdomainResult:
        """Resolve and probe every wordlist candidate under domain.

        Unresolvable candidates are dropped. When the deadline fires the
        in-flight work is abandoned and the result is flagged truncated.
        Raises InvalidDomain before any query, and ScanFailure when every
        candidate failed with the same transport error.
        """
        domain = parse_domain(domain)
        candidates = CandidateGenerator(domain, wordlist)
        scanned_at = utcnow()
        start_time = time.time()

        logger.info(
            "Starting subdomain scan",
            extra={
                "domain": domain,
                "candidates": len(candidates),
                "concurrency": self.concurrency,
                "action": "scan_start",
            },
        )

        slots = [_WorkerSlot() for _ in range(self.concurrency)]
        wildcard: Set[str] = set()
        runner = asyncio.create_task(self._run(domain, iter(candidates), slots, wildcard))
        try:
            await asyncio.wait({runner}, timeout=deadline)
        finally:
            truncated = not runner.done()
            if truncated:
                runner.cancel()
                await asyncio.gather(runner, return_exceptions=True)

        if not truncated and runner.exception() is not None:
            raise runner.exception()

        failures = [kind for slot in slots for kind in slot.failures]
        settled = sum(slot.settled for slot in slots)
        if not truncated and failures and settled == 0 and len(set(failures)) == 1:
            logger.error(
                "Every candidate failed with the same transport error",
                extra={"domain": domain, "error_kind": failures[0].value, "outcome": "error"},
            )
            raise ScanFailure(
                f"Scan of {domain} failed: all {len(failures)} candidates ended in {failures[0].value}",
                domain=domain,
            )

        unique: Dict[str, SubdomainRecord] = {}
        for slot in slots:
            for record in slot.records:
                unique.setdefault(record.fqdn, record)
        subdomains = tuple(sorted(unique.values(), key=lambda rec: rec.fqdn))

        result = SubdomainResult(
            domain=domain,
            scanned_at=scanned_at,
            subdomains=subdomains,
            total_found=len(subdomains),
            truncated=truncated,
            wildcard_addresses=frozenset(wildcard),
        )

        logger.info(
            "Subdomain scan completed",
            extra={
                "domain": domain,
                "found": result.total_found,
                "truncated": truncated,
                "duration": round((time.time() - start_time) * 1000, 2),
                "outcome": "success",
            },
        )
        return result

    async def _run(
        self,
        domain: str,
        candidates: Iterator[SubdomainCandidate],
        slots: List[_WorkerSlot],
        wildcard: Set[str],
    ) -> None:
        if self.filter_wildcard:
            wildcard.update(await self._detect_wildcard(domain))

        workers = [asyncio.create_task(self._worker(candidates, slot, wildcard)) for slot in slots]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(
        self,
        candidates: Iterator[SubdomainCandidate],
        slot: _WorkerSlot,
        wildcard: Set[str],
    ) -> None:
        # Workers share one iterator; next() never suspends, so each candidate is taken once.
        for candidate in candidates:
            await self._check(candidate, slot, wildcard)

    async def _check(self, candidate: SubdomainCandidate, slot: _WorkerSlot, wildcard: Set[str]) -> None:
        fqdn = candidate.fqdn
        try:
            addresses = await self._resolve_addresses(fqdn)
        except Nxdomain:
            slot.settled += 1
            return
        except ResolveFailure as exc:
            slot.failures.append(exc.kind)
            logger.debug(
                f"Candidate resolution failed: {exc}",
                extra={"fqdn": fqdn, "error_kind": exc.kind.value, "outcome": "dropped"},
            )
            return
        except Exception as exc:
            slot.failures.append(FailureKind.SERVER_ERROR)
            logger.error(
                f"Unexpected resolver error: {exc}",
                exc_info=True,
                extra={"fqdn": fqdn, "error_type": type(exc).__name__, "outcome": "dropped"},
            )
            return
        slot.settled += 1

        live = [addr for addr in addresses if addr not in wildcard]
        if not live:
            return

        address = live[0]
        try:
            services = await self.prober.probe(address, fqdn)
        except (OSError, asyncio.TimeoutError) as exc:
            logger.debug(
                f"Service probe failed: {exc}",
                extra={"fqdn": fqdn, "address": address, "error_type": type(exc).__name__},
            )
            services = frozenset()
        except Exception as exc:
            logger.error(
                f"Unexpected probe error: {exc}",
                exc_info=True,
                extra={"fqdn": fqdn, "address": address, "error_type": type(exc).__name__},
            )
            services = frozenset()

        slot.records.append(SubdomainRecord.classify(fqdn, address, services))

    async def _resolve_addresses(self, fqdn: str) -> List[str]:
        """A first, then AAAA when no IPv4 address exists."""
        for record_type in ADDRESS_TYPES:
            records = await self.resolver.resolve(
                fqdn, record_type, nameservers=self.nameservers, timeout=self.timeout
            )
            if records:
                return [record.value for record in records]
        return []

    async def _detect_wildcard(self, domain: str) -> Set[str]:
        # Random label trimmed so the name stays within the domain length limit.
        room = MAX_DOMAIN_LENGTH - len(domain) - 1
        if room < WILDCARD_LABEL_MIN:
            logger.debug(
                "Domain too long for wildcard detection",
                extra={"domain": domain, "outcome": "skipped"},
            )
            return set()
        label = f"cg{uuid.uuid4().hex}"[:min(room, 18)]
        probe_name = f"{label}.{domain}"
        try:
            addresses = await self._resolve_addresses(probe_name)
        except Nxdomain:
            return set()
        except ResolveFailure as exc:
            logger.warning(
                f"Wildcard detection failed: {exc}",
                extra={"domain": domain, "error_kind": exc.kind.value},
            )
            return set()
        if addresses:
            logger.info(
                "Wildcard DNS detected",
                extra={"domain": domain, "address": addresses, "outcome": "wildcard"},
            )
        return set(addresses)


async def scan(
    domain: str,
    cfg: Optional[GuardConfig] = None,
    *,
    resolver: Optional[ResolverClient] = None,
    prober: Optional[ServiceProber] = None,
    wordlist: Optional[Iterable[str]] = None,
) -> SubdomainResult:
    """Scan domain with settings from cfg; the wordlist file in cfg is used when none is given."""
    cfg = cfg or GuardConfig()
    if wordlist is None and cfg.scan.wordlist_path:
        wordlist = load_wordlist(cfg.scan.wordlist_path)
    scanner = SubdomainScanner.from_config(cfg, resolver=resolver, prober=prober)
    return await scanner.scan(domain, wordlist, deadline=cfg.scan.deadline_seconds)
