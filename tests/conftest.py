"""Test configuration and fixtures for cyberGuard."""
import asyncio
import os
import tempfile
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

_LOG_DIR = tempfile.mkdtemp(prefix="cyberguard-logs-")
os.environ.setdefault("CYBERGUARD_LOG_FILE", os.path.join(_LOG_DIR, "cyberguard.jsonl"))
os.environ.setdefault("CYBERGUARD_LOG_CONSOLE", "0")

import pytest  # noqa: E402

from cyberGuard.resolver.errors import Nxdomain  # noqa: E402
from cyberGuard.resolver.models import DNSRecord, RecordType  # noqa: E402
from cyberGuard.scanner.models import ServiceTag  # noqa: E402


def records(record_type: RecordType, *values: str, ttl: Optional[int] = 3600) -> List[DNSRecord]:
    return [DNSRecord(type=record_type, value=value, ttl=ttl) for value in values]


class MockResolver:
    """Deterministic ResolverClient.

    answers maps (name, type) to records; a name with any answer exists, so
    its other types come back empty. Unknown names are NXDOMAIN unless a
    wildcard address is set. Names in hang never answer. failures maps
    (name, type) or a bare type to an exception class. delays maps a
    record type to seconds slept first.
    """

    def __init__(
        self,
        answers: Optional[Dict[Tuple[str, RecordType], List[DNSRecord]]] = None,
        failures: Optional[Dict[object, type]] = None,
        delays: Optional[Dict[RecordType, float]] = None,
        wildcard: Optional[str] = None,
        hang: Iterable[str] = (),
    ) -> None:
        self.answers = answers or {}
        self.hang = set(hang)
        self.failures = failures or {}
        self.delays = delays or {}
        self.wildcard = wildcard
        self.calls: List[Tuple[str, RecordType]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def resolve(
        self,
        domain: str,
        record_type: RecordType,
        nameservers: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
    ) -> List[DNSRecord]:
        self.calls.append((domain, record_type))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(record_type, 0))
            if domain in self.hang:
                await asyncio.Event().wait()
            exc_type = self.failures.get((domain, record_type)) or self.failures.get(record_type)
            if exc_type is not None:
                raise exc_type(f"mock {exc_type.__name__} for {record_type.value} {domain}", domain=domain)
            key = (domain, record_type)
            if key in self.answers:
                return list(self.answers[key])
            if any(name == domain for name, _ in self.answers):
                return []
            if self.wildcard is not None:
                return records(RecordType.A, self.wildcard) if record_type == RecordType.A else []
            raise Nxdomain(f"{domain} does not exist", domain=domain)
        finally:
            self.in_flight -= 1


class HangingResolver:
    """Never answers; used to exercise deadlines."""

    def __init__(self) -> None:
        self.cancelled = 0

    async def resolve(self, domain, record_type, nameservers=None, timeout=None):
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        return []


class MockProber:
    def __init__(self, services: Optional[Dict[str, Iterable[ServiceTag]]] = None) -> None:
        self.services = {addr: frozenset(tags) for addr, tags in (services or {}).items()}
        self.probed: List[Tuple[str, str]] = []

    async def probe(self, address: str, fqdn: str) -> FrozenSet[ServiceTag]:
        self.probed.append((address, fqdn))
        return self.services.get(address, frozenset())


EXAMPLE_ANSWERS = {
    ("example.com", RecordType.A): records(RecordType.A, "93.184.216.34"),
    ("example.com", RecordType.AAAA): records(RecordType.AAAA, "2606:2800:220:1:248:1893:25c8:1946"),
    ("example.com", RecordType.MX): records(RecordType.MX, "10 mail.example.com"),
    ("example.com", RecordType.NS): records(RecordType.NS, "ns1.example.com", "ns2.example.com", ttl=86400),
    ("example.com", RecordType.TXT): records(RecordType.TXT, "v=spf1 include:_spf.google.com ~all"),
}


@pytest.fixture
def example_resolver() -> MockResolver:
    return MockResolver(answers=dict(EXAMPLE_ANSWERS))


@pytest.fixture
def scan_resolver() -> MockResolver:
    """www and mail resolve; everything else under example.com is NXDOMAIN."""
    return MockResolver(
        answers={
            ("www.example.com", RecordType.A): records(RecordType.A, "192.0.2.10"),
            ("mail.example.com", RecordType.A): records(RecordType.A, "192.0.2.20"),
        }
    )


@pytest.fixture
def scan_prober() -> MockProber:
    return MockProber({"192.0.2.10": [ServiceTag.HTTPS], "192.0.2.20": [ServiceTag.SMTP]})
