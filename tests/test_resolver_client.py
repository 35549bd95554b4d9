"""Tests for the dnspython-backed resolver client."""

import asyncio
import time
from types import SimpleNamespace

import dns.asyncresolver
import dns.exception
import dns.rdata
import dns.rdataclass
import dns.rdatatype
import dns.resolver
import dns.rrset
import pytest

from cyberGuard.resolver.client import ATTEMPTS_PER_SERVER, DnsPythonResolver, record_from_rdata
from cyberGuard.resolver.errors import InvalidDomain, Nxdomain, QueryTimeout, ServerError
from cyberGuard.resolver.models import DNSRecord, RecordType


class ScriptedResolver(DnsPythonResolver):
    """Replaces the network hop with a per-nameserver script of outcomes."""

    def __init__(self, script, nameservers=("192.0.2.53", "198.51.100.53"), timeout=0.5):
        super().__init__(nameservers=list(nameservers), timeout=timeout)
        self.script = {ns: list(steps) for ns, steps in script.items()}
        self.calls = []

    async def _query_once(self, domain, record_type, nameserver, timeout):
        self.calls.append(nameserver)
        steps = self.script.get(nameserver) or []
        step = steps.pop(0) if steps else QueryTimeout
        if step == "hang":
            await asyncio.Event().wait()
        if isinstance(step, type) and issubclass(step, Exception):
            raise step(f"scripted {step.__name__}", domain=domain)
        return step


def _a(value):
    return [DNSRecord(type=RecordType.A, value=value, ttl=300)]


class TestFallback:
    """Test retry and nameserver fallback order."""

    @pytest.mark.asyncio
    async def test_first_server_answers(self):
        """A healthy first nameserver is the only one asked."""
        client = ScriptedResolver({"192.0.2.53": [_a("93.184.216.34")]})
        result = await client.resolve("example.com", RecordType.A)
        assert [r.value for r in result] == ["93.184.216.34"]
        assert client.calls == ["192.0.2.53"]

    @pytest.mark.asyncio
    async def test_timeout_retries_then_advances(self):
        """Timeouts use both attempts before moving to the next server."""
        client = ScriptedResolver(
            {
                "192.0.2.53": [QueryTimeout, QueryTimeout],
                "198.51.100.53": [_a("93.184.216.34")],
            }
        )
        result = await client.resolve("example.com", RecordType.A)
        assert result[0].value == "93.184.216.34"
        assert client.calls == ["192.0.2.53", "192.0.2.53", "198.51.100.53"]

    @pytest.mark.asyncio
    async def test_server_error_advances_immediately(self):
        """A refused response moves straight to the next nameserver."""
        client = ScriptedResolver(
            {
                "192.0.2.53": [ServerError],
                "198.51.100.53": [_a("93.184.216.34")],
            }
        )
        await client.resolve("example.com", RecordType.A)
        assert client.calls == ["192.0.2.53", "198.51.100.53"]

    @pytest.mark.asyncio
    async def test_nxdomain_is_not_retried(self):
        """An authoritative negative answer ends the search."""
        client = ScriptedResolver({"192.0.2.53": [Nxdomain]})
        with pytest.raises(Nxdomain):
            await client.resolve("missing.example.com", RecordType.A)
        assert client.calls == ["192.0.2.53"]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_failure(self):
        """Every attempt on every server is spent before giving up."""
        client = ScriptedResolver({})
        with pytest.raises(QueryTimeout):
            await client.resolve("example.com", RecordType.A)
        assert len(client.calls) == ATTEMPTS_PER_SERVER * 2

    @pytest.mark.asyncio
    async def test_overall_deadline_bounds_the_call(self):
        """A hanging server cannot hold the call past timeout * attempts * servers."""
        client = ScriptedResolver({"192.0.2.53": ["hang"]}, timeout=0.05)
        start = time.monotonic()
        with pytest.raises(QueryTimeout):
            await client.resolve("example.com", RecordType.A)
        assert time.monotonic() - start < 1.0

    @pytest.mark.asyncio
    async def test_explicit_nameservers_override_defaults(self):
        """Nameservers passed per call replace the configured list."""
        client = ScriptedResolver({"203.0.113.53": [_a("93.184.216.34")]})
        await client.resolve("example.com", RecordType.A, nameservers=["203.0.113.53"])
        assert client.calls == ["203.0.113.53"]

    @pytest.mark.asyncio
    async def test_invalid_domain_rejected_before_query(self):
        """No query is sent for a malformed name."""
        client = ScriptedResolver({})
        with pytest.raises(InvalidDomain):
            await client.resolve("bad_domain", RecordType.A)
        assert client.calls == []


class TestDnspythonTranslation:
    """Test translation of dnspython outcomes."""

    @staticmethod
    def _patch(monkeypatch, outcome):
        async def fake_resolve(self, qname, rdtype, *args, **kwargs):
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        monkeypatch.setattr(dns.asyncresolver.Resolver, "resolve", fake_resolve)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc,expected",
        [
            (dns.resolver.NXDOMAIN(), Nxdomain),
            (dns.exception.Timeout(), QueryTimeout),
            (dns.resolver.NoNameservers(), ServerError),
            (OSError("network unreachable"), ServerError),
        ],
    )
    async def test_exceptions(self, monkeypatch, exc, expected):
        """dnspython errors map onto the failure taxonomy."""
        self._patch(monkeypatch, exc)
        client = DnsPythonResolver(nameservers=["192.0.2.53"], timeout=0.5)
        with pytest.raises(expected):
            await client._query_once("example.com", RecordType.A, "192.0.2.53", 0.5)

    @pytest.mark.asyncio
    async def test_empty_answer(self, monkeypatch):
        """No rrset means the type is simply absent."""
        self._patch(monkeypatch, SimpleNamespace(rrset=None))
        client = DnsPythonResolver(nameservers=["192.0.2.53"])
        assert await client._query_once("example.com", RecordType.CNAME, "192.0.2.53", 0.5) == []

    @pytest.mark.asyncio
    async def test_answer_order_and_ttl_preserved(self, monkeypatch):
        """Records keep server order and carry the rrset TTL."""
        rrset = dns.rrset.from_text("example.com.", 120, "IN", "A", "93.184.216.35", "93.184.216.34")
        self._patch(monkeypatch, SimpleNamespace(rrset=rrset))
        client = DnsPythonResolver(nameservers=["192.0.2.53"])
        result = await client._query_once("example.com", RecordType.A, "192.0.2.53", 0.5)
        assert [r.value for r in result] == [rd.address for rd in rrset]
        assert {r.ttl for r in result} == {120}


class TestRecordFromRdata:
    """Test rendering of each record type."""

    @pytest.mark.parametrize(
        "record_type,text,expected",
        [
            (RecordType.A, "93.184.216.34", "93.184.216.34"),
            (RecordType.AAAA, "2606:2800:220:1:248:1893:25c8:1946", "2606:2800:220:1:248:1893:25c8:1946"),
            (RecordType.MX, "10 mail.example.com.", "10 mail.example.com"),
            (RecordType.NS, "ns1.example.com.", "ns1.example.com"),
            (RecordType.CNAME, "alias.example.com.", "alias.example.com"),
            (RecordType.TXT, '"v=spf1 include:_spf.google.com ~all"', "v=spf1 include:_spf.google.com ~all"),
            (RecordType.TXT, '"part one " "part two"', "part one part two"),
        ],
    )
    def test_values(self, record_type, text, expected):
        """Values follow the per-type format."""
        rdata = dns.rdata.from_text(dns.rdataclass.IN, dns.rdatatype.from_text(record_type.value), text)
        record = record_from_rdata(record_type, rdata, 3600)
        assert record.value == expected
        assert record.type == record_type
        assert record.ttl == 3600
