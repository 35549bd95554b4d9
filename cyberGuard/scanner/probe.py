"""Service probes used to classify resolvable subdomains."""
from __future__ import annotations

import asyncio
import ipaddress
from typing import Dict, FrozenSet, Optional, Protocol, Set

import aiohttp

from cyberGuard.logging_config import get_logger
from cyberGuard.scanner.models import ServiceTag

logger = get_logger("probe")

SERVICE_PORTS: Dict[int, ServiceTag] = {
    80: ServiceTag.HTTP,
    443: ServiceTag.HTTPS,
    25: ServiceTag.SMTP,
    143: ServiceTag.IMAP,
    21: ServiceTag.FTP,
}

WEB_TAGS = {ServiceTag.HTTP: "http", ServiceTag.HTTPS: "https"}


class ServiceProber(Protocol):
    async def probe(self, address: str, fqdn: str) -> FrozenSet[ServiceTag]:
        ...


def _url_host(address: str) -> str:
    if ipaddress.ip_address(address).version == 6:
        return f"[{address}]"
    return address


class TcpServiceProber:
    """A port is responsive when a TCP connection completes within the timeout."""

    def __init__(
        self,
        timeout: float = 1.5,
        ports: Optional[Dict[int, ServiceTag]] = None,
        detect_api: bool = True,
    ) -> None:
        self.timeout = timeout
        self.ports = dict(ports) if ports is not None else dict(SERVICE_PORTS)
        self.detect_api = detect_api

    async def probe(self, address: str, fqdn: str) -> FrozenSet[ServiceTag]:
        port_list = list(self.ports)
        outcomes = await asyncio.gather(*(self._is_open(address, port) for port in port_list))
        services: Set[ServiceTag] = set()
        open_ports = []
        for port, is_open in zip(port_list, outcomes):
            if is_open:
                services.add(self.ports[port])
                open_ports.append(port)

        if self.detect_api:
            for port in open_ports:
                scheme = WEB_TAGS.get(self.ports[port])
                if scheme and await self._serves_json(address, fqdn, port, scheme):
                    services.add(ServiceTag.API)
                    break

        logger.debug(
            "Probed services",
            extra={
                "fqdn": fqdn,
                "address": address,
                "found": sorted(tag.value for tag in services),
            },
        )
        return frozenset(services)

    async def _is_open(self, address: str, port: int) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host=address, port=port),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, OSError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def _serves_json(self, address: str, fqdn: str, port: int, scheme: str) -> bool:
        """One GET / with the subdomain as Host; JSON content type means an API."""
        url = f"{scheme}://{_url_host(address)}:{port}/"
        timeout = aiohttp.ClientTimeout(total=self.timeout * 2)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(
                    url,
                    headers={"Host": fqdn, "Accept": "application/json"},
                    ssl=False,
                    allow_redirects=False,
                ) as resp:
                    content_type = resp.headers.get("Content-Type", "").lower()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.debug(
                f"API fingerprint failed: {exc}",
                extra={"fqdn": fqdn, "port": port, "error_type": type(exc).__name__},
            )
            return False
        return "json" in content_type
