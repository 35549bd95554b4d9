"""Tests for TCP service probing against local listeners."""

import asyncio
import socket

import pytest

from cyberGuard.scanner.models import ServiceTag
from cyberGuard.scanner.probe import SERVICE_PORTS, TcpServiceProber


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _serve(content_type: str):
    body = b"{}" if "json" in content_type else b"<html></html>"

    async def handler(reader, writer):
        try:
            await reader.readuntil(b"\r\n\r\n")
        except (asyncio.IncompleteReadError, asyncio.LimitOverrunError, ConnectionError):
            writer.close()
            return
        writer.write(
            b"HTTP/1.1 200 OK\r\n"
            + f"Content-Type: {content_type}\r\n".encode()
            + f"Content-Length: {len(body)}\r\n".encode()
            + b"Connection: close\r\n\r\n"
            + body
        )
        await writer.drain()
        writer.close()

    server = await asyncio.start_server(handler, "127.0.0.1", 0)
    return server, server.sockets[0].getsockname()[1]


class TestTcpServiceProber:
    """Test port probing and API fingerprinting."""

    def test_well_known_ports(self):
        """The default port map covers the classic services."""
        assert SERVICE_PORTS == {
            80: ServiceTag.HTTP,
            443: ServiceTag.HTTPS,
            25: ServiceTag.SMTP,
            143: ServiceTag.IMAP,
            21: ServiceTag.FTP,
        }

    @pytest.mark.asyncio
    async def test_open_and_closed_ports(self):
        """Only listening ports are reported."""
        server, port = await _serve("text/html")
        closed = _free_port()
        async with server:
            prober = TcpServiceProber(
                timeout=1.0,
                ports={port: ServiceTag.SMTP, closed: ServiceTag.FTP},
                detect_api=False,
            )
            services = await prober.probe("127.0.0.1", "mail.example.com")
        assert services == frozenset({ServiceTag.SMTP})

    @pytest.mark.asyncio
    async def test_json_web_service_is_an_api(self):
        """A JSON response on a web port adds the API tag."""
        server, port = await _serve("application/json; charset=utf-8")
        async with server:
            prober = TcpServiceProber(timeout=1.0, ports={port: ServiceTag.HTTP})
            services = await prober.probe("127.0.0.1", "api.example.com")
        assert services == frozenset({ServiceTag.HTTP, ServiceTag.API})

    @pytest.mark.asyncio
    async def test_html_web_service_is_not_an_api(self):
        """An HTML response keeps only the web tag."""
        server, port = await _serve("text/html")
        async with server:
            prober = TcpServiceProber(timeout=1.0, ports={port: ServiceTag.HTTP})
            services = await prober.probe("127.0.0.1", "www.example.com")
        assert services == frozenset({ServiceTag.HTTP})

    @pytest.mark.asyncio
    async def test_nothing_listening(self):
        """A host with no open ports has no services."""
        prober = TcpServiceProber(timeout=0.5, ports={_free_port(): ServiceTag.HTTP})
        assert await prober.probe("127.0.0.1", "old.example.com") == frozenset()
