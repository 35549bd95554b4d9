"""Command line entrypoint: `cyberguard lookup DOMAIN` and `cyberguard scan DOMAIN`."""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.traceback import install as install_rich_traceback

from cyberGuard.export import export_dns_result, export_subdomain_result, to_json, write_export
from cyberGuard.logging_config import get_logger
from cyberGuard.resolver.aggregator import lookup
from cyberGuard.resolver.client import ResolverClient
from cyberGuard.resolver.config import GuardConfig
from cyberGuard.resolver.errors import ReconError
from cyberGuard.resolver.models import DNSResult, RecordType
from cyberGuard.scanner.models import SubdomainResult, SubdomainStatus
from cyberGuard.scanner.probe import ServiceProber
from cyberGuard.scanner.subdomains import scan

install_rich_traceback()
console = Console(stderr=True)
logger = get_logger("cli")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=os.getenv("CYBERGUARD_CONFIG"),
        help="Path to cyberGuard YAML config",
    )
    common.add_argument(
        "--nameserver",
        action="append",
        dest="nameservers",
        metavar="IP",
        help="Nameserver to query, in fallback order (repeatable)",
    )
    common.add_argument("--timeout", type=float, help="Per-query timeout in seconds")
    common.add_argument("--deadline", type=float, help="Overall deadline in seconds")
    common.add_argument("--json", action="store_true", help="Print the export payload as JSON")
    common.add_argument("--export", metavar="PATH", help="Write the export payload to a file or directory")
    common.add_argument("--user-agent", help="userAgent recorded in exports")

    parser = argparse.ArgumentParser(description="cyberGuard DNS lookup and subdomain scanner")
    sub = parser.add_subparsers(dest="command", required=True)

    lookup_parser = sub.add_parser("lookup", parents=[common], help="Resolve A, AAAA, MX, NS, CNAME and TXT records")
    lookup_parser.add_argument("domain")

    scan_parser = sub.add_parser("scan", parents=[common], help="Enumerate live subdomains from a wordlist")
    scan_parser.add_argument("domain")
    scan_parser.add_argument("--wordlist", help="Wordlist file, one label per line")
    scan_parser.add_argument("--concurrency", type=int, help="Maximum concurrent candidates")
    scan_parser.add_argument("--probe-timeout", type=float, help="Per-port probe timeout in seconds")
    scan_parser.add_argument("--no-api", action="store_true", help="Skip the HTTP API fingerprint")
    scan_parser.add_argument("--no-wildcard-filter", action="store_true", help="Keep wildcard DNS matches")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> GuardConfig:
    """Load the YAML config and apply command line overrides."""
    cfg = GuardConfig.load(args.config)
    resolver: Dict[str, Any] = cfg.resolver.model_dump()
    lookup_cfg: Dict[str, Any] = cfg.lookup.model_dump()
    scan_cfg: Dict[str, Any] = cfg.scan.model_dump()

    if args.nameservers:
        resolver["nameservers"] = args.nameservers
    if args.timeout is not None:
        resolver["timeout_seconds"] = args.timeout
    if args.deadline is not None:
        lookup_cfg["deadline_seconds"] = args.deadline
        scan_cfg["deadline_seconds"] = args.deadline

    if args.command == "scan":
        if args.wordlist:
            scan_cfg["wordlist_path"] = args.wordlist
        if args.concurrency is not None:
            scan_cfg["concurrency"] = args.concurrency
        if args.probe_timeout is not None:
            scan_cfg["probe_timeout_seconds"] = args.probe_timeout
        if args.no_api:
            scan_cfg["detect_api"] = False
        if args.no_wildcard_filter:
            scan_cfg["filter_wildcard"] = False

    return GuardConfig(resolver=resolver, lookup=lookup_cfg, scan=scan_cfg)


def render_dns_result(result: DNSResult) -> None:
    table = Table(title=f"DNS records for {result.domain}")
    table.add_column("Type", style="cyan")
    table.add_column("Value")
    table.add_column("TTL", justify="right")
    for record_type in RecordType:
        records = result.records(record_type)
        if not records:
            err = result.errors.get(record_type)
            note = f"[red]{err.kind.value}[/red]" if err else f"[dim]No {record_type.value} records found[/dim]"
            table.add_row(record_type.value, note, "")
            continue
        for record in records:
            table.add_row(record_type.value, record.value, "" if record.ttl is None else f"{record.ttl}s")
    console.print(table)
    if result.truncated:
        console.print("[yellow]Lookup truncated by deadline; some record types are missing.")


def render_subdomain_result(result: SubdomainResult) -> None:
    table = Table(
        title=f"Subdomains of {result.domain} ({result.total_found} found, {len(result.active)} active)"
    )
    table.add_column("Subdomain", style="cyan")
    table.add_column("IP")
    table.add_column("Status")
    table.add_column("Services")
    for record in result.subdomains:
        status = "[green]active" if record.status == SubdomainStatus.ACTIVE else "[dim]inactive"
        table.add_row(
            record.fqdn,
            str(record.resolved_address or ""),
            status,
            ", ".join(sorted(tag.value for tag in record.services)),
        )
    console.print(table)
    if result.wildcard_addresses:
        console.print(f"[yellow]Wildcard DNS filtered: {', '.join(sorted(result.wildcard_addresses))}")
    if result.truncated:
        console.print("[yellow]Scan truncated by deadline; results are partial.")


async def run(
    argv: Optional[List[str]] = None,
    *,
    resolver: Optional[ResolverClient] = None,
    prober: Optional[ServiceProber] = None,
) -> int:
    args = parse_args(argv)
    try:
        cfg = build_config(args)
        if args.command == "lookup":
            dns_result = await lookup(args.domain, cfg, resolver=resolver)
            payload = export_dns_result(dns_result, user_agent=args.user_agent)
            if not args.json:
                render_dns_result(dns_result)
        else:
            scan_result = await scan(args.domain, cfg, resolver=resolver, prober=prober)
            payload = export_subdomain_result(scan_result, user_agent=args.user_agent)
            if not args.json:
                render_subdomain_result(scan_result)
    except (ReconError, ValueError, FileNotFoundError) as exc:
        logger.error(
            f"{args.command} failed: {exc}",
            extra={"domain": args.domain, "error_type": type(exc).__name__, "outcome": "error"},
        )
        console.print(f"[red]Error:[/red] {exc}")
        return 1

    if args.json:
        sys.stdout.write(to_json(payload) + "\n")
    if args.export:
        path = write_export(payload, args.export)
        console.print(f"[green]Exported to {path}")
    return 0


def main() -> None:
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
