"""JSON exchange format for lookup and scan results."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from cyberGuard.resolver.models import DNSResult, RecordType
from cyberGuard.scanner.models import ServiceTag, SubdomainResult

TOOL_VERSION = "0.1.0"
DEFAULT_USER_AGENT = f"cyberGuard/{TOOL_VERSION}"
DNS_TOOL_INFO = "VRCyber Guard DNS Lookup Tool"
SCAN_TOOL_INFO = "VR-Cyber-Guard DNS Lookup Tool - Subdomain Scanner"

SERVICE_ORDER = {tag: index for index, tag in enumerate(ServiceTag)}


def isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def export_dns_result(result: DNSResult, user_agent: Optional[str] = None) -> Dict[str, Any]:
    records: Dict[str, Any] = {}
    for record_type in RecordType:
        items = []
        for record in result.records(record_type):
            item: Dict[str, Any] = {"type": record.type.value, "value": record.value}
            if record.ttl is not None:
                item["ttl"] = record.ttl
            items.append(item)
        records[record_type.value] = items

    return {
        "domain": result.domain,
        "timestamp": isoformat(result.queried_at),
        "records": records,
        "errors": {
            record_type.value: {"kind": err.kind.value, "detail": err.detail}
            for record_type, err in result.errors.items()
        },
        "truncated": result.truncated,
        "userAgent": user_agent or DEFAULT_USER_AGENT,
        "toolInfo": DNS_TOOL_INFO,
    }


def export_subdomain_result(result: SubdomainResult, user_agent: Optional[str] = None) -> Dict[str, Any]:
    subdomains = [
        {
            "subdomain": record.fqdn,
            "ip": str(record.resolved_address) if record.resolved_address is not None else None,
            "status": record.status.value,
            "services": [tag.value for tag in sorted(record.services, key=SERVICE_ORDER.__getitem__)],
            "lastChecked": isoformat(record.last_checked),
        }
        for record in result.subdomains
    ]
    return {
        "domain": result.domain,
        "subdomains": subdomains,
        "totalFound": result.total_found,
        "truncated": result.truncated,
        "userAgent": user_agent or DEFAULT_USER_AGENT,
        "toolInfo": SCAN_TOOL_INFO,
    }


def export_filename(kind: str, domain: str, when: Optional[datetime] = None) -> str:
    """dns-lookup-<domain>-<date>.json or subdomain-scan-<domain>-<date>.json"""
    prefix = {"dns": "dns-lookup", "scan": "subdomain-scan"}[kind]
    day = (when or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    return f"{prefix}-{domain}-{day}.json"


def to_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, indent=2)


def write_export(payload: Dict[str, Any], path: str) -> Path:
    """Write payload to path; a directory path gets the conventional file name."""
    target = Path(path)
    if target.is_dir():
        kind = "scan" if "subdomains" in payload else "dns"
        target = target / export_filename(kind, payload["domain"])
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(to_json(payload) + "\n", encoding="utf-8")
    return target
