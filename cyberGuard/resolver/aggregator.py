"""Record aggregator: one query per record type, merged into a DNSResult."""
from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional, Sequence, Tuple

from cyberGuard.logging_config import get_logger
from cyberGuard.resolver.client import DnsPythonResolver, ResolverClient
from cyberGuard.resolver.config import GuardConfig
from cyberGuard.resolver.errors import FailureKind, LookupFailure, ResolveFailure
from cyberGuard.resolver.models import (
    DNSRecord,
    DNSResult,
    RecordError,
    RecordType,
    parse_domain,
    utcnow,
)

logger = get_logger("aggregator")

RECORD_TYPES: Tuple[RecordType, ...] = tuple(RecordType)

TRANSPORT_KINDS = {FailureKind.TIMEOUT, FailureKind.SERVER_ERROR}


async def lookup_all(
    domain: str,
    resolver: ResolverClient,
    *,
    nameservers: Optional[Sequence[str]] = None,
    timeout: Optional[float] = None,
    deadline: Optional[float] = None,
) -> DNSResult:
    """Query every record type for domain concurrently.

    A failing type is recorded in errors and never aborts the others. Types
    still in flight when the deadline fires are abandoned and marked
    Truncated. Raises InvalidDomain before any query, and LookupFailure
    when every type failed with a transport error.
    """
    domain = parse_domain(domain)
    queried_at = utcnow()
    start_time = time.time()

    logger.info(
        "Starting DNS lookup",
        extra={"domain": domain, "action": "lookup_start", "user_input": {"deadline": deadline}},
    )

    tasks: Dict[RecordType, asyncio.Task] = {
        record_type: asyncio.create_task(
            resolver.resolve(domain, record_type, nameservers=nameservers, timeout=timeout)
        )
        for record_type in RECORD_TYPES
    }
    try:
        await asyncio.wait(tasks.values(), timeout=deadline)
    finally:
        pending = {task for task in tasks.values() if not task.done()}
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    records_by_type: Dict[RecordType, Tuple[DNSRecord, ...]] = {}
    errors: Dict[RecordType, RecordError] = {}
    # Slots are read in RecordType order so completion order never leaks into the result.
    for record_type in RECORD_TYPES:
        task = tasks[record_type]
        if task in pending:
            records_by_type[record_type] = ()
            errors[record_type] = RecordError(kind=FailureKind.TRUNCATED, detail="deadline exceeded")
            continue
        exc = task.exception()
        if exc is None:
            records_by_type[record_type] = tuple(task.result())
            continue
        records_by_type[record_type] = ()
        if isinstance(exc, ResolveFailure):
            errors[record_type] = RecordError(kind=exc.kind, detail=str(exc))
        else:
            logger.error(
                f"Unexpected resolver error: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"domain": domain, "record_type": record_type.value, "error_type": type(exc).__name__},
            )
            errors[record_type] = RecordError(kind=FailureKind.SERVER_ERROR, detail=str(exc))

    truncated = bool(pending)
    duration_ms = round((time.time() - start_time) * 1000, 2)

    if len(errors) == len(RECORD_TYPES) and all(err.kind in TRANSPORT_KINDS for err in errors.values()):
        logger.error(
            "DNS lookup failed for every record type",
            extra={"domain": domain, "duration": duration_ms, "outcome": "error"},
        )
        details = "; ".join(f"{rt.value}: {err.detail}" for rt, err in errors.items())
        raise LookupFailure(f"No nameserver reachable for {domain} ({details})", domain=domain)

    result = DNSResult(
        domain=domain,
        queried_at=queried_at,
        records_by_type=records_by_type,
        errors=errors,
        truncated=truncated,
    )

    logger.info(
        "DNS lookup completed",
        extra={
            "domain": domain,
            "found": result.total_records,
            "duration": duration_ms,
            "truncated": truncated,
            "outcome": "partial" if errors else "success",
        },
    )
    return result


async def lookup(
    domain: str,
    cfg: Optional[GuardConfig] = None,
    *,
    resolver: Optional[ResolverClient] = None,
) -> DNSResult:
    """lookup_all with resolver settings and deadline taken from cfg."""
    cfg = cfg or GuardConfig()
    resolver = resolver or DnsPythonResolver.from_config(cfg.resolver)
    return await lookup_all(
        domain,
        resolver,
        nameservers=cfg.resolver.nameservers or None,
        timeout=cfg.resolver.timeout_seconds,
        deadline=cfg.lookup.deadline_seconds,
    )
