"""DNS lookup and subdomain scan endpoints."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, Request

from cyberGuard.api.models import ok
from cyberGuard.export import export_dns_result, export_subdomain_result
from cyberGuard.logging_config import get_logger
from cyberGuard.resolver.aggregator import lookup
from cyberGuard.resolver.client import DnsPythonResolver, ResolverClient
from cyberGuard.resolver.config import GuardConfig
from cyberGuard.scanner.subdomains import scan

logger = get_logger("api")
router = APIRouter(prefix="/dns", tags=["dns"])


def _resolver(request: Request) -> ResolverClient:
    """Resolver shared by every request; built from config on first use."""
    state = request.app.state
    if state.resolver is None:
        state.resolver = DnsPythonResolver.from_config(state.config.resolver)
    return state.resolver


@router.get("/lookup")
async def dns_lookup(
    request: Request,
    domain: str = Query(..., min_length=1, max_length=253),
    deadline: Optional[float] = Query(None, gt=0, le=120),
):
    cfg: GuardConfig = request.app.state.config
    if deadline is not None:
        cfg = cfg.model_copy(update={"lookup": cfg.lookup.model_copy(update={"deadline_seconds": deadline})})

    result = await lookup(domain, cfg, resolver=_resolver(request))

    logger.info(
        "DNS lookup served",
        extra={"domain": result.domain, "found": result.total_records, "outcome": "success"},
    )
    return ok(export_dns_result(result, user_agent=request.headers.get("user-agent")))


@router.get("/subdomains")
async def subdomain_scan(
    request: Request,
    domain: str = Query(..., min_length=1, max_length=253),
    deadline: Optional[float] = Query(None, gt=0, le=600),
):
    cfg: GuardConfig = request.app.state.config
    if deadline is not None:
        cfg = cfg.model_copy(update={"scan": cfg.scan.model_copy(update={"deadline_seconds": deadline})})

    result = await scan(domain, cfg, resolver=_resolver(request), prober=request.app.state.prober)

    logger.info(
        "Subdomain scan served",
        extra={"domain": result.domain, "found": result.total_found, "outcome": "success"},
    )
    return ok(export_subdomain_result(result, user_agent=request.headers.get("user-agent")))
