"""Health endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Request

from cyberGuard.api.models import ok
from cyberGuard.export import TOOL_VERSION

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(request: Request):
    cfg = request.app.state.config
    return ok(
        {
            "status": "healthy",
            "version": TOOL_VERSION,
            "nameservers": cfg.resolver.nameservers or "system",
            "scan_concurrency": cfg.scan.concurrency,
        }
    )
