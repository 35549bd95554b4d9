"""FastAPI application entrypoint for the cyberGuard service."""
from __future__ import annotations

import os
import time
import uuid
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cyberGuard.api.models import err
from cyberGuard.api.routes import dns, health
from cyberGuard.export import TOOL_VERSION
from cyberGuard.logging_config import reset_request_id, sanitize_log_data, set_request_id, setup_logging
from cyberGuard.resolver.client import ResolverClient
from cyberGuard.resolver.config import GuardConfig
from cyberGuard.resolver.errors import FailureKind, ReconError
from cyberGuard.scanner.probe import ServiceProber

logger = setup_logging("api")

ERROR_STATUS = {
    FailureKind.INVALID_DOMAIN: 400,
    FailureKind.NXDOMAIN: 404,
    FailureKind.TIMEOUT: 504,
}


def create_app(
    config: Optional[GuardConfig] = None,
    resolver: Optional[ResolverClient] = None,
    prober: Optional[ServiceProber] = None,
) -> FastAPI:
    app = FastAPI(title="cyberGuard-api", version=TOOL_VERSION)
    app.state.config = config or GuardConfig.load(os.getenv("CYBERGUARD_CONFIG"))
    app.state.resolver = resolver
    app.state.prober = prober

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next: Callable) -> Response:
        """Log all HTTP requests with timing and outcome."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = set_request_id(request_id)
        start_time = time.time()

        logger.info(
            "Incoming request",
            extra={
                "action": f"{request.method} {request.url.path}",
                "user_input": sanitize_log_data(dict(request.query_params)),
            },
        )
        try:
            response = await call_next(request)
            logger.info(
                "Request completed",
                extra={
                    "action": f"{request.method} {request.url.path}",
                    "status_code": response.status_code,
                    "duration": round((time.time() - start_time) * 1000, 2),
                    "outcome": "success" if response.status_code < 400 else "error",
                },
            )
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as exc:
            logger.error(
                f"Request failed: {str(exc)}",
                exc_info=True,
                extra={
                    "action": f"{request.method} {request.url.path}",
                    "duration": round((time.time() - start_time) * 1000, 2),
                    "outcome": "exception",
                    "error_type": type(exc).__name__,
                },
            )
            raise
        finally:
            reset_request_id(token)

    @app.exception_handler(ReconError)
    async def recon_error_handler(request: Request, exc: ReconError):
        status_code = ERROR_STATUS.get(exc.kind, 502)
        logger.warning(
            f"Operation failed: {exc}",
            extra={"domain": exc.domain, "error_kind": exc.kind.value, "status_code": status_code},
        )
        return JSONResponse(status_code=status_code, content=err(str(exc), exc.kind))

    app.include_router(dns.router)
    app.include_router(health.router)

    @app.get("/")
    async def root():
        return {"status": "ok", "service": "cyberGuard-api"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cyberGuard.api.server:app",
        host=os.getenv("CYBERGUARD_API_HOST", "127.0.0.1"),
        port=int(os.getenv("CYBERGUARD_API_PORT", "8000")),
        reload=bool(os.getenv("CYBERGUARD_API_RELOAD", "")),
    )
