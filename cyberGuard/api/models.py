"""Shared response envelope for the API layer."""
from __future__ import annotations

from pydantic import BaseModel, Field

from cyberGuard.resolver.errors import FailureKind


class APIStatus(BaseModel):
    status: str = Field(default="ok")


class ErrorResponse(APIStatus):
    detail: str
    kind: FailureKind
    status: str = Field(default="error")


def ok(data: object) -> dict:
    return {"status": "ok", "data": data}


def err(detail: str, kind: FailureKind) -> dict:
    return ErrorResponse(detail=detail, kind=kind).model_dump(mode="json")
