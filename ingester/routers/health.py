"""
Native Ingester - Health Check Router

Key endpoints:
- GET /__health      - every dependency check plus outcome counters; always 200
- GET /__gtg         - good-to-go: 200 only if every check passes, else 503
- GET /__build-info  - service name and version

Checks are registered on ``app.state.health_checks`` as (name, callable)
pairs; each callable returns a status message or raises ConnectivityError.
Handlers are sync so the blocking probes run in the threadpool.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from .. import __version__
from ..core import metrics
from ..core.errors import ConnectivityError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

HealthCheck = tuple[str, Callable[[], str]]


class CheckResult(BaseModel):
    name: str
    ok: bool
    message: str


class HealthResponse(BaseModel):
    ok: bool
    service: str
    version: str
    timestamp: str
    checks: list[CheckResult]
    counts: dict
    uptime_seconds: int


class BuildInfoResponse(BaseModel):
    service: str
    version: str


def _run_checks(request: Request) -> list[CheckResult]:
    checks: list[HealthCheck] = getattr(request.app.state, "health_checks", [])
    results = []
    for name, check in checks:
        try:
            results.append(CheckResult(name=name, ok=True, message=check()))
        except ConnectivityError as exc:
            logger.warning("Health check %s failed: %s", name, exc)
            results.append(CheckResult(name=name, ok=False, message=str(exc)))
    return results


def _service_name(request: Request) -> str:
    return getattr(request.app.state, "service_name", "native-ingester")


@router.get(
    "/__health",
    response_model=HealthResponse,
    summary="Detailed health check",
)
def health_check(request: Request) -> HealthResponse:
    results = _run_checks(request)
    return HealthResponse(
        ok=all(result.ok for result in results),
        service=_service_name(request),
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks=results,
        counts=dict(metrics.get_counts()),
        uptime_seconds=metrics.get_uptime(),
    )


@router.get(
    "/__gtg",
    responses={
        200: {"description": "Every dependency is reachable"},
        503: {"description": "At least one dependency check failed"},
    },
    summary="Good-to-go probe",
)
def good_to_go(request: Request):
    failed = [result for result in _run_checks(request) if not result.ok]
    if failed:
        return JSONResponse(
            status_code=503,
            content={"ok": False, "failed": [result.model_dump() for result in failed]},
        )
    return PlainTextResponse("OK")


@router.get("/__build-info", response_model=BuildInfoResponse)
def build_info(request: Request) -> BuildInfoResponse:
    return BuildInfoResponse(service=_service_name(request), version=__version__)
