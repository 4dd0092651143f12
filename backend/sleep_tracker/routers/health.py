from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from .. import health
from ..middleware import client_ip
from ..responses import send_success

router = APIRouter(prefix="/healthcheck", tags=["health"])


@router.get("")
def healthcheck(request: Request) -> JSONResponse:
    data = health.snapshot(request.app.state.store, client_ip(request))
    return send_success("Health check completed successfully", data)
