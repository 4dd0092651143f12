from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from starlette.responses import Response

from .config import LOG_EXCLUDED_PATHS
from .errors import translate
from .logsink import LogSink
from .models import LogRecord

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"


def client_ip(request: Request) -> str:
    """Resolve the caller's address, trusting proxy headers first."""

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for header in ("x-real-ip", "x-client-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_IP


def install_request_logger(app: FastAPI, sink: LogSink) -> None:
    @app.middleware("http")
    async def log_requests(request: Request, call_next) -> Response:
        started = time.perf_counter()
        ip = client_ip(request)
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        logger.info("%s %s - IP: %s", request.method, target, ip)

        try:
            response = await call_next(request)
        except Exception as exc:
            response = translate(exc)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info("%s %s - %s - %sms - IP: %s", request.method, target, response.status_code, elapsed_ms, ip)

        if request.url.path not in LOG_EXCLUDED_PATHS:
            try:
                sink.submit(
                    LogRecord(
                        method=request.method,
                        url=target,
                        ip=ip,
                        status_code=response.status_code,
                        duration=elapsed_ms,
                        user_agent=request.headers.get("user-agent"),
                        user_id=getattr(request.state, "user_id", None),
                    )
                )
            except Exception:
                logger.debug("Skipping request log record", exc_info=True)
        return response
