from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .timeutils import now_utc


def envelope(status_code: int, success: bool, message: str, data: Any = None, error: Any = None) -> Dict[str, Any]:
    """Build the uniform body every endpoint answers with.

    ``data`` and ``error`` are only present when they carry something.
    """

    body: Dict[str, Any] = {
        "status": status_code,
        "success": success,
        "message": message,
        "timestamp": now_utc().isoformat(),
    }
    if data is not None:
        body["data"] = jsonable_encoder(data)
    if error is not None:
        body["error"] = jsonable_encoder(error)
    return body


def send_response(
    status_code: int,
    success: bool,
    message: str,
    data: Any = None,
    error: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(status_code, success, message, data, error), headers=headers)


def send_success(message: str = "Success", data: Any = None, status_code: int = 200) -> JSONResponse:
    return send_response(status_code, True, message, data)


def send_error(message: str = "Internal Server Error", error: Any = None, status_code: int = 500) -> JSONResponse:
    return send_response(status_code, False, message, error=error)
