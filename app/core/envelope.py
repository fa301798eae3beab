"""
Response envelope helpers.

Successful responses are ``{"ok": true, "data": ...}``; failures are
``{"ok": false, "error": {"code", "message"}}`` and are produced by the
exception handlers in ``app.main``.
"""

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.core.exceptions import ErrorCode


def ok(data: Any = None) -> Dict[str, Any]:
    return {"ok": True, "data": jsonable_encoder(data)}


def error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    error: Dict[str, Any] = {"code": code.value, "message": message}
    if details:
        error["details"] = jsonable_encoder(details)
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": error},
        headers=headers,
    )
