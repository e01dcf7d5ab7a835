"""
Response Envelope Helpers

Every endpoint answers with {"success": bool, ...}:
- success: data, plus optional message, pagination, meta
- error: error message, plus optional meta
"""

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success_body(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    if pagination:
        body["pagination"] = pagination
    if meta:
        body["meta"] = meta
    return body


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        jsonable_encoder(success_body(data, message, pagination, meta)),
        status_code=status_code,
        headers=headers,
    )


def error_body(error: str, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": error}
    if meta:
        body["meta"] = meta
    return body


def error_response(
    error: str,
    status_code: int = 400,
    meta: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        jsonable_encoder(error_body(error, meta)),
        status_code=status_code,
        headers=headers,
    )


def validation_error(errors: Dict[str, str]) -> JSONResponse:
    return error_response("Validation failed", 400, meta={"errors": errors})


def not_found_response(resource: str = "Resource") -> JSONResponse:
    return error_response(f"{resource} not found", 404)


def unauthorized_response(message: str = "Authentication required") -> JSONResponse:
    return error_response(message, 401)


def forbidden_response(message: str = "Access denied") -> JSONResponse:
    return error_response(message, 403)


def rate_limit_response(retry_after: Optional[int] = None) -> JSONResponse:
    headers = {"Retry-After": str(retry_after)} if retry_after else None
    return error_response("Too many requests. Please try again later.", 429, headers=headers)


def with_cache_headers(
    response: JSONResponse,
    public: bool = False,
    max_age: int = 60,
    stale_while_revalidate: int = 30,
) -> JSONResponse:
    directive = "public" if public else "private"
    response.headers["Cache-Control"] = (
        f"{directive}, max-age={max_age}, stale-while-revalidate={stale_while_revalidate}"
    )
    return response
