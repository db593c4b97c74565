"""
Shared response envelope for API views.

Every endpoint answers with `{"success": bool, "data": {...}, "error": {...}}`.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

# Domain errors expose a `code`; this decides the HTTP status they surface with.
HTTP_STATUS_BY_ERROR_CODE = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "invalid_signature": status.HTTP_401_UNAUTHORIZED,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "not_found": status.HTTP_404_NOT_FOUND,
    "unknown_provider": status.HTTP_404_NOT_FOUND,
    "illegal_transition": status.HTTP_409_CONFLICT,
    "not_cancellable": status.HTTP_409_CONFLICT,
    "illegal_state": status.HTTP_409_CONFLICT,
    "conflict": status.HTTP_409_CONFLICT,
    "gateway_error": status.HTTP_502_BAD_GATEWAY,
}


def success(*, data: dict, http_status: int = status.HTTP_200_OK) -> Response:
    return Response({"success": True, "data": data}, status=http_status)


def error(*, message: str, code: str, field: str | None = None, http_status: int = 400) -> Response:
    payload: dict = {"success": False, "data": {}, "error": {"message": message, "code": code}}
    if field:
        payload["error"]["field"] = field
    return Response(payload, status=http_status)


def domain_error(exc: Exception) -> Response:
    code = getattr(exc, "code", "error")
    return error(
        message=str(exc),
        code=code,
        field=getattr(exc, "field", None),
        http_status=HTTP_STATUS_BY_ERROR_CODE.get(code, status.HTTP_400_BAD_REQUEST),
    )


def invalid_input(errors: dict) -> Response:
    payload = error(message="Invalid input.", code="validation_error", http_status=status.HTTP_400_BAD_REQUEST)
    payload.data["error"]["details"] = errors
    return payload
