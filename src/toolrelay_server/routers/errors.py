"""HTTP error bodies shared by the routers.

Every error uses the same shape:

    {"detail": {"error": {"code": ..., "message": ..., "details": {...}}}}
"""

from typing import Any

from fastapi import HTTPException


def api_error(
    status_code: int, code: str, message: str, details: dict[str, Any] | None = None
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"error": {"code": code, "message": message, "details": details or {}}},
    )


def not_found(kind: str, key: str) -> HTTPException:
    return api_error(404, f"{kind}_not_found", f"{kind.capitalize()} {key} not found", {f"{kind}_id": key})
