from __future__ import annotations

from fastapi import HTTPException


def http_error(status_code: int, message: str, errors: dict[str, str] | None = None) -> HTTPException:
    """
    HTTPException whose detail carries a field-keyed error map, e.g.
    http_error(404, "Account not found", {"account": "Account does not exist"}).
    """
    if not errors:
        return HTTPException(status_code=status_code, detail=message)
    return HTTPException(status_code=status_code, detail={"message": message, "errors": errors})
