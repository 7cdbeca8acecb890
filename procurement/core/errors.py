from __future__ import annotations

from fastapi import HTTPException


def http_error_from(e: Exception) -> HTTPException:
    """
    Services raise ValueError/PermissionError with readable messages:
      "... not found"  -> 404
      "... must ..."   -> 400 (input rule)
      PermissionError  -> 403
      anything else    -> 409 (state conflict)
    """
    msg = str(e)
    if isinstance(e, PermissionError):
        return HTTPException(status_code=403, detail=msg)
    if "not found" in msg:
        return HTTPException(status_code=404, detail=msg)
    if " must " in f" {msg} ":
        return HTTPException(status_code=400, detail=msg)
    return HTTPException(status_code=409, detail=msg)
