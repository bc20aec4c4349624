# Overview: Base exception for service-layer business errors.

from __future__ import annotations


class ServiceError(Exception):
    """
    Business error with a stable machine code.

    Routes turn it into {"ok": false, "error": code, **details} with
    status_code. Codes ending in _NOT_FOUND default to 404.
    """
    default_status = 400

    def __init__(self, code: str, details: dict | None = None, status_code: int | None = None):
        super().__init__(code)
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        elif code.endswith("_NOT_FOUND"):
            self.status_code = 404
        else:
            self.status_code = self.default_status
