from __future__ import annotations

from typing import Any, Dict, Optional


class StorageUnavailable(Exception):
    """Raised when the token store cannot be reached. Never retried here."""

    status_code = 503
    error_code = "STORAGE_UNAVAILABLE"

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


__all__ = ["StorageUnavailable"]
