# app/core/errors.py
from __future__ import annotations

from typing import Any, Optional


class AppError(Exception):
    """
    Base class for errors that carry an HTTP status.
    Routers translate these into HTTPException with the same status.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class ConflictError(AppError):
    """Duplicate grant (rule_id, event_id) rejected by the storage layer."""

    status_code = 409


class ConfigError(AppError):
    """Missing infrastructure configuration (storage credentials etc.)."""

    status_code = 500
