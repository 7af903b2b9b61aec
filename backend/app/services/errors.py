# Overview: Exception hierarchy shared by the service layer.

from __future__ import annotations


class ServiceError(Exception):
    """Base for business-rule failures; carries the HTTP status routes answer with."""
    status_code = 400

    def __init__(self, message: str, *, data: dict | None = None):
        super().__init__(message)
        self.data = data


class NotFoundError(ServiceError):
    status_code = 404


class AccessDeniedError(ServiceError):
    status_code = 403


class AuthenticationError(ServiceError):
    status_code = 401
