"""Exceptions raised by B2 operations."""

from __future__ import annotations

import requests


class B2Error(Exception):
    """Base exception for all b2kit errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransportError(B2Error):
    """Raised when no response could be obtained.

    This covers connection failures, timeouts and, for the local backend,
    filesystem I/O failures.
    """

    pass


class BackendError(B2Error):
    """Raised when the service rejects a request."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.status = status
        self.code = code

    @classmethod
    def from_response(cls, resp: requests.Response) -> "BackendError":
        """Classify a non-2xx response using the B2 JSON error body."""
        code = None
        msg = f"{resp.status_code}: "
        try:
            resp_json = resp.json()
        except ValueError:
            resp_json = None
        if isinstance(resp_json, dict):
            code = resp_json.get("code")
            msg += resp_json.get("message") or code or resp.reason or ""
        else:
            msg += resp.text or resp.reason or ""
        return cls(
            msg,
            status=resp.status_code,
            code=code,
            details={"url": resp.url},
        )


class AuthorizationError(BackendError):
    """Raised when account authorization is rejected."""

    pass


class QuotaExceededError(BackendError):
    """Raised when a local write would exceed the storage maximum."""

    pass


class UploadFailedError(B2Error):
    """Raised when a large file upload cannot be completed.

    The upload has been canceled (best effort) by the time this is raised.
    """

    def __init__(
        self,
        message: str,
        file_id: str | None = None,
        part_number: int | None = None,
        parts: list | None = None,
    ) -> None:
        super().__init__(message)
        self.file_id = file_id
        self.part_number = part_number
        self.parts = parts or []
