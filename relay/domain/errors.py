from __future__ import annotations

__all__ = [
    "RelayError",
    "MissingFieldError",
    "AuthError",
    "ParseError",
    "InvalidSourceError",
    "UpstreamError",
    "InternalError",
]


class RelayError(Exception):
    """Base class for errors that cross the HTTP boundary.

    `code` is a stable machine code; `status_code` is the HTTP status the
    boundary answers with.
    """

    code: str = "relay_error"
    status_code: int = 500


class MissingFieldError(RelayError):
    code = "missing_field"
    status_code = 400


class AuthError(RelayError):
    code = "invalid_api_key"
    status_code = 401


class ParseError(RelayError):
    code = "malformed_scene"
    status_code = 400


class InvalidSourceError(RelayError):
    code = "invalid_source"
    status_code = 400


class UpstreamError(RelayError):
    """Upload/fetch failure talking to the upstream platform."""

    code = "upstream_error"
    status_code = 502

    def __init__(self, message: str, *, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status


class InternalError(RelayError):
    code = "internal_error"
    status_code = 500
