from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Exported:
    """File returned by /api/export during the smoke run."""

    file_name: str
    file_data: str
    file_size: int


class SmokeError(RuntimeError):
    """Raised when the smoke flow cannot proceed (e.g., server never ready)."""


class ApiKeyError(SmokeError):
    """Raised when generating or deleting an API key fails after retries."""


class ExportError(SmokeError):
    """Raised when exporting the sample scene fails after retries."""


class ReimportError(SmokeError):
    """Raised when importing the exported bytes back fails after retries."""
