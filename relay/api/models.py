from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------
# Requests
# ------------------------
# Required fields are Optional here on purpose: the handlers check them and
# answer with the 400 envelope before touching the credential store.
class KeyGenerateRequest(_CamelModel):
    """Optional caller identity, used for logging only."""
    user_id: Optional[Union[int, str]] = None
    username: Optional[str] = None


class KeyDeleteRequest(_CamelModel):
    key: Optional[str] = None


class ExportRequest(_CamelModel):
    api_key: Optional[str] = None
    data: Any = None
    format: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    publish_to_marketplace: Optional[bool] = None
    asset_type: Optional[str] = None


class ImportRequest(_CamelModel):
    api_key: Optional[str] = None
    source: Optional[str] = None
    source_value: Optional[Union[str, int]] = None
    format: Optional[str] = None


# ------------------------
# Responses
# ------------------------
class StatusResponse(_CamelModel):
    status: str
    timestamp: str
    api_keys: int
    uptime: float
    port: int
    version: str


class KeyGenerateResponse(_CamelModel):
    success: bool = True
    key: str
    expires_in: int
    expires_at: str
    message: str


class KeyDeleteResponse(_CamelModel):
    success: bool = True
    deleted: bool


class ExportResponse(_CamelModel):
    success: bool = True
    download_url: str
    file_path: str
    file_name: str
    file_data: str
    file_size: int
    timestamp: str
    asset_id: Optional[str] = None
    marketplace_url: Optional[str] = None
    publish_error: Optional[str] = None


class ImportResponse(_CamelModel):
    success: bool = True
    data: str
    format: str
    size: int
    timestamp: str
    message: str


class ErrorResponse(BaseModel):
    """Envelope for every failed request."""
    success: bool = False
    error: str
    message: Optional[str] = None
    path: Optional[str] = None
