from __future__ import annotations

import base64
import binascii
from typing import Optional

import httpx
from pydantic import BaseModel

from ..domain.errors import InvalidSourceError, UpstreamError
from ..logging_conf import get_logger

__all__ = [
    "DEFAULT_UPLOAD_URL",
    "DEFAULT_ASSET_DELIVERY_URL",
    "UploadResult",
    "AssetGateway",
]

DEFAULT_UPLOAD_URL = "https://data.roblox.com/Data/Upload.ashx"
DEFAULT_ASSET_DELIVERY_URL = "https://assetdelivery.roblox.com/v1/asset/"

logger = get_logger("service.gateway")


class UploadResult(BaseModel):
    success: bool
    asset_id: Optional[str] = None
    error: Optional[str] = None


class AssetGateway:
    """
    Pass-through client for the upstream platform.

    Notes
    - `upload` never raises; failures come back as `UploadResult(success=False)`
      so an export can still return its file.
    - `fetch` raises `InvalidSourceError` for bad source descriptors and
      `UpstreamError` for HTTP or transport failures.
    - Pass `client` to inject a preconfigured `httpx.AsyncClient` (tests use a
      `MockTransport`); an injected client is not closed by `aclose()`.
    - Without one, the owned client is created on first use, so building an
      app at import time opens no connection pool.
    """

    def __init__(
        self,
        *,
        upload_url: str = DEFAULT_UPLOAD_URL,
        asset_delivery_url: str = DEFAULT_ASSET_DELIVERY_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._upload_url = upload_url
        self._asset_delivery_url = asset_delivery_url
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AssetGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------
    # Upload
    # ------------------------
    async def upload(
        self,
        credential: str,
        file_bytes: bytes,
        asset_kind: str,
        name: str,
        description: str | None = None,
    ) -> UploadResult:
        """Publish `file_bytes` as a new asset and return the assigned id."""
        try:
            r = await self.client.post(
                self._upload_url,
                files={"file": (f"{name}.rbxm", file_bytes)},
                headers={"Cookie": f".ROBLOSECURITY={credential}"},
                params={
                    "assetType": asset_kind,
                    "name": name,
                    "description": description or "",
                    "genreTypeId": 1,
                },
            )
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            msg = f"Upload rejected with status {e.response.status_code}"
            logger.warning(
                "upload.failed",
                extra={"event": "upload_failed", "status_code": e.response.status_code},
            )
            return UploadResult(success=False, error=msg)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("upload.failed", extra={"event": "upload_failed", "error": str(e)})
            return UploadResult(success=False, error=str(e) or type(e).__name__)

        asset_id = r.text.strip()
        logger.info("upload.done", extra={"event": "upload_done", "asset_id": asset_id})
        return UploadResult(success=True, asset_id=asset_id)

    # ------------------------
    # Fetch
    # ------------------------
    async def _get_bytes(self, url: str, params: dict | None = None) -> bytes:
        try:
            r = await self.client.get(url, params=params)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamError(
                f"Upstream responded with status {e.response.status_code}",
                upstream_status=e.response.status_code,
            ) from e
        except httpx.InvalidURL as e:
            raise InvalidSourceError(f"Invalid URL: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(str(e) or type(e).__name__) from e
        return r.content

    async def fetch(self, source_kind: str, source_value: str) -> bytes:
        """Return the raw bytes described by (`source_kind`, `source_value`)."""
        if source_kind == "url":
            return await self._get_bytes(source_value)

        if source_kind == "assetId":
            asset_id = str(source_value).strip()
            if not (asset_id.isascii() and asset_id.isdigit()):
                raise InvalidSourceError("assetId must be numeric")
            return await self._get_bytes(self._asset_delivery_url, params={"id": asset_id})

        if source_kind == "file":
            try:
                return base64.b64decode(source_value, validate=True)
            except (binascii.Error, ValueError) as e:
                raise InvalidSourceError("file payload is not valid base64") from e

        raise InvalidSourceError("Fonte inválida. Use: url, assetId ou file")
