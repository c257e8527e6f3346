from __future__ import annotations

import base64
import time
from datetime import UTC, datetime
from typing import Any

from ..config import Settings
from ..domain.credentials import CredentialStore, hash_secret
from ..domain.errors import AuthError, MissingFieldError
from ..domain.scene import serialize
from ..logging_conf import get_logger
from .gateway import AssetGateway

logger = get_logger("service.relay")

EXPORT_DIR = "/storage/emulated/0/Download"


def now_ms() -> int:
    """Return current time in epoch milliseconds."""
    return int(time.time() * 1000)


def iso_from_ms(ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC timestamp (`...Z`)."""
    dt = datetime.fromtimestamp(ms / 1000, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def require(**fields: Any) -> None:
    """Raise MissingFieldError if any of the given fields is falsy (None, "", 0, {}, [])."""
    missing = [k for k, v in fields.items() if not v]
    if missing:
        raise MissingFieldError(f"Dados incompletos ({', '.join(missing)} obrigatório)")


def authenticate(store: CredentialStore, api_key: str) -> str:
    """Return the upstream credential behind `api_key` or raise AuthError."""
    credential = store.validate(api_key)
    if credential is None:
        raise AuthError("API key inválida ou expirada")
    return credential


def _refresh(store: CredentialStore, api_key: str) -> None:
    # A key revoked or expired while the request was in flight is not revived.
    if not store.refresh(api_key):
        logger.info(
            "key.refresh_skipped",
            extra={"event": "key_refresh_skipped", "key_hash": hash_secret(api_key)[:8]},
        )


# ------------------------
# Use-cases
# ------------------------

def status_snapshot(store: CredentialStore, settings: Settings, *, started_at: float) -> dict:
    """Liveness payload for /api/status."""
    return {
        "status": "online",
        "timestamp": iso_from_ms(now_ms()),
        "apiKeys": store.count(),
        "uptime": round(time.monotonic() - started_at, 3),
        "port": settings.port,
        "version": settings.version,
    }


def generate_key(
    store: CredentialStore, *, user_id: str | int | None = None, username: str | None = None
) -> dict:
    """Issue a new API key."""
    key = store.issue()
    expires_at = store.expires_at_ms(key) or now_ms() + int(store.ttl_seconds * 1000)
    logger.info(
        "key.generate",
        extra={"event": "key_generate", "requested_by": username or user_id},
    )
    return {
        "key": key,
        "expiresIn": int(store.ttl_seconds),
        "expiresAt": iso_from_ms(expires_at),
        "message": "API Key gerada com sucesso!",
    }


def delete_key(store: CredentialStore, *, key: str | None) -> dict:
    """Revoke an API key; reports whether anything was deleted."""
    require(key=key)
    return {"deleted": store.revoke(key)}


async def export_scene(
    store: CredentialStore,
    gateway: AssetGateway,
    settings: Settings,
    *,
    api_key: str | None,
    data: Any,
    base_url: str,
    format: str | None = None,
    name: str | None = None,
    description: str | None = None,
    publish: bool = False,
    asset_type: str | None = None,
) -> dict:
    """Serialize a scene and optionally publish it upstream.

    A failed publish is reported in `publishError`; the file is still returned.
    """
    require(apiKey=api_key, data=data)
    credential = authenticate(store, api_key)

    content = serialize(data, strict=settings.strict_properties)
    _refresh(store, api_key)
    file_bytes = content.encode("utf-8")
    file_name = f"{name or 'export'}_{now_ms()}.{format or 'rbxmx'}"

    out: dict[str, Any] = {
        "downloadUrl": f"{base_url.rstrip('/')}/download/{file_name}",
        "filePath": f"{EXPORT_DIR}/{file_name}",
        "fileName": file_name,
        "fileData": base64.b64encode(file_bytes).decode("ascii"),
        "fileSize": len(file_bytes),
        "timestamp": iso_from_ms(now_ms()),
    }

    if publish:
        result = await gateway.upload(
            credential, file_bytes, asset_type or "Model", name or "export", description
        )
        if result.success:
            out["assetId"] = result.asset_id
            out["marketplaceUrl"] = f"{settings.marketplace_url}{result.asset_id}"
        else:
            out["publishError"] = result.error
            logger.warning(
                "export.publish_failed",
                extra={"event": "export_publish_failed", "file_name": file_name},
            )

    logger.info(
        "export.done",
        extra={"event": "export_done", "file_name": file_name, "size": len(file_bytes)},
    )
    return out


async def import_asset(
    store: CredentialStore,
    gateway: AssetGateway,
    *,
    api_key: str | None,
    source: str | None,
    source_value: str | int | None,
    format: str | None = None,
) -> dict:
    """Fetch asset bytes from a URL, an asset id or an inline payload."""
    require(apiKey=api_key, source=source, sourceValue=source_value)
    authenticate(store, api_key)

    file_bytes = await gateway.fetch(source, str(source_value))
    _refresh(store, api_key)
    logger.info(
        "import.done",
        extra={"event": "import_done", "source": source, "size": len(file_bytes)},
    )
    return {
        "data": base64.b64encode(file_bytes).decode("ascii"),
        "format": format or "rbxm",
        "size": len(file_bytes),
        "timestamp": iso_from_ms(now_ms()),
        "message": "Importação processada com sucesso",
    }
