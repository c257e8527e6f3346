from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx

from relay.logging_conf import get_logger
from runner.types import ApiKeyError, Exported, ExportError, ReimportError, SmokeError

logger = get_logger("runner.client")


async def wait_for_status(base_url: str, timeout_s: float = 20.0) -> dict:
    """Poll /api/status until the relay reports online or raise after a timeout."""
    deadline = time.monotonic() + timeout_s
    async with httpx.AsyncClient(base_url=base_url, timeout=5.0) as client:
        while time.monotonic() < deadline:
            try:
                r = await client.get("/api/status")
                if r.status_code == 200 and r.json().get("status") == "online":
                    body = r.json()
                    logger.info(
                        "status.ok",
                        extra={"event": "status_ok", "version": body.get("version")},
                    )
                    return body
            except httpx.HTTPError:
                pass
            await asyncio.sleep(0.25)
    raise SmokeError("Relay did not report online within timeout")


async def _post(
    client: httpx.AsyncClient, path: str, payload: dict[str, Any], *, retries: int
) -> dict:
    """POST with a small retry loop; 4xx answers are not retried."""
    last_err: Exception | None = None
    for attempt in range(retries):
        try:
            r = await client.post(path, json=payload)
            if 400 <= r.status_code < 500:
                raise SmokeError(f"{path} rejected: {r.status_code} {r.text}")
            r.raise_for_status()
            return r.json()
        except httpx.HTTPError as e:  # pragma: no cover - network flakiness
            last_err = e
            logger.warning(
                "post.retry",
                extra={"event": "post_retry", "path": path, "attempt": attempt + 1, "error": str(e)},
            )
    raise SmokeError(str(last_err) if last_err else f"{path} failed")


async def generate_key(client: httpx.AsyncClient, *, username: str, retries: int = 3) -> str:
    try:
        data = await _post(client, "/api/key/generate", {"username": username}, retries=retries)
    except SmokeError as e:
        raise ApiKeyError(str(e)) from e
    logger.info("key.generated", extra={"event": "key_generated", "expires_at": data["expiresAt"]})
    return data["key"]


async def delete_key(client: httpx.AsyncClient, key: str, *, retries: int = 3) -> bool:
    try:
        data = await _post(client, "/api/key/delete", {"key": key}, retries=retries)
    except SmokeError as e:
        raise ApiKeyError(str(e)) from e
    return bool(data.get("deleted"))


async def export_scene(
    client: httpx.AsyncClient, key: str, scene: dict, *, name: str, retries: int = 2
) -> Exported:
    try:
        data = await _post(
            client,
            "/api/export",
            {"apiKey": key, "data": scene, "name": name},
            retries=retries,
        )
    except SmokeError as e:
        raise ExportError(str(e)) from e
    logger.info(
        "export.ok",
        extra={"event": "export_ok", "file_name": data["fileName"], "size": data["fileSize"]},
    )
    return Exported(
        file_name=data["fileName"], file_data=data["fileData"], file_size=data["fileSize"]
    )


async def reimport_file(
    client: httpx.AsyncClient, key: str, file_data: str, *, retries: int = 2
) -> dict:
    """Send exported bytes back through /api/import with source=file."""
    try:
        return await _post(
            client,
            "/api/import",
            {"apiKey": key, "source": "file", "sourceValue": file_data, "format": "rbxmx"},
            retries=retries,
        )
    except SmokeError as e:
        raise ReimportError(str(e)) from e
