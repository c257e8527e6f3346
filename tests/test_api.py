from __future__ import annotations

import base64
import re

import httpx
from fastapi.testclient import TestClient

from relay.config import Settings
from relay.main import create_app

SCENE = {
    "objects": [
        {
            "ClassName": "Part",
            "Name": "Block",
            "Properties": {"Size": {"type": "Vector3", "x": 4, "y": 1, "z": 2}},
        }
    ]
}


# ------------------------
# Status / landing
# ------------------------
def test_status(client, api_key):
    r = client.get("/api/status")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "online"
    assert body["apiKeys"] == 1
    assert body["port"] == 10000
    assert body["version"] == "1.0.0"
    assert body["uptime"] >= 0
    assert body["timestamp"].endswith("Z")


def test_landing_page(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    assert "API Keys Ativas: 0" in r.text
    assert "/api/export" in r.text


def test_unknown_route_envelope(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json() == {"success": False, "error": "Endpoint não encontrado", "path": "/api/nope"}


def test_request_id_is_propagated(client):
    r = client.get("/api/status", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    assert client.get("/api/status").headers["X-Request-ID"]


# ------------------------
# Keys
# ------------------------
def test_generate_key(client, store):
    r = client.post("/api/key/generate", json={"userId": 42, "username": "Player"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert re.fullmatch(r"[0-9a-f]{64}", body["key"])
    assert body["expiresIn"] == 1800
    assert body["expiresAt"].endswith("Z")
    assert body["message"] == "API Key gerada com sucesso!"
    assert store.validate(body["key"]) == body["key"]


def test_generate_key_without_body(client):
    r = client.post("/api/key/generate")
    assert r.status_code == 200
    assert r.json()["success"] is True


def test_delete_key(client, api_key, store):
    r = client.post("/api/key/delete", json={"key": api_key})
    assert r.json() == {"success": True, "deleted": True}
    assert store.validate(api_key) is None
    r = client.post("/api/key/delete", json={"key": api_key})
    assert r.json() == {"success": True, "deleted": False}


def test_delete_key_requires_key(client):
    r = client.post("/api/key/delete", json={})
    assert r.status_code == 400
    assert r.json()["success"] is False


# ------------------------
# Export
# ------------------------
def test_export_returns_encoded_file(client, api_key):
    r = client.post("/api/export", json={"apiKey": api_key, "data": SCENE, "name": "Tower"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert re.fullmatch(r"Tower_\d{13}\.rbxmx", body["fileName"])
    assert body["downloadUrl"] == f"http://testserver/download/{body['fileName']}"
    assert body["filePath"] == f"/storage/emulated/0/Download/{body['fileName']}"
    xml = base64.b64decode(body["fileData"])
    assert body["fileSize"] == len(xml)
    assert b'<Item class="Part"' in xml
    assert b'<string name="Name">Block</string>' in xml
    assert b"<X>4</X>" in xml
    assert "assetId" not in body
    assert "publishError" not in body


def test_export_defaults_name_and_format(client, api_key):
    body = client.post("/api/export", json={"apiKey": api_key, "data": SCENE, "format": "rbxm"}).json()
    assert re.fullmatch(r"export_\d{13}\.rbxm", body["fileName"])


def test_export_requires_fields(client, api_key):
    r = client.post("/api/export", json={"apiKey": api_key})
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert client.post("/api/export", json={"data": SCENE}).status_code == 400


def test_export_empty_scene_counts_as_missing(client, api_key, clock, store):
    expires = store.expires_at_ms(api_key)
    clock.advance(10)
    r = client.post("/api/export", json={"apiKey": api_key, "data": {}})
    assert r.status_code == 400
    assert r.json()["success"] is False
    # a rejected request does not slide the key
    assert store.expires_at_ms(api_key) == expires


def test_export_publish_null_means_no_publish(client, api_key, upstream):
    r = client.post(
        "/api/export", json={"apiKey": api_key, "data": SCENE, "publishToMarketplace": None}
    )
    assert r.status_code == 200
    assert "assetId" not in r.json()
    assert upstream.requests == []


def test_export_rejects_unknown_key(client):
    r = client.post("/api/export", json={"apiKey": "f" * 64, "data": SCENE})
    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "API key inválida ou expirada"}


def test_export_rejects_expired_key(client, api_key, clock):
    clock.advance(1801)
    assert client.post("/api/export", json={"apiKey": api_key, "data": SCENE}).status_code == 401


def test_export_slides_key_expiry(client, api_key, clock, store):
    clock.advance(1000)
    assert client.post("/api/export", json={"apiKey": api_key, "data": SCENE}).status_code == 200
    clock.advance(1799)
    assert store.validate(api_key) == api_key


def test_export_malformed_scene(client, api_key):
    r = client.post("/api/export", json={"apiKey": api_key, "data": "{broken"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert "fileData" not in body


def test_export_publish_success(client, api_key, upstream):
    r = client.post(
        "/api/export",
        json={
            "apiKey": api_key,
            "data": SCENE,
            "name": "Tower",
            "description": "tall",
            "publishToMarketplace": True,
        },
    )
    body = r.json()
    assert body["success"] is True
    assert body["assetId"] == "987654"
    assert body["marketplaceUrl"] == "https://www.roblox.com/library/987654"
    req = upstream.requests[0]
    assert req.headers["Cookie"] == f".ROBLOSECURITY={api_key}"
    assert req.url.params["assetType"] == "Model"
    assert req.url.params["description"] == "tall"


def test_export_publish_failure_keeps_file(client, api_key, upstream):
    upstream.handler = lambda request: httpx.Response(500, text="down")
    r = client.post(
        "/api/export",
        json={"apiKey": api_key, "data": SCENE, "publishToMarketplace": True, "assetType": "Decal"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["fileData"]
    assert "500" in body["publishError"]
    assert "assetId" not in body


# ------------------------
# Import
# ------------------------
def test_import_file(client, api_key, upstream):
    payload = base64.b64encode(b"model-bytes").decode()
    r = client.post("/api/import", json={"apiKey": api_key, "source": "file", "sourceValue": payload})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert base64.b64decode(body["data"]) == b"model-bytes"
    assert body["size"] == len(b"model-bytes")
    assert body["format"] == "rbxm"
    assert body["message"] == "Importação processada com sucesso"
    assert upstream.requests == []


def test_import_numeric_asset_id(client, api_key):
    r = client.post(
        "/api/import",
        json={"apiKey": api_key, "source": "assetId", "sourceValue": 123, "format": "rbxmx"},
    )
    body = r.json()
    assert base64.b64decode(body["data"]) == b"asset:123"
    assert body["format"] == "rbxmx"


def test_import_bogus_source(client, api_key):
    r = client.post("/api/import", json={"apiKey": api_key, "source": "bogus", "sourceValue": "x"})
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_import_requires_fields(client, api_key):
    r = client.post("/api/import", json={"apiKey": api_key, "source": "url"})
    assert r.status_code == 400


def test_import_zero_source_value_counts_as_missing(client, api_key, upstream):
    r = client.post("/api/import", json={"apiKey": api_key, "source": "assetId", "sourceValue": 0})
    assert r.status_code == 400
    assert upstream.requests == []


def test_import_upstream_failure(client, api_key, upstream):
    upstream.handler = lambda request: httpx.Response(503, text="busy")
    r = client.post("/api/import", json={"apiKey": api_key, "source": "url", "sourceValue": "https://cdn.test/a"})
    assert r.status_code == 502
    assert r.json()["success"] is False


def test_unexpected_error_is_500_envelope(client, api_key, gateway, monkeypatch):
    async def broken(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(gateway, "fetch", broken)
    r = client.post("/api/import", json={"apiKey": api_key, "source": "url", "sourceValue": "https://x"})
    assert r.status_code == 500
    assert r.json() == {"success": False, "error": "Erro interno do servidor", "message": "kaboom"}


def test_invalid_json_body(client):
    r = client.post("/api/key/delete", content=b"{oops", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json()["success"] is False


# ------------------------
# Rate limit
# ------------------------
def test_rate_limit(store, gateway):
    app = create_app(Settings(rate_limit_max=2), store=store, gateway=gateway)
    with TestClient(app) as c:
        assert c.get("/api/status").status_code == 200
        assert c.get("/api/status").status_code == 200
        r = c.get("/api/status")
    assert r.status_code == 429
    assert r.json()["success"] is False
    assert int(r.headers["Retry-After"]) >= 1


def test_import_time_app_opens_no_upstream_client():
    from relay.main import app

    assert app.state.gateway._client is None
