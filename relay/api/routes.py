from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..config import Settings
from ..domain.credentials import CredentialStore
from ..logging_conf import get_logger
from ..service import relay_service
from ..service.gateway import AssetGateway
from .models import (
    ExportRequest,
    ExportResponse,
    ImportRequest,
    ImportResponse,
    KeyDeleteRequest,
    KeyDeleteResponse,
    KeyGenerateRequest,
    KeyGenerateResponse,
    StatusResponse,
)

router = APIRouter(prefix="/api")
logger = get_logger("api")


def get_store(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_gateway(request: Request) -> AssetGateway:
    return request.app.state.gateway


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


@router.get("/status", response_model=StatusResponse, summary="Server status and counters")
async def status(
    request: Request,
    store: CredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> StatusResponse:
    out = relay_service.status_snapshot(store, settings, started_at=request.app.state.started_at)
    return StatusResponse(**out)


@router.post(
    "/key/generate",
    response_model=KeyGenerateResponse,
    summary="Issue an API key valid for 30 minutes",
)
async def generate_key(
    req: KeyGenerateRequest | None = None,
    store: CredentialStore = Depends(get_store),
) -> KeyGenerateResponse:
    req = req or KeyGenerateRequest()
    out = relay_service.generate_key(store, user_id=req.user_id, username=req.username)
    return KeyGenerateResponse(**out)


@router.post("/key/delete", response_model=KeyDeleteResponse, summary="Revoke an API key")
async def delete_key(
    req: KeyDeleteRequest | None = None,
    store: CredentialStore = Depends(get_store),
) -> KeyDeleteResponse:
    req = req or KeyDeleteRequest()
    out = relay_service.delete_key(store, key=req.key)
    return KeyDeleteResponse(**out)


@router.post(
    "/export",
    response_model=ExportResponse,
    response_model_exclude_none=True,
    summary="Serialize a scene to .rbxmx and optionally publish it",
)
async def export(
    request: Request,
    req: ExportRequest | None = None,
    store: CredentialStore = Depends(get_store),
    gateway: AssetGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> ExportResponse:
    req = req or ExportRequest()
    out = await relay_service.export_scene(
        store,
        gateway,
        settings,
        api_key=req.api_key,
        data=req.data,
        base_url=str(request.base_url),
        format=req.format,
        name=req.name,
        description=req.description,
        publish=bool(req.publish_to_marketplace),
        asset_type=req.asset_type,
    )
    return ExportResponse(**out)


@router.post(
    "/import",
    response_model=ImportResponse,
    summary="Fetch asset bytes from a URL, an asset id or an inline file",
)
async def import_(
    req: ImportRequest | None = None,
    store: CredentialStore = Depends(get_store),
    gateway: AssetGateway = Depends(get_gateway),
) -> ImportResponse:
    req = req or ImportRequest()
    out = await relay_service.import_asset(
        store,
        gateway,
        api_key=req.api_key,
        source=req.source,
        source_value=req.source_value,
        format=req.format,
    )
    return ImportResponse(**out)
