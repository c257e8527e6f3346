"""FastAPI app factory: routes, error envelope, request logging, key sweeper."""
from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Optional
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import router as api_router
from .api.models import ErrorResponse
from .config import Settings, load_settings
from .domain.credentials import CredentialStore
from .domain.errors import RelayError
from .logging_conf import get_logger, setup_logging
from .ratelimit import ClientRateLimiter
from .service.gateway import AssetGateway

# Configure logging before anything else.
setup_logging()
logger = get_logger("app")

_LANDING_ENDPOINTS = (
    ("POST", "/api/key/generate", "Gera uma nova API Key válida por 30 minutos"),
    ("POST", "/api/key/delete", "Remove uma API Key do sistema"),
    ("POST", "/api/export", "Exporta modelos do Roblox para arquivo"),
    ("POST", "/api/import", "Importa modelos externos para o Roblox"),
    ("GET", "/api/status", "Verifica o status e estatísticas do servidor"),
)


def _envelope(
    status_code: int, error: str, *, message: Optional[str] = None, path: Optional[str] = None
) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, path=path)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _render_landing(*, keys: int, uptime_s: float, port: int, version: str) -> str:
    hours, rest = divmod(int(uptime_s), 3600)
    minutes = rest // 60
    rows = "\n".join(
        f'      <li><b>{method}</b> <code>{path}</code> {desc}</li>'
        for method, path, desc in _LANDING_ENDPOINTS
    )
    return f"""<!DOCTYPE html>
<html lang="pt-BR">
<head>
  <meta charset="UTF-8">
  <title>Roblox Import/Export Server</title>
</head>
<body>
  <h1>Roblox Import/Export Server</h1>
  <p>SERVER ONLINE</p>
  <ul>
    <li>API Keys Ativas: {keys}</li>
    <li>Uptime: {hours}h {minutes}m</li>
    <li>Porta: {port}</li>
  </ul>
  <h2>Endpoints</h2>
  <ul>
{rows}
  </ul>
  <p>Versão: {version}</p>
</body>
</html>
"""


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[CredentialStore] = None,
    gateway: Optional[AssetGateway] = None,
    limiter: Optional[ClientRateLimiter] = None,
) -> FastAPI:
    settings = settings or load_settings()
    store = store or CredentialStore(ttl_seconds=settings.key_ttl_seconds)
    gateway = gateway or AssetGateway(
        upload_url=settings.upload_url,
        asset_delivery_url=settings.asset_delivery_url,
        timeout=settings.upstream_timeout,
    )
    limiter = limiter or ClientRateLimiter(
        settings.rate_limit_max, settings.rate_limit_window_seconds
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("startup", extra={"event": "startup", "port": settings.port})
        sweeper = asyncio.create_task(store.run_sweeper(settings.sweep_interval_seconds))
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
            await gateway.aclose()
            logger.info("shutdown", extra={"event": "shutdown"})

    app = FastAPI(
        title="Roblox Import/Export Relay",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.credentials = store
    app.state.gateway = gateway
    app.state.started_at = time.monotonic()

    # ------------------------
    # Error envelope
    # ------------------------
    @app.exception_handler(RelayError)
    async def _relay_error(request: Request, exc: RelayError) -> JSONResponse:
        logger.info(
            "request.rejected",
            extra={
                "event": "request_rejected",
                "path": request.url.path,
                "error_code": exc.code,
                "status_code": exc.status_code,
            },
        )
        return _envelope(exc.status_code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        detail = errors[0].get("msg", "invalid request") if errors else "invalid request"
        return _envelope(400, "Requisição inválida", message=detail)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return _envelope(404, "Endpoint não encontrado", path=request.url.path)
        return _envelope(exc.status_code, str(exc.detail))

    # ------------------------
    # Middleware (last registered runs first)
    # ------------------------
    @app.middleware("http")
    async def rate_limit(request: Request, call_next: Callable[[Request], Response]):
        client = request.client.host if request.client else "unknown"
        if not limiter.allow(client):
            retry = int(limiter.retry_after(client)) + 1
            logger.warning("rate_limited", extra={"event": "rate_limited", "client": client})
            resp = _envelope(429, "Muitas requisições, tente novamente mais tarde")
            resp.headers["Retry-After"] = str(retry)
            return resp
        return await call_next(request)

    @app.middleware("http")
    async def request_logger(request: Request, call_next: Callable[[Request], Response]):
        """JSON request logging with a correlation id.

        Propagates an incoming X-Request-ID or mints one, and turns any
        exception that escaped the handlers into the 500 envelope.
        """
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        start = time.perf_counter()
        logger.info(
            "request.start",
            extra={
                "event": "request_start",
                "method": request.method,
                "path": request.url.path,
                "request_id": request_id,
            },
        )
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "request.error",
                extra={
                    "event": "request_error",
                    "path": request.url.path,
                    "method": request.method,
                    "request_id": request_id,
                },
            )
            response = _envelope(500, "Erro interno do servidor", message=str(exc))

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request.end",
            extra={
                "event": "request_end",
                "status_code": response.status_code,
                "elapsed_ms": round(elapsed_ms, 2),
                "request_id": request_id,
            },
        )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", response_class=HTMLResponse, summary="Landing page")
    async def landing() -> HTMLResponse:
        return HTMLResponse(
            _render_landing(
                keys=store.count(),
                uptime_s=time.monotonic() - app.state.started_at,
                port=settings.port,
                version=settings.version,
            )
        )

    app.include_router(api_router)

    return app


# ASGI entrypoint for uvicorn: `uvicorn relay.main:app --port 10000`
app = create_app()


def run() -> None:
    """Console entrypoint: serve on $PORT."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port, log_config=None)


if __name__ == "__main__":
    run()
