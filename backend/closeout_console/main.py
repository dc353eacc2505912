"""
Main Entry Point - FastAPI Application
Progetto: Hospitality Console (Cierres Teóricos)

Configura l'applicazione FastAPI con middleware, router e lifecycle.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from closeout_console.api.v1 import api_v1_router
from closeout_console.clients.closeouts_client import CloseoutsClient
from closeout_console.core.config import Settings, get_settings
from closeout_console.core.exceptions import AppException
from closeout_console.services.closeout_query_service import CloseoutQueryPipeline
from closeout_console.services.closeout_store_service import CloseoutStore
from closeout_console.services.closeout_sync_service import AutoSyncService, SyncManager

settings = get_settings()

# ------------------------------------------------------------
# Configurazione Logging
# ------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Exception Handlers
# ------------------------------------------------------------
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Gestore per tutte le eccezioni applicative.

    Converte l'eccezione nello status HTTP della classe e nel corpo
    `{error, error_code, retryable}`.
    """
    if exc.status_code >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Gestore generico per tutte le eccezioni non catturate.

    Converte l'eccezione in risposta HTTP 500 e logga l'errore.
    """
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Error interno del servidor", "error_code": "INTERNAL_SERVER_ERROR", "retryable": False},
    )


# ------------------------------------------------------------
# Application factory
# ------------------------------------------------------------
def create_app(
    app_settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Crea l'applicazione FastAPI.

    Args:
        app_settings: Impostazioni (default: singleton da variabili d'ambiente)
        transport: Transport httpx alternativo verso il backend (usato nei test)
    """
    cfg = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Gestisce il ciclo di vita dell'applicazione.

        - Startup: crea client HTTP, store dei cierres e gestore dei job
        - Shutdown: ferma job e timer in corso e chiude il client
        """
        logger.info(f"Avvio {cfg.app_name} v{cfg.app_version}")
        client = CloseoutsClient(
            cfg.backend_api_url,
            timeout=cfg.request_timeout_seconds,
            transport=transport,
        )
        store = CloseoutStore(
            client,
            pipeline=CloseoutQueryPipeline(page_size=cfg.page_size, currency_symbol=cfg.currency_symbol),
        )
        manager = SyncManager(
            sync_day=client.sync_day,
            on_refresh=store.silent_refresh,
            day_timeout=cfg.sync_day_timeout_seconds,
            max_days=cfg.sync_max_days,
        )
        auto_sync: Optional[AutoSyncService] = None
        if cfg.auto_sync_enabled:
            auto_sync = AutoSyncService(
                sync_day=client.sync_day,
                refresh=store.silent_refresh,
                manager=manager,
                sync_interval=cfg.auto_sync_interval_seconds,
                refresh_interval=cfg.auto_refresh_interval_seconds,
            )
            auto_sync.start()

        app.state.settings = cfg
        app.state.closeouts_client = client
        app.state.closeout_store = store
        app.state.sync_manager = manager
        logger.info("Applicazione avviata con successo (backend: %s)", cfg.backend_api_url)

        yield

        logger.info("Arresto applicazione in corso...")
        if auto_sync is not None:
            await auto_sync.stop()
        await manager.shutdown()
        await client.aclose()
        logger.info("Applicazione arrestata")

    app = FastAPI(
        title=cfg.app_name,
        description="Consola de gestión - Cierres teóricos y sincronización con el POS",
        version=cfg.app_version,
        lifespan=lifespan,
        docs_url="/docs" if cfg.debug else None,
        redoc_url="/redoc" if cfg.debug else None,
    )

    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # ------------------------------------------------------------
    # Middleware CORS
    # ------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get(
        "/health",
        name="Health Check",
        summary="Controlla lo stato dell'applicazione",
        tags=["System"],
    )
    async def health_check() -> dict[str, str]:
        """
        Endpoint per il controllo dello stato di salute.

        Returns:
            dict: Stato dell'applicazione
        """
        return {
            "status": "healthy",
            "app": cfg.app_name,
            "version": cfg.app_version,
            "environment": cfg.app_env,
        }

    app.include_router(api_v1_router)
    return app


# ------------------------------------------------------------
# FastAPI Application
# ------------------------------------------------------------
app = create_app()
