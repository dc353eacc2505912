"""
Dependency Injection per i service dei cierres
Progetto: Hospitality Console (Cierres Teóricos)

Funzioni di dependency injection che espongono ai router gli oggetti
creati nel lifespan dell'applicazione.
"""

from typing import Annotated

from fastapi import Depends, Request

from closeout_console.services.closeout_store_service import CloseoutStore
from closeout_console.services.closeout_sync_service import SyncManager


def get_store(request: Request) -> CloseoutStore:
    """
    Dependency per ottenere lo store dei cierres della sessione.

    Returns:
        Lo store creato all'avvio dell'applicazione
    """
    return request.app.state.closeout_store


def get_sync_manager(request: Request) -> SyncManager:
    """
    Dependency per ottenere il gestore dei job di sincronizzazione.

    Returns:
        Il SyncManager creato all'avvio dell'applicazione
    """
    return request.app.state.sync_manager


# Type aliases per dependency injection
StoreDep = Annotated[CloseoutStore, Depends(get_store)]
SyncManagerDep = Annotated[SyncManager, Depends(get_sync_manager)]


# Export
__all__ = [
    "get_store",
    "get_sync_manager",
    "StoreDep",
    "SyncManagerDep",
]
