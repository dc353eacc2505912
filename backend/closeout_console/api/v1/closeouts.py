"""
Router FastAPI per i Cierres Teóricos
Progetto: Hospitality Console (Cierres Teóricos)

Definisce gli endpoint per consultare i cierres (filtri, ordinamento,
paginazione, totali), per le mutazioni proxy verso il backend e per i
job di sincronizzazione con il POS.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Query, status

from closeout_console.core.deps import StoreDep, SyncManagerDep
from closeout_console.schemas.closeout import (
    CloseoutFilters,
    CloseoutPage,
    CloseoutRecord,
    SyncProgress,
    SyncRangeRequest,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/closeouts",
    tags=["Cierres Teóricos"],
)


# -------------------------------------------------------------------
# Consultazione
# -------------------------------------------------------------------

@router.get(
    "",
    name="cierres_lista",
    summary="Lista cierres",
    description="Cierres filtrati, ordinati per giorno decrescente e paginati, con totali.",
    response_model=CloseoutPage,
)
async def list_closeouts(
    store: StoreDep,
    venue: Optional[list[str]] = Query(None, description="Codice locale (ripetibile)"),
    date_from: Optional[str] = Query(None, description="Giorno iniziale (YYYY-MM-DD o dd/mm/yyyy)"),
    date_to: Optional[str] = Query(None, description="Giorno finale (YYYY-MM-DD o dd/mm/yyyy)"),
    year: Optional[str] = Query(None, description="Anno (YYYY)"),
    month: Optional[str] = Query(None, description="Mese (MM)"),
    q: Optional[str] = Query(None, description="Ricerca libera"),
    has_billing: bool = Query(False, description="Solo cierres con fatturato"),
    page: int = Query(1, description="Pagina; fuori intervallo viene riportata nei limiti"),
) -> CloseoutPage:
    """
    Restituisce una pagina di cierres.

    Alla prima richiesta, o dopo un errore, rilegge i dati dal backend;
    un errore di lettura viene restituito come 502 con `retryable: true`.
    """
    if store.last_refreshed_at is None or store.error:
        await store.refresh_reference_data()
        await store.refresh()
    filters = CloseoutFilters(
        venue_codes=venue or [],
        date_from=date_from,
        date_to=date_to,
        year=year,
        month=month,
        search=q,
        has_billing=has_billing,
        page=page,
    )
    return store.query(filters)


@router.get(
    "/payment-methods",
    name="cierres_metodi_pagamento",
    summary="Metodi di pagamento canonici presenti nei cierres",
    response_model=list[str],
)
async def list_payment_methods(store: StoreDep) -> list[str]:
    return store.payment_methods()


@router.post(
    "/refresh",
    name="cierres_refresh",
    summary="Rilegge i cierres dal backend",
    response_model=CloseoutPage,
)
async def refresh_closeouts(store: StoreDep) -> CloseoutPage:
    """Refetch esplicito (con errore visibile), come il pulsante "Reintentar"."""
    await store.refresh_reference_data()
    await store.refresh()
    return store.query(CloseoutFilters())


# -------------------------------------------------------------------
# Mutazioni
# -------------------------------------------------------------------

@router.post(
    "",
    name="cierres_crea",
    summary="Crea un cierre",
    status_code=status.HTTP_201_CREATED,
)
async def create_closeout(store: StoreDep, payload: dict[str, Any] = Body(...)) -> dict[str, bool]:
    await store.create(CloseoutRecord.from_wire(payload))
    return {"ok": True}


@router.put(
    "",
    name="cierres_aggiorna",
    summary="Sostituisce un cierre identificato da PK+SK",
)
async def update_closeout(store: StoreDep, payload: dict[str, Any] = Body(...)) -> dict[str, bool]:
    await store.update(CloseoutRecord.from_wire(payload))
    return {"ok": True}


@router.delete(
    "",
    name="cierres_elimina",
    summary="Elimina un cierre per chiave composta",
)
async def delete_closeout(
    store: StoreDep,
    pk: str = Query("", alias="PK"),
    sk: str = Query("", alias="SK"),
) -> dict[str, bool]:
    await store.delete(pk.strip(), sk.strip())
    return {"ok": True}


# -------------------------------------------------------------------
# Sincronizzazione
# -------------------------------------------------------------------

@router.post(
    "/sync-jobs",
    name="cierres_sync_avvia",
    summary="Avvia la sincronizzazione di un intervallo di giorni",
    response_model=SyncProgress,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_sync_job(data: SyncRangeRequest, manager: SyncManagerDep) -> SyncProgress:
    """
    Avvia in background un batch sequenziale, un giorno alla volta.

    Raises:
        422: Intervallo non valido o più lungo del massimo consentito
        409: Una sincronizzazione è già in corso
    """
    progress = manager.start(data.date_from, data.date_to)
    logger.info("Sync richiesta: %s -> %s (%s giorni)", progress.date_from, progress.date_to, progress.total_count)
    return progress


@router.get(
    "/sync-jobs/current",
    name="cierres_sync_stato",
    summary="Avanzamento dell'ultima sincronizzazione",
    response_model=SyncProgress,
)
async def get_sync_job(manager: SyncManagerDep) -> SyncProgress:
    return manager.current()


@router.delete(
    "/sync-jobs/current",
    name="cierres_sync_annulla",
    summary="Annulla la sincronizzazione in corso",
    response_model=SyncProgress,
)
async def cancel_sync_job(manager: SyncManagerDep) -> SyncProgress:
    return manager.cancel()
