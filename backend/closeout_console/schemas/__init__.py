"""
Schemas Pydantic per il progetto Hospitality Console

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione delle risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from closeout_console.schemas import CloseoutRecord, SyncProgress, etc.

from closeout_console.schemas.closeout import (
    KNOWN_PAYMENT_METHODS,
    UNNAMED_PAYMENT_METHOD,
    CloseoutAmounts,
    CloseoutDocument,
    CloseoutFilters,
    CloseoutPage,
    CloseoutRecord,
    CloseoutRow,
    CloseoutTotals,
    PaymentLine,
    SaleCenter,
    SyncDayResult,
    SyncJobState,
    SyncProgress,
    SyncRangeRequest,
    Venue,
)

__all__ = [
    "KNOWN_PAYMENT_METHODS",
    "UNNAMED_PAYMENT_METHOD",
    "CloseoutAmounts",
    "CloseoutDocument",
    "CloseoutFilters",
    "CloseoutPage",
    "CloseoutRecord",
    "CloseoutRow",
    "CloseoutTotals",
    "PaymentLine",
    "SaleCenter",
    "SyncDayResult",
    "SyncJobState",
    "SyncProgress",
    "SyncRangeRequest",
    "Venue",
]
