"""
API v1 Routes
Progetto: Hospitality Console (Cierres Teóricos)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from closeout_console.api.v1 import closeouts

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(closeouts.router)

# Esportazione
__all__ = ["api_v1_router"]
