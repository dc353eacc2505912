"""
API Routes
Progetto: Hospitality Console (Cierres Teóricos)

Modulo per l'aggregazione dei router versionati.
"""

from closeout_console.api.v1 import closeouts

# Esportazione router
__all__ = ["closeouts"]
