"""
Configurazione applicazione - Settings
Progetto: Hospitality Console (Cierres Teóricos)

Definisce le impostazioni dell'applicazione caricate da variabili d'ambiente.
"""


from __future__ import annotations
import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configurazione applicazione.

    Carica le impostazioni da variabili d'ambiente.
    Valori di default adatti per sviluppo locale.

    Per ottenere un'istanza singleton:
    - In FastAPI: usa `Depends(get_settings)` per Dependency Injection
    - Altrove: usa `get_settings()` direttamente
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # ------------------------------------------------------------
    # Configurazione Applicazione
    # ------------------------------------------------------------
    app_name: str = Field(
        default="Hospitality Console",
        description="Nome applicazione",
    )

    app_version: str = Field(
        default="1.0.0",
        description="Versione applicazione",
    )

    app_env: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Ambiente di esecuzione (development | production | testing)",
    )

    debug: bool = Field(
        default=False,
        description="Modalità debug",
    )

    # ------------------------------------------------------------
    # Configurazione Backend REST dei cierres
    # ------------------------------------------------------------
    backend_api_url: str = Field(
        default="http://127.0.0.1:3002/api",
        description="URL base del backend REST (cierres, locales, puntos de venta)",
    )

    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout delle chiamate di lettura verso il backend",
    )

    sync_day_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Timeout per la sincronizzazione di un singolo giorno (None = nessun limite)",
    )

    sync_max_days: int = Field(
        default=365,
        ge=1,
        description="Numero massimo di giorni in un batch di sincronizzazione",
    )

    # ------------------------------------------------------------
    # Configurazione Presentazione
    # ------------------------------------------------------------
    page_size: int = Field(
        default=100,
        ge=1,
        description="Righe per pagina nella tabella dei cierres",
    )

    currency_symbol: str = Field(
        default="€",
        description="Simbolo valuta per gli importi formattati",
    )

    # ------------------------------------------------------------
    # Configurazione Sincronizzazione automatica
    # ------------------------------------------------------------
    auto_sync_enabled: bool = Field(
        default=False,
        description="Sincronizza periodicamente il giorno corrente",
    )

    auto_sync_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Intervallo tra due sincronizzazioni automatiche",
    )

    auto_refresh_interval_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Intervallo tra due refetch silenziosi dei cierres",
    )

    # ------------------------------------------------------------
    # Configurazione CORS
    # ------------------------------------------------------------
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:8081",
            "http://127.0.0.1:8081",
        ],
        description="Origini CORS permesse",
    )

    # ------------------------------------------------------------
    # Configurazione Logging
    # ------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Livello logging",
    )

    @property
    def is_production(self) -> bool:
        """Verifica se l'applicazione è in produzione."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Verifica se l'applicazione è in sviluppo."""
        return self.app_env == "development"

    # ------------------------------------------------------------
    # Validatori
    # ------------------------------------------------------------

    @field_validator("backend_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Rimuove gli slash finali dall'URL base."""
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("backend_api_url deve iniziare con http:// o https://")
        return v

    @field_validator(
        "request_timeout_seconds",
        "sync_day_timeout_seconds",
        "auto_sync_interval_seconds",
        "auto_refresh_interval_seconds",
        mode="before",
    )
    @classmethod
    def convert_float_from_string(cls, v):
        """Gestisce input con virgola convertendolo in punto."""
        if v is None:
            return v
        if isinstance(v, str):
            v = v.strip().replace(",", ".")
            if not v or v.lower() == "none":
                return None
        return float(v)

    @field_validator("sync_day_timeout_seconds")
    @classmethod
    def validate_sync_day_timeout(cls, v: Optional[float]) -> Optional[float]:
        """Un timeout non positivo equivale a nessun timeout."""
        if v is not None and v <= 0:
            logging.getLogger(__name__).warning(
                "sync_day_timeout_seconds=%s non positivo: timeout disabilitato", v
            )
            return None
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validazione settings obbligatori in produzione."""
        if self.app_env != "production":
            return self

        errors = []

        if self.debug:
            errors.append("- debug: deve essere False in produzione")

        for origin in self.cors_origins:
            if "localhost" in origin or "127.0.0.1" in origin:
                errors.append(
                    f"- cors_origins: l'origine '{origin}' non è consentita in produzione"
                )

        if errors:
            error_msg = "Errore di configurazione in produzione:\n" + "\n".join(errors)
            raise ValueError(error_msg)

        return self


@lru_cache()
def get_settings() -> Settings:
    """
    Restituisce l'istanza singleton delle impostazioni.

    Usa lru_cache per garantire che Settings() venga istanziato
    una sola volta e riutilizzato in tutta l'applicazione.
    In fase di test, usa get_settings.cache_clear() per resettare.

    Returns:
        Settings: Istanza delle impostazioni applicazione
    """
    return Settings()

