"""
Client HTTP per il backend dei cierres
Progetto: Hospitality Console (Cierres Teóricos)

Incapsula le chiamate REST consumate dal motore di riconciliazione:
lista dei cierres, sincronizzazione per giorno con il POS, CRUD per
chiave composta e dati di riferimento (locales, puntos de venta).

Tutte le risposte di errore seguono la forma `{error: string}`; un corpo
non JSON (es. pagina HTML di errore) diventa un errore sintetico invece
di far fallire il parsing.
"""

import logging
from typing import Any, Optional

import httpx

from closeout_console.core.exceptions import BusinessValidationError, UpstreamError
from closeout_console.schemas.closeout import (
    CloseoutRecord,
    SaleCenter,
    SyncDayResult,
    Venue,
)
from closeout_console.utils.dates import is_wire_date

# Logger per questo modulo
logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_json_body(response: httpx.Response) -> dict[str, Any]:
    """
    Decodifica difensiva del corpo JSON di una risposta.

    Raises:
        UpstreamError: Corpo non JSON o non oggetto
    """
    try:
        data = response.json()
    except ValueError:
        snippet = response.text[:200].strip()
        logger.warning("Risposta non JSON (%s): %s", response.status_code, snippet)
        raise UpstreamError(
            f"Respuesta no válida del servidor ({response.status_code})",
            error_code="INVALID_PAYLOAD",
            extra={"status_code": response.status_code},
        )
    if not isinstance(data, dict):
        raise UpstreamError(
            "Respuesta no válida del servidor",
            error_code="INVALID_PAYLOAD",
            extra={"status_code": response.status_code},
        )
    return data


def raise_for_error(response: httpx.Response, data: dict[str, Any], fallback: str) -> None:
    """Converte un payload `{error}` o uno status non-2xx in UpstreamError."""
    error = data.get("error")
    if error or not response.is_success:
        raise UpstreamError(
            str(error) if error else f"{fallback} ({response.status_code})",
            extra={"status_code": response.status_code},
        )


class CloseoutsClient:
    """
    Client asincrono del backend REST dei cierres.

    Può essere usato come context manager asincrono; se non viene
    fornito un `httpx.AsyncClient` ne crea e ne possiede uno.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "CloseoutsClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, path, params=params, json=json, timeout=timeout)
        except httpx.HTTPError as exc:
            logger.warning("Errore di trasporto %s %s: %s", method, path, exc)
            raise UpstreamError(
                str(exc) or "Error de conexión",
                error_code="TRANSPORT_ERROR",
            ) from exc

    async def _read(self, path: str, fallback: str) -> dict[str, Any]:
        response = await self._request("GET", path)
        data = parse_json_body(response)
        raise_for_error(response, data, fallback)
        return data

    # ------------------------------------------------------------
    # Cierres
    # ------------------------------------------------------------

    async def list_closeouts(self) -> list[CloseoutRecord]:
        """
        Recupera tutti i cierres dal backend.

        Raises:
            UpstreamError: Errori di rete, status non-2xx, payload non valido o `{error}`
        """
        data = await self._read("/closeouts", "Error al listar cierres")
        raw_list = data.get("closeouts")
        if not isinstance(raw_list, list):
            return []
        records = []
        for raw in raw_list:
            if not isinstance(raw, dict):
                logger.warning("Cierre ignorato: elemento non oggetto (%s)", type(raw).__name__)
                continue
            records.append(CloseoutRecord.from_wire(raw))
        logger.debug("Recuperati %s cierres", len(records))
        return records

    async def sync_day(self, business_day: str) -> SyncDayResult:
        """
        Chiede al backend di importare dal POS i cierres di un giorno.

        Non solleva eccezioni per errori del backend o di rete: l'esito
        viene riportato in `SyncDayResult.ok` / `SyncDayResult.error`.
        """
        try:
            response = await self._request(
                "POST", "/closeouts/sync", json={"businessDay": business_day}, timeout=None,
            )
            data = parse_json_body(response)
        except UpstreamError as exc:
            return SyncDayResult(business_day=business_day, ok=False, error=exc.detail)

        if not response.is_success or data.get("ok") is not True:
            error = data.get("error") or f"Error al sincronizar {business_day}"
            return SyncDayResult(business_day=business_day, ok=False, error=str(error))
        return SyncDayResult(
            business_day=business_day,
            ok=True,
            fetched=_as_int(data.get("fetched")),
            upserted=_as_int(data.get("upserted")),
        )

    @staticmethod
    def _require_keys(record: CloseoutRecord) -> None:
        missing = [
            name for name, value in (("partitionKey", record.partition_key), ("sortKey", record.sort_key))
            if not value
        ]
        if missing:
            raise BusinessValidationError(
                f"Campos obligatorios: {', '.join(missing)}",
                error_code="MISSING_REQUIRED_FIELD",
                extra={"missing": missing},
            )
        if record.business_day and not is_wire_date(record.business_day):
            raise BusinessValidationError(
                "BusinessDay debe tener formato YYYY-MM-DD",
                error_code="INVALID_BUSINESS_DAY",
            )

    async def _write(self, method: str, record: CloseoutRecord, fallback: str) -> dict[str, Any]:
        self._require_keys(record)
        response = await self._request(method, "/closeouts", json=record.to_wire())
        data = parse_json_body(response)
        raise_for_error(response, data, fallback)
        return data

    async def create_closeout(self, record: CloseoutRecord) -> dict[str, Any]:
        return await self._write("POST", record, "Error al crear el cierre")

    async def update_closeout(self, record: CloseoutRecord) -> dict[str, Any]:
        """Sostituisce per intero il cierre identificato da PK+SK."""
        return await self._write("PUT", record, "Error al actualizar el cierre")

    async def delete_closeout(self, partition_key: str, sort_key: str) -> dict[str, Any]:
        if not partition_key or not sort_key:
            raise BusinessValidationError(
                "PK y SK son obligatorios",
                error_code="MISSING_REQUIRED_FIELD",
            )
        response = await self._request("DELETE", "/closeouts", params={"PK": partition_key, "SK": sort_key})
        data = parse_json_body(response)
        raise_for_error(response, data, "Error al eliminar el cierre")
        return data

    # ------------------------------------------------------------
    # Dati di riferimento
    # ------------------------------------------------------------

    async def list_venues(self) -> list[Venue]:
        data = await self._read("/venues", "Error al listar locales")
        raw_list = data.get("venues")
        if not isinstance(raw_list, list):
            return []
        return [Venue.model_validate(v) for v in raw_list if isinstance(v, dict)]

    async def list_sale_centers(self) -> list[SaleCenter]:
        data = await self._read("/sale-centers", "Error al listar puntos de venta")
        raw_list = data.get("saleCenters", data.get("sale_centers"))
        if not isinstance(raw_list, list):
            return []
        return [SaleCenter.model_validate(s) for s in raw_list if isinstance(s, dict)]
