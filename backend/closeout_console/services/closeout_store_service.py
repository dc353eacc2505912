"""
Service Layer per lo stato dei cierres della sessione
Progetto: Hospitality Console (Cierres Teóricos)

Mantiene in memoria l'ultimo insieme di cierres letto dal backend e i dati
di riferimento usati per risolvere i nomi di locales e puntos de venta.
I record sono value object immutabili: dopo ogni mutazione l'insieme
viene riletto per intero.
"""

import datetime
import logging
from typing import Optional

from closeout_console.clients.closeouts_client import CloseoutsClient
from closeout_console.core.exceptions import UpstreamError
from closeout_console.schemas.closeout import (
    CloseoutFilters,
    CloseoutPage,
    CloseoutRecord,
    SaleCenter,
    Venue,
)
from closeout_console.services.closeout_amount_service import AmountAggregator, amount_aggregator
from closeout_console.services.closeout_query_service import CloseoutQueryPipeline
from closeout_console.services.payment_method_service import (
    PaymentMethodCatalog,
    payment_method_catalog,
)
from closeout_console.utils.dates import NO_VALUE

# Logger per questo modulo
logger = logging.getLogger(__name__)


class CloseoutStore:
    """
    Host dei cierres per la sessione corrente.

    Un refresh non silenzioso che fallisce solleva UpstreamError (errore
    da mostrare con possibilità di riprovare); un refresh silenzioso
    registra solo l'errore nei log.
    """

    def __init__(
        self,
        client: CloseoutsClient,
        catalog: Optional[PaymentMethodCatalog] = None,
        aggregator: Optional[AmountAggregator] = None,
        pipeline: Optional[CloseoutQueryPipeline] = None,
    ) -> None:
        self.client = client
        self.catalog = catalog or payment_method_catalog
        self.aggregator = aggregator or amount_aggregator
        self.pipeline = pipeline or CloseoutQueryPipeline(aggregator=self.aggregator)
        self.records: tuple[CloseoutRecord, ...] = ()
        self.venues: tuple[Venue, ...] = ()
        self.sale_centers: tuple[SaleCenter, ...] = ()
        self.error: Optional[str] = None
        self.loading = False
        self.last_refreshed_at: Optional[datetime.datetime] = None

    # ------------------------------------------------------------
    # Caricamento
    # ------------------------------------------------------------

    async def refresh(self, silent: bool = False) -> tuple[CloseoutRecord, ...]:
        """
        Rilegge tutti i cierres dal backend.

        Args:
            silent: Refetch in background, senza indicatore di caricamento
                e senza esporre l'errore all'utente

        Raises:
            UpstreamError: Solo se `silent` è False e la lettura fallisce
        """
        if not silent:
            self.loading = True
            self.error = None
        try:
            records = await self.client.list_closeouts()
        except UpstreamError as exc:
            self.records = ()
            if silent:
                logger.warning("Refetch silenzioso dei cierres fallito: %s", exc.detail)
                return self.records
            self.error = exc.detail
            logger.error("Lettura dei cierres fallita: %s", exc.detail)
            raise
        finally:
            if not silent:
                self.loading = False

        self.records = tuple(records)
        self.last_refreshed_at = datetime.datetime.now(datetime.timezone.utc)
        logger.debug("Cierres in memoria: %s (silent=%s)", len(self.records), silent)
        return self.records

    async def silent_refresh(self) -> None:
        await self.refresh(silent=True)

    async def refresh_reference_data(self) -> None:
        """Carica locales e puntos de venta; in caso di errore restano vuoti."""
        try:
            self.venues = tuple(await self.client.list_venues())
        except UpstreamError as exc:
            logger.warning("Lettura dei locales fallita: %s", exc.detail)
            self.venues = ()
        try:
            self.sale_centers = tuple(await self.client.list_sale_centers())
        except UpstreamError as exc:
            logger.warning("Lettura dei puntos de venta fallita: %s", exc.detail)
            self.sale_centers = ()

    # ------------------------------------------------------------
    # Risoluzione nomi
    # ------------------------------------------------------------

    @property
    def venue_names(self) -> dict[str, str]:
        names: dict[str, str] = {}
        for venue in self.venues:
            if venue.code:
                names[venue.code] = venue.name or NO_VALUE
        return names

    def pos_name(self, record: CloseoutRecord) -> str:
        """Nome del punto vendita: quello del record, poi quello anagrafico, poi l'id."""
        if record.pos_name:
            return record.pos_name
        if record.pos_id:
            for center in self.sale_centers:
                if center.id == record.pos_id and center.name:
                    return center.name
            return record.pos_id
        return NO_VALUE

    # ------------------------------------------------------------
    # Query
    # ------------------------------------------------------------

    def payment_methods(self) -> list[str]:
        return self.catalog.discover_methods(self.records)

    def query(self, filters: CloseoutFilters) -> CloseoutPage:
        """Pagina di righe formattate con totali dell'insieme filtrato."""
        venue_names = self.venue_names
        methods = self.payment_methods()
        filtered = self.pipeline.sort(self.pipeline.filter(self.records, filters, venue_names), venue_names)
        total = len(filtered)
        page = self.pipeline.clamp_page(filters.page, total)
        rows = [
            self.pipeline.build_row(record, methods, venue_names, self.pos_name)
            for record in self.pipeline.paginate(filtered, page)
        ]
        return CloseoutPage(
            items=rows,
            total=total,
            page=page,
            page_size=self.pipeline.page_size,
            total_pages=self.pipeline.total_pages(total),
            payment_methods=methods,
            totals=self.aggregator.summarize(filtered, methods, self.pipeline.currency_symbol),
            filters_summary=self.pipeline.describe_filters(filters),
        )

    # ------------------------------------------------------------
    # Mutazioni (sempre seguite da un refetch completo)
    # ------------------------------------------------------------

    async def create(self, record: CloseoutRecord) -> None:
        await self.client.create_closeout(record)
        logger.info("Cierre creato: %s / %s", record.partition_key, record.sort_key)
        await self.refresh(silent=True)

    async def update(self, record: CloseoutRecord) -> None:
        await self.client.update_closeout(record)
        logger.info("Cierre aggiornato: %s / %s", record.partition_key, record.sort_key)
        await self.refresh(silent=True)

    async def delete(self, partition_key: str, sort_key: str) -> None:
        await self.client.delete_closeout(partition_key, sort_key)
        logger.info("Cierre eliminato: %s / %s", partition_key, sort_key)
        await self.refresh(silent=True)
