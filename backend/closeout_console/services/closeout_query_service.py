"""
Service Layer per la query dei cierres
Progetto: Hospitality Console (Cierres Teóricos)

Filtra, ordina in modo deterministico e pagina i cierres in memoria.
Tutte le operazioni sono pure e sincrone.
"""

import logging
import math
import unicodedata
from typing import Callable, Iterable, Optional, Sequence

from closeout_console.schemas.closeout import (
    CloseoutFilters,
    CloseoutRecord,
    CloseoutRow,
)
from closeout_console.services.closeout_amount_service import (
    AmountAggregator,
    amount_aggregator,
    format_amount,
)
from closeout_console.utils.dates import (
    MONTH_NAMES,
    NO_VALUE,
    month_name,
    to_display,
    weekday_name,
    year_of,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


def collation_key(value: str) -> tuple[str, str]:
    """
    Chiave di ordinamento sensibile alla lingua.

    Confronta prima senza accenti e senza maiuscole ("Ávila" accanto ad
    "avila"), poi sulla stringa originale per un ordine totale.
    """
    decomposed = unicodedata.normalize("NFKD", value)
    base = "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()
    return base, value


def resolve_venue_name(code: str, venue_names: Optional[dict[str, str]]) -> str:
    if not venue_names:
        return NO_VALUE
    return venue_names.get(code.strip(), NO_VALUE) or NO_VALUE


class CloseoutQueryPipeline:
    """
    Pipeline di filtro/ordinamento/paginazione dei cierres.

    Ordine dei filtri (tutti opzionali): locale -> anno -> mese ->
    giorno >= da -> giorno <= a -> testo libero -> "con fatturazione".
    """

    def __init__(
        self,
        aggregator: Optional[AmountAggregator] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        currency_symbol: Optional[str] = "€",
    ) -> None:
        self.aggregator = aggregator or amount_aggregator
        self.page_size = page_size
        self.currency_symbol = currency_symbol

    # ------------------------------------------------------------
    # Filtri
    # ------------------------------------------------------------

    def haystack(self, record: CloseoutRecord, venue_names: Optional[dict[str, str]] = None) -> str:
        """Testo di ricerca sintetizzato per un cierre (in minuscolo)."""
        invoice_total = self.aggregator.invoice_total(record)
        parts = [
            record.partition_key,
            record.business_day,
            to_display(record.business_day),
            record.pos_name or "",
            record.pos_id or "",
            format_amount(invoice_total, self.currency_symbol) if invoice_total else "",
            f"{invoice_total:.2f}" if invoice_total else "",
            resolve_venue_name(record.partition_key, venue_names),
        ]
        return " ".join(p for p in parts if p and p != NO_VALUE).lower()

    def filter(
        self,
        records: Iterable[CloseoutRecord],
        filters: CloseoutFilters,
        venue_names: Optional[dict[str, str]] = None,
    ) -> list[CloseoutRecord]:
        items = list(records)
        if filters.venue_codes:
            codes = set(filters.venue_codes)
            items = [r for r in items if r.partition_key.strip() in codes]
        if filters.year:
            items = [r for r in items if r.business_day[:4] == filters.year]
        if filters.month:
            items = [r for r in items if r.business_day[5:7] == filters.month]
        if filters.date_from:
            items = [r for r in items if r.business_day >= filters.date_from]
        if filters.date_to:
            items = [r for r in items if r.business_day <= filters.date_to]
        if filters.search:
            needle = filters.search
            items = [r for r in items if needle in self.haystack(r, venue_names)]
        if filters.has_billing:
            items = [r for r in items if self.aggregator.has_billing(r)]
        return items

    # ------------------------------------------------------------
    # Ordinamento e paginazione
    # ------------------------------------------------------------

    def sort(
        self,
        records: Iterable[CloseoutRecord],
        venue_names: Optional[dict[str, str]] = None,
    ) -> list[CloseoutRecord]:
        """Giorno operativo decrescente, poi nome del locale crescente, poi SK."""
        items = sorted(records, key=lambda r: r.sort_key)
        items.sort(key=lambda r: collation_key(resolve_venue_name(r.partition_key, venue_names)))
        # sort stabile: l'ordine dei pari per giorno resta quello per nome
        items.sort(key=lambda r: r.business_day, reverse=True)
        return items

    def total_pages(self, total: int) -> int:
        return max(1, math.ceil(total / self.page_size))

    def clamp_page(self, page: int, total: int) -> int:
        """Riporta la pagina richiesta in [1, total_pages] senza sollevare errori."""
        return min(max(page, 1), self.total_pages(total))

    def paginate(self, items: Sequence[CloseoutRecord], page: int) -> list[CloseoutRecord]:
        safe_page = self.clamp_page(page, len(items))
        start = (safe_page - 1) * self.page_size
        return list(items[start:start + self.page_size])

    def query(
        self,
        records: Iterable[CloseoutRecord],
        filters: CloseoutFilters,
        venue_names: Optional[dict[str, str]] = None,
    ) -> tuple[list[CloseoutRecord], int]:
        """
        Esegue filtro, ordinamento e paginazione.

        Args:
            records: Tutti i cierres disponibili
            filters: Filtri e pagina richiesta
            venue_names: Mappa codice locale -> nome visualizzato

        Returns:
            Tuple di (pagina di cierres, totale filtrato)
        """
        filtered = self.sort(self.filter(records, filters, venue_names), venue_names)
        page = self.paginate(filtered, filters.page)
        logger.debug(
            "Query cierres: %s filtrati, pagina %s/%s",
            len(filtered), self.clamp_page(filters.page, len(filtered)), self.total_pages(len(filtered)),
        )
        return page, len(filtered)

    # ------------------------------------------------------------
    # Presentazione
    # ------------------------------------------------------------

    def build_row(
        self,
        record: CloseoutRecord,
        methods: Iterable[str],
        venue_names: Optional[dict[str, str]] = None,
        pos_name_resolver: Optional[Callable[[CloseoutRecord], str]] = None,
    ) -> CloseoutRow:
        invoice_total = self.aggregator.invoice_total(record)
        pos_name = pos_name_resolver(record) if pos_name_resolver else (record.pos_name or record.pos_id or NO_VALUE)
        return CloseoutRow(
            partition_key=record.partition_key,
            sort_key=record.sort_key,
            business_day=record.business_day,
            business_day_display=to_display(record.business_day) or NO_VALUE,
            venue_name=resolve_venue_name(record.partition_key, venue_names),
            pos_name=pos_name,
            sequence_number=record.sequence_number or NO_VALUE,
            invoice_total=invoice_total,
            invoice_total_display=format_amount(invoice_total, self.currency_symbol),
            payments={
                method: format_amount(self.aggregator.total_for_method(record, method), self.currency_symbol)
                for method in methods
            },
            month=month_name(record.business_day),
            year=year_of(record.business_day),
            weekday=weekday_name(record.business_day),
            open_date=record.open_date or NO_VALUE,
            close_date=record.close_date or NO_VALUE,
            document_count=len(record.documents),
        )

    @staticmethod
    def describe_filters(filters: CloseoutFilters) -> str:
        """Riga riassuntiva dei filtri attivi."""
        parts: list[str] = []
        if filters.venue_codes:
            parts.append(f"Local: {', '.join(filters.venue_codes)}")
        if filters.year:
            parts.append(f"Año: {filters.year}")
        if filters.month:
            parts.append(f"Mes: {MONTH_NAMES[int(filters.month) - 1]}")
        if filters.date_from:
            parts.append(f"Desde: {to_display(filters.date_from)}")
        if filters.date_to:
            parts.append(f"Hasta: {to_display(filters.date_to)}")
        if filters.search:
            parts.append(f"Búsqueda: {filters.search}")
        if filters.has_billing:
            parts.append("Con facturación")
        return " · ".join(parts) if parts else "Sin filtros aplicados"
