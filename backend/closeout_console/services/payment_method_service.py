"""
Service Layer per il catalogo dei metodi di pagamento
Progetto: Hospitality Console (Cierres Teóricos)

Normalizza le etichette grezze dei metodi di pagamento provenienti dal POS
in un insieme canonico: i metodi noti in ordine fisso, seguiti dai metodi
scoperti dinamicamente in ordine lessicale.
"""

import logging
import re
from typing import Iterable, Optional

from closeout_console.schemas.closeout import (
    KNOWN_PAYMENT_METHODS,
    UNNAMED_PAYMENT_METHOD,
    CloseoutRecord,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

# Sinonimi e grafie comuni -> etichetta canonica
PAYMENT_METHOD_ALIASES: dict[str, str] = {
    "efectivo": "Efectivo",
    "cash": "Efectivo",
    "metálico": "Efectivo",
    "metalico": "Efectivo",
    "contado": "Efectivo",
    "tarjeta": "Tarjeta",
    "card": "Tarjeta",
    "credit card": "Tarjeta",
    "tarjeta de crédito": "Tarjeta",
    "tarjeta de credito": "Tarjeta",
    "tarjeta crédito": "Tarjeta",
    "tarjeta credito": "Tarjeta",
    "datáfono": "Tarjeta",
    "datafono": "Tarjeta",
    "pendiente de cobro": "Pendiente de cobro",
    "pendiente cobro": "Pendiente de cobro",
    "pendiente": "Pendiente de cobro",
    "pending": "Pendiente de cobro",
    "prepago transferencia": "Prepago Transferencia",
    "prepago": "Prepago Transferencia",
    "transferencia": "Prepago Transferencia",
    "transfer": "Prepago Transferencia",
    "bank transfer": "Prepago Transferencia",
    "agorapay": "AgoraPay",
    "ágorapay": "AgoraPay",
    "sin nombre": UNNAMED_PAYMENT_METHOD,
}


def lookup_key(label: str) -> str:
    """Chiave di confronto: minuscole, senza spazi (solo per la ricerca)."""
    return _WHITESPACE_RE.sub("", label).lower()


class PaymentMethodCatalog:
    """
    Catalogo dei metodi di pagamento canonici.

    La canonicalizzazione è una funzione pura: la stessa etichetta grezza
    produce sempre la stessa stringa canonica. I risultati vengono
    memorizzati per la durata della sessione.
    """

    def __init__(
        self,
        known_order: Iterable[str] = KNOWN_PAYMENT_METHODS,
        aliases: Optional[dict[str, str]] = None,
    ) -> None:
        self.known_order: tuple[str, ...] = tuple(known_order)
        self._aliases: dict[str, str] = {
            lookup_key(alias): canonical
            for alias, canonical in (aliases if aliases is not None else PAYMENT_METHOD_ALIASES).items()
        }
        self._known_by_key: dict[str, str] = {lookup_key(m): m for m in self.known_order}
        self._cache: dict[str, str] = {}

    def canonicalize(self, raw_label: Optional[str]) -> str:
        """
        Restituisce l'etichetta canonica di un metodo di pagamento.

        Ordine di risoluzione:
            1. etichetta vuota o assente -> "Sin nombre"
            2. tabella dei sinonimi (case/space-insensitive)
            3. elenco dei metodi noti (case/space-insensitive)
            4. altrimenti l'etichetta stessa, ripulita dagli spazi esterni

        Args:
            raw_label: Etichetta grezza (`MethodName`) del POS

        Returns:
            L'etichetta canonica da visualizzare
        """
        if raw_label is None:
            return UNNAMED_PAYMENT_METHOD
        raw = str(raw_label)
        cached = self._cache.get(raw)
        if cached is not None:
            return cached

        trimmed = raw.strip()
        if not trimmed:
            canonical = UNNAMED_PAYMENT_METHOD
        else:
            key = lookup_key(trimmed)
            canonical = (
                self._aliases.get(key)
                or self._known_by_key.get(key)
                or trimmed
            )
        self._cache[raw] = canonical
        return canonical

    def is_known(self, canonical: str) -> bool:
        return canonical in self._known_by_key.values()

    def order_methods(self, methods: Iterable[str]) -> list[str]:
        """
        Ordina un insieme di metodi canonici.

        Prima i noti nell'ordine fisso, poi gli altri in ordine lessicale;
        "Sin nombre" è escluso dagli altri e, se presente, va in coda.
        """
        present = set(methods)
        known_first = [m for m in self.known_order if m in present]
        others = sorted(
            m for m in present
            if not self.is_known(m) and m != UNNAMED_PAYMENT_METHOD
        )
        tail = [UNNAMED_PAYMENT_METHOD] if UNNAMED_PAYMENT_METHOD in present else []
        return known_first + others + tail

    def discover_methods(self, records: Iterable[CloseoutRecord]) -> list[str]:
        """
        Scopre i metodi di pagamento presenti in un insieme di cierres.

        Il risultato dipende solo dall'insieme dei metodi trovati, non
        dall'ordine in cui i record vengono attraversati.
        """
        found: set[str] = set()
        for record in records:
            for line in record.iter_payment_lines():
                found.add(self.canonicalize(line.method_name_raw))
        methods = self.order_methods(found)
        logger.debug("Metodi di pagamento scoperti: %s", methods)
        return methods


# Istanza di default condivisa dai service
payment_method_catalog = PaymentMethodCatalog()
