"""
Schemas Pydantic per i Cierres de Caja
Progetto: Hospitality Console (Cierres Teóricos)

Definisce i modelli tipizzati dei cierres, dei locales e dei puntos de venta.
I payload del backend usano chiavi con maiuscole variabili (`PK`/`pk`,
`BusinessDay`/`businessDay`, `MethodName`/`methodName`): vengono risolte
una sola volta qui, al confine dell'API, e il resto del codice usa solo
attributi tipizzati.
"""

import datetime
import re
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from closeout_console.utils.dates import parse_user_date, WIRE_DATE_RE
from closeout_console.utils.numbers import parse_amount


# -------------------------------------------------------------------
# Metodi di pagamento noti
# -------------------------------------------------------------------

# Ordine di visualizzazione preferito; unica source of truth importata
# dal catalogo dei metodi di pagamento.
KNOWN_PAYMENT_METHODS: tuple[str, ...] = (
    "Efectivo",
    "Tarjeta",
    "Pendiente de cobro",
    "Prepago Transferencia",
    "AgoraPay",
)

UNNAMED_PAYMENT_METHOD = "Sin nombre"

PAYMENT_ARRAY_FIELDS: tuple[str, ...] = (
    "invoice_payments",
    "ticket_payments",
    "delivery_note_payments",
    "sales_order_payments",
)


# -------------------------------------------------------------------
# Risoluzione chiavi case-insensitive
# -------------------------------------------------------------------

_KEY_NOISE_RE = re.compile(r"[\s_\-]")


def _norm_key(key: str) -> str:
    return _KEY_NOISE_RE.sub("", key).lower()


def _normalized(raw: Any) -> dict[str, Any]:
    """Indicizza un dict grezzo per chiave normalizzata (minuscole, senza spazi/underscore)."""
    if not isinstance(raw, dict):
        return {}
    out: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(key, str):
            out.setdefault(_norm_key(key), value)
    return out


def _pick(raw: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = raw.get(_norm_key(name))
        if value is not None:
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _array(value: Any) -> list:
    return value if isinstance(value, (list, tuple)) else []


def _business_day_from_sort_key(sort_key: str) -> str:
    if "#" in sort_key:
        return sort_key.split("#", 1)[0].strip()
    return ""


# -------------------------------------------------------------------
# Componenti del cierre
# -------------------------------------------------------------------

class PaymentLine(BaseModel):
    """Riga di pagamento `{MethodName, Amount}`; l'importo resta grezzo."""

    model_config = ConfigDict(frozen=True)

    method_name_raw: Optional[str] = None
    amount: Any = None

    @model_validator(mode="before")
    @classmethod
    def resolve_keys(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            return data
        raw = _normalized(data)
        if not raw:
            return {}
        method = _pick(raw, "MethodName", "method_name_raw", "method")
        return {
            "method_name_raw": None if method is None else str(method),
            "amount": _pick(raw, "Amount"),
        }


class CloseoutAmounts(BaseModel):
    """Importi `{gross, net, vat, surcharge}` riportati dal punto vendita."""

    model_config = ConfigDict(frozen=True)

    gross: Optional[Decimal] = None
    net: Optional[Decimal] = None
    vat: Optional[Decimal] = None
    surcharge: Optional[Decimal] = None

    @model_validator(mode="before")
    @classmethod
    def resolve_keys(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            return data
        raw = _normalized(data)
        return {
            "gross": _pick(raw, "GrossAmount", "gross"),
            "net": _pick(raw, "NetAmount", "net"),
            "vat": _pick(raw, "VatAmount", "vat"),
            "surcharge": _pick(raw, "SurchargeAmount", "surcharge"),
        }

    @field_validator("gross", "net", "vat", "surcharge", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Optional[Decimal]:
        """Importi non interpretabili diventano None invece di sollevare errori."""
        return parse_amount(v)

    def to_wire(self) -> dict[str, Any]:
        def _num(v: Optional[Decimal]) -> Optional[float]:
            return None if v is None else float(v)

        return {
            "GrossAmount": _num(self.gross),
            "NetAmount": _num(self.net),
            "VatAmount": _num(self.vat),
            "SurchargeAmount": _num(self.surcharge),
        }


class CloseoutDocument(BaseModel):
    """Serie di documenti emessi nella sessione di cassa."""

    model_config = ConfigDict(frozen=True)

    serie: Optional[str] = None
    first_number: Any = None
    last_number: Any = None
    count: Any = None
    amount: Any = None

    @model_validator(mode="before")
    @classmethod
    def resolve_keys(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            return data
        raw = _normalized(data)
        serie = _pick(raw, "Serie")
        return {
            "serie": None if serie is None else str(serie),
            "first_number": _pick(raw, "FirstNumber"),
            "last_number": _pick(raw, "LastNumber"),
            "count": _pick(raw, "Count"),
            "amount": _pick(raw, "Amount"),
        }


# -------------------------------------------------------------------
# Cierre de caja
# -------------------------------------------------------------------

class CloseoutRecord(BaseModel):
    """
    Riepilogo di una sessione di cassa (cierre) per locale/terminale/giorno.

    Il record è un value object immutabile: il backend lo sostituisce per
    intero a ogni aggiornamento e il client lo rilegge dopo ogni mutazione.

    Attributes:
        partition_key: Codice del locale (workplace): `PK`
        sort_key: Chiave di ordinamento, di solito `BusinessDay#numero`: `SK`
        business_day: Giorno operativo `YYYY-MM-DD`, derivato da `sort_key` se assente
        authoritative_gross: Totale vendite riportato direttamente, se presente
        direct_amounts: Colonne storiche appiattite per metodo di pagamento
    """

    model_config = ConfigDict(frozen=True)

    partition_key: str = ""
    sort_key: str = ""
    business_day: str = ""
    pos_id: Optional[str] = None
    pos_name: Optional[str] = None
    sequence_number: Optional[str] = None
    amounts: Optional[CloseoutAmounts] = None
    authoritative_gross: Any = None
    invoice_payments: tuple[PaymentLine, ...] = ()
    ticket_payments: tuple[PaymentLine, ...] = ()
    delivery_note_payments: tuple[PaymentLine, ...] = ()
    sales_order_payments: tuple[PaymentLine, ...] = ()
    direct_amounts: dict[str, Any] = Field(default_factory=dict)
    documents: tuple[CloseoutDocument, ...] = ()
    open_date: Optional[str] = None
    close_date: Optional[str] = None
    workplace_id: Optional[str] = None
    source: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def resolve_keys(cls, data: Any) -> Any:
        """Risolve una volta sola le chiavi case-insensitive del payload grezzo."""
        if isinstance(data, BaseModel):
            return data
        raw = _normalized(data)
        if not raw:
            return {}

        partition_key = _text(_pick(raw, "PK", "partitionKey")) or ""
        sort_key = _text(_pick(raw, "SK", "sortKey")) or ""
        business_day = _text(_pick(raw, "BusinessDay")) or _business_day_from_sort_key(sort_key)

        direct = _pick(raw, "direct_amounts")
        if not isinstance(direct, dict):
            direct = {}
            for method in KNOWN_PAYMENT_METHODS:
                value = _pick(raw, method)
                if value is not None:
                    direct[method] = value

        amounts = _pick(raw, "Amounts")
        return {
            "partition_key": partition_key,
            "sort_key": sort_key,
            "business_day": business_day,
            "pos_id": _text(_pick(raw, "PosId", "PosID", "pos_id")),
            "pos_name": _text(_pick(raw, "PosName", "pos_name")),
            "sequence_number": _text(_pick(raw, "Number", "sequence_number")),
            "amounts": amounts if isinstance(amounts, (dict, CloseoutAmounts)) else None,
            "authoritative_gross": _pick(raw, "TotalFacturado", "GrossSales", "authoritative_gross"),
            "invoice_payments": _array(_pick(raw, "InvoicePayments")),
            "ticket_payments": _array(_pick(raw, "TicketPayments")),
            "delivery_note_payments": _array(_pick(raw, "DeliveryNotePayments")),
            "sales_order_payments": _array(_pick(raw, "SalesOrderPayments")),
            "direct_amounts": direct,
            "documents": _array(_pick(raw, "Documents")),
            "open_date": _text(_pick(raw, "OpenDate")),
            "close_date": _text(_pick(raw, "CloseDate")),
            "workplace_id": _text(_pick(raw, "WorkplaceId", "WokrplaceId")),
            "source": _text(_pick(raw, "source")),
            "created_at": _text(_pick(raw, "createdAt")),
            "updated_at": _text(_pick(raw, "updatedAt")),
        }

    @classmethod
    def from_wire(cls, raw: Any) -> "CloseoutRecord":
        """Costruisce il record dal JSON grezzo del backend."""
        return cls.model_validate(raw)

    @property
    def reported_gross(self) -> Any:
        """Totale riportato: `TotalFacturado` se presente, altrimenti `Amounts.GrossAmount`."""
        if self.authoritative_gross is not None and parse_amount(self.authoritative_gross) is not None:
            return self.authoritative_gross
        if self.amounts is not None:
            return self.amounts.gross
        return None

    def iter_payment_lines(self) -> Iterator[PaymentLine]:
        """Tutte le righe di pagamento dei quattro tipi di documento, in ordine."""
        for field_name in PAYMENT_ARRAY_FIELDS:
            yield from getattr(self, field_name)

    def to_wire(self) -> dict[str, Any]:
        """Serializza il record nel formato atteso dal backend per create/update."""

        def _lines(lines: tuple[PaymentLine, ...]) -> list[dict[str, Any]]:
            return [{"MethodName": p.method_name_raw, "Amount": p.amount} for p in lines]

        payload: dict[str, Any] = {
            "PK": self.partition_key,
            "SK": self.sort_key,
            "BusinessDay": self.business_day or None,
            "Number": self.sequence_number,
            "PosId": self.pos_id,
            "PosName": self.pos_name,
            "OpenDate": self.open_date,
            "CloseDate": self.close_date,
            "WorkplaceId": self.workplace_id,
            "Amounts": self.amounts.to_wire() if self.amounts is not None else None,
            "InvoicePayments": _lines(self.invoice_payments),
            "TicketPayments": _lines(self.ticket_payments),
            "DeliveryNotePayments": _lines(self.delivery_note_payments),
            "SalesOrderPayments": _lines(self.sales_order_payments),
            "Documents": [
                {
                    "Serie": d.serie,
                    "FirstNumber": d.first_number,
                    "LastNumber": d.last_number,
                    "Count": d.count,
                    "Amount": d.amount,
                }
                for d in self.documents
            ],
        }
        if self.authoritative_gross is not None:
            payload["TotalFacturado"] = self.authoritative_gross
        payload.update(self.direct_amounts)
        return payload


# -------------------------------------------------------------------
# Dati di riferimento: locales e puntos de venta
# -------------------------------------------------------------------

class Venue(BaseModel):
    """Locale: serve solo a risolvere il nome visualizzato dal codice Ágora."""

    model_config = ConfigDict(frozen=True)

    code: str = ""
    name: str = ""

    @model_validator(mode="before")
    @classmethod
    def resolve_keys(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            return data
        raw = _normalized(data)
        return {
            "code": _text(_pick(raw, "AgoraCode", "code")) or "",
            "name": _text(_pick(raw, "Nombre", "name")) or "",
        }


class SaleCenter(BaseModel):
    """Punto de venta (terminale POS) di un locale."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    venue: Optional[str] = None
    group: Optional[str] = None
    kind: Optional[str] = None
    active: bool = True

    @model_validator(mode="before")
    @classmethod
    def resolve_keys(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            return data
        raw = _normalized(data)
        active = _pick(raw, "Activo", "active")
        return {
            "id": _text(_pick(raw, "Id")) or "",
            "name": _text(_pick(raw, "Nombre", "name")) or "",
            "venue": _text(_pick(raw, "Local", "venue")),
            "group": _text(_pick(raw, "Grupo", "group")),
            "kind": _text(_pick(raw, "Tipo", "kind")),
            "active": active is not False,
        }


# -------------------------------------------------------------------
# Query: filtri, righe e pagine
# -------------------------------------------------------------------

class CloseoutFilters(BaseModel):
    """
    Filtri opzionali e indipendenti della tabella dei cierres.

    Le date accettano sia `YYYY-MM-DD` sia `dd/mm/yyyy`; una data non
    valida viene ignorata, come un filtro non impostato.
    """

    venue_codes: list[str] = Field(default_factory=list)
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    year: Optional[str] = None
    month: Optional[str] = None
    search: Optional[str] = None
    has_billing: bool = False
    page: int = 1

    @field_validator("venue_codes", mode="before")
    @classmethod
    def normalize_venue_codes(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [str(code).strip() for code in v if str(code).strip()]

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        if isinstance(v, datetime.date):
            return v.isoformat()
        return parse_user_date(str(v))

    @field_validator("year")
    @classmethod
    def normalize_year(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        return v if re.fullmatch(r"\d{4}", v) else None

    @field_validator("month")
    @classmethod
    def normalize_month(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip() or not v.strip().isdigit():
            return None
        month = int(v)
        return f"{month:02d}" if 1 <= month <= 12 else None

    @field_validator("search")
    @classmethod
    def normalize_search(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip().lower() or None


class CloseoutRow(BaseModel):
    """Riga di visualizzazione di un cierre, con importi già formattati."""

    partition_key: str
    sort_key: str
    business_day: str
    business_day_display: str
    venue_name: str
    pos_name: str
    sequence_number: str
    invoice_total: Decimal
    invoice_total_display: str
    payments: dict[str, str]
    month: str
    year: str
    weekday: str
    open_date: str
    close_date: str
    document_count: int


class CloseoutTotals(BaseModel):
    """Totali dell'insieme filtrato: fatturato e importi per metodo."""

    record_count: int
    invoice_total: Decimal
    invoice_total_display: str
    per_method: dict[str, Decimal]
    per_method_display: dict[str, str]


class CloseoutPage(BaseModel):
    """Risposta paginata della tabella dei cierres."""

    items: list[CloseoutRow]
    total: int
    page: int
    page_size: int
    total_pages: int
    payment_methods: list[str]
    totals: CloseoutTotals
    filters_summary: str


# -------------------------------------------------------------------
# Sincronizzazione
# -------------------------------------------------------------------

class SyncJobState(str, Enum):
    """Stati del job di sincronizzazione (nessuno stato Failed terminale)."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class SyncDayResult(BaseModel):
    """Esito della sincronizzazione di un singolo giorno."""

    model_config = ConfigDict(frozen=True)

    business_day: str
    ok: bool
    fetched: int = 0
    upserted: int = 0
    error: Optional[str] = None


class SyncRangeRequest(BaseModel):
    """Corpo della richiesta di avvio di un batch di sincronizzazione."""

    model_config = ConfigDict(populate_by_name=True)

    date_from: str = Field(..., alias="from", description="Primo giorno (YYYY-MM-DD o dd/mm/yyyy)")
    date_to: Optional[str] = Field(None, alias="to", description="Ultimo giorno incluso")

    @field_validator("date_from", "date_to", mode="before")
    @classmethod
    def accept_display_format(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip() and not WIRE_DATE_RE.match(v.strip()):
            return parse_user_date(v) or v
        return v.strip() if isinstance(v, str) else v


class SyncProgress(BaseModel):
    """
    Snapshot immutabile dell'avanzamento di un job di sincronizzazione.

    Attributes:
        percentage: round(completed_count / total_count * 100)
        estimated_remaining_seconds: None finché nessun giorno è completato,
            0 al termine del batch
    """

    model_config = ConfigDict(frozen=True)

    job_id: str
    state: SyncJobState
    date_from: Optional[str]
    date_to: Optional[str]
    total_count: int
    completed_count: int
    percentage: int
    elapsed_seconds: int
    estimated_remaining_seconds: Optional[int]
    current_day: Optional[str] = None
    fetched_total: int = 0
    upserted_total: int = 0
    failed_count: int = 0
    cancelled: bool = False
    started_at: Optional[datetime.datetime] = None
    finished_at: Optional[datetime.datetime] = None
    message: Optional[str] = None
