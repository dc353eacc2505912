"""
Pytest configuration and fixtures per i test del motore dei cierres.

Le fixture costruiscono cierres nel formato grezzo del backend (chiavi con
maiuscole variabili) e li convertono con `CloseoutRecord.from_wire`, come
avviene al confine dell'API.
"""

import json
from typing import Any, Callable, Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from closeout_console.clients.closeouts_client import CloseoutsClient
from closeout_console.schemas.closeout import CloseoutRecord, SaleCenter, SyncDayResult, Venue
from closeout_console.services.closeout_amount_service import AmountAggregator
from closeout_console.services.closeout_query_service import CloseoutQueryPipeline
from closeout_console.services.payment_method_service import PaymentMethodCatalog

BACKEND_URL = "http://backend.test/api"


# ============================================================
# Fixtures per i cierres grezzi
# ============================================================


def raw_closeout(
    pk: str = "1001",
    business_day: Optional[str] = "2024-01-15",
    number: int = 1,
    gross: Any = None,
    invoice: Optional[list] = None,
    ticket: Optional[list] = None,
    delivery: Optional[list] = None,
    orders: Optional[list] = None,
    **extra: Any,
) -> dict[str, Any]:
    """Cierre grezzo come restituito da `GET /closeouts`."""
    sk = f"{business_day}#{number}" if business_day else f"#{number}"
    raw: dict[str, Any] = {
        "PK": pk,
        "SK": sk,
        "Number": number,
        "WorkplaceId": pk,
        "Amounts": {
            "GrossAmount": gross,
            "NetAmount": None,
            "VatAmount": None,
            "SurchargeAmount": None,
        },
        "InvoicePayments": invoice or [],
        "TicketPayments": ticket or [],
        "DeliveryNotePayments": delivery or [],
        "SalesOrderPayments": orders or [],
        "Documents": [{"Serie": "T", "FirstNumber": 1, "LastNumber": 10, "Count": 10, "Amount": 100}],
        "source": "agora",
    }
    if business_day:
        raw["BusinessDay"] = business_day
    raw.update(extra)
    return raw


def pay(method: Optional[str], amount: Any) -> dict[str, Any]:
    return {"MethodName": method, "Amount": amount}


@pytest.fixture
def make_record() -> Callable[..., CloseoutRecord]:
    """Factory di CloseoutRecord a partire dal formato grezzo."""
    def _make(**kwargs: Any) -> CloseoutRecord:
        return CloseoutRecord.from_wire(raw_closeout(**kwargs))
    return _make


@pytest.fixture
def sample_records(make_record) -> list[CloseoutRecord]:
    """Tre locales, quattro giorni, metodi noti e scoperti."""
    return [
        make_record(
            pk="1001", business_day="2024-01-15", number=1, gross=250.5,
            invoice=[pay("Efectivo", 100), pay("Tarjeta", 150.5)],
        ),
        make_record(
            pk="1002", business_day="2024-01-15", number=1, gross=None,
            invoice=[pay("efectivo", "20,50")],
            ticket=[pay(" EFECTIVO ", 10), pay("Bizum", 5)],
        ),
        make_record(
            pk="1003", business_day="2024-01-16", number=2, gross=0,
            ticket=[pay("card", 40)],
        ),
        make_record(
            pk="1001", business_day="2024-01-14", number=3, gross="1.234,56",
            delivery=[pay("pending", 30)],
            orders=[pay("", 12)],
        ),
    ]


@pytest.fixture
def venue_names() -> dict[str, str]:
    return {"1001": "Zaragoza Centro", "1002": "Ávila Plaza", "1003": "Barcelona Port"}


@pytest.fixture
def venues() -> list[Venue]:
    return [
        Venue.model_validate({"AgoraCode": "1001", "Nombre": "Zaragoza Centro"}),
        Venue.model_validate({"agoraCode": "1002", "nombre": "Ávila Plaza"}),
        Venue.model_validate({"AgoraCode": "1003", "Nombre": "Barcelona Port"}),
    ]


@pytest.fixture
def sale_centers() -> list[SaleCenter]:
    return [SaleCenter.model_validate({"Id": "7", "Nombre": "Barra 1", "Local": "1001", "Activo": True})]


# ============================================================
# Fixtures per i service
# ============================================================


@pytest.fixture
def catalog() -> PaymentMethodCatalog:
    return PaymentMethodCatalog()


@pytest.fixture
def aggregator(catalog) -> AmountAggregator:
    return AmountAggregator(catalog)


@pytest.fixture
def pipeline(aggregator) -> CloseoutQueryPipeline:
    return CloseoutQueryPipeline(aggregator=aggregator, page_size=100)


@pytest.fixture
def mock_client(sample_records, venues, sale_centers) -> AsyncMock:
    """Mock di CloseoutsClient con dati di esempio."""
    client = AsyncMock(spec=CloseoutsClient)
    client.list_closeouts = AsyncMock(return_value=list(sample_records))
    client.list_venues = AsyncMock(return_value=list(venues))
    client.list_sale_centers = AsyncMock(return_value=list(sale_centers))
    client.sync_day = AsyncMock(
        side_effect=lambda day: SyncDayResult(business_day=day, ok=True, fetched=2, upserted=2)
    )
    client.create_closeout = AsyncMock(return_value={"ok": True})
    client.update_closeout = AsyncMock(return_value={"ok": True})
    client.delete_closeout = AsyncMock(return_value={"ok": True})
    return client


# ============================================================
# Backend finto per httpx.MockTransport
# ============================================================


class FakeBackend:
    """
    Backend REST finto per `httpx.MockTransport`.

    Registra tutte le richieste ricevute; le risposte si possono
    sostituire per path impostando `overrides[(method, path)]`.
    """

    def __init__(self, closeouts: Optional[list[dict[str, Any]]] = None) -> None:
        self.closeouts = closeouts if closeouts is not None else []
        self.requests: list[httpx.Request] = []
        self.synced_days: list[str] = []
        self.failing_days: set[str] = set()
        self.overrides: dict[tuple[str, str], httpx.Response] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key in self.overrides:
            return self.overrides[key]

        if key == ("GET", "/api/closeouts"):
            return httpx.Response(200, json={"closeouts": self.closeouts})
        if key == ("POST", "/api/closeouts/sync"):
            day = json.loads(request.content)["businessDay"]
            self.synced_days.append(day)
            if day in self.failing_days:
                return httpx.Response(500, json={"error": f"Ágora respondió 500 para {day}"})
            return httpx.Response(200, json={"ok": True, "fetched": 3, "upserted": 2, "businessDay": day})
        if key == ("GET", "/api/venues"):
            return httpx.Response(200, json={"venues": [{"AgoraCode": "1001", "Nombre": "Zaragoza Centro"}]})
        if key == ("GET", "/api/sale-centers"):
            return httpx.Response(200, json={"saleCenters": [{"Id": "7", "Nombre": "Barra 1"}]})
        if request.url.path == "/api/closeouts" and request.method in ("POST", "PUT", "DELETE"):
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(404, json={"error": "Not found"})


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend(
        closeouts=[
            raw_closeout(pk="1001", business_day="2024-01-15", gross=100, invoice=[pay("Efectivo", 100)]),
            raw_closeout(pk="1001", business_day="2024-01-16", gross=None, invoice=[pay("Tarjeta", 50)]),
        ]
    )


@pytest.fixture
def backend_client(fake_backend) -> CloseoutsClient:
    return CloseoutsClient(BACKEND_URL, transport=httpx.MockTransport(fake_backend))
