"""
Unit tests per gli schemi dei cierres e per le impostazioni.
"""

from decimal import Decimal

import pytest

from closeout_console.core.config import Settings
from closeout_console.schemas.closeout import (
    CloseoutFilters,
    CloseoutRecord,
    SyncRangeRequest,
)

from conftest import pay, raw_closeout


class TestCloseoutRecord:
    """Tests per il parsing del cierre grezzo."""

    def test_keys_are_case_insensitive(self):
        """Test chiavi con maiuscole variabili."""
        record = CloseoutRecord.from_wire({
            "pk": "1001",
            "sk": "2024-01-15#4",
            "invoicepayments": [{"methodname": "Efectivo", "amount": "5,5"}],
            "AMOUNTS": {"grossamount": "5,5"},
            "PosName": " Barra ",
        })
        assert record.partition_key == "1001"
        assert record.invoice_payments[0].method_name_raw == "Efectivo"
        assert record.amounts.gross == Decimal("5.5")
        assert record.pos_name == "Barra"

    def test_business_day_from_sort_key(self):
        """Test BusinessDay assente -> prefisso di SK prima di "#"."""
        raw = raw_closeout(business_day=None, number=2)
        raw["SK"] = "2024-02-01#2"
        record = CloseoutRecord.from_wire(raw)
        assert record.business_day == "2024-02-01"
        assert record.sort_key == "2024-02-01#2"

    def test_missing_arrays_and_bad_amounts(self):
        """Test array assenti e importi malformati non sollevano errori."""
        record = CloseoutRecord.from_wire({"PK": "1", "SK": "x", "Amounts": {"GrossAmount": "abc"}})
        assert record.invoice_payments == ()
        assert record.amounts.gross is None
        assert record.reported_gross is None
        assert record.business_day == ""

    def test_authoritative_total_preferred(self):
        record = CloseoutRecord.from_wire(raw_closeout(gross=10, TotalFacturado=12))
        assert record.reported_gross == 12

    def test_to_wire_round_trip_keys(self):
        """Test la serializzazione usa le chiavi attese dal backend."""
        raw = raw_closeout(gross=10, invoice=[pay("Efectivo", 10)], Tarjeta="3,5")
        wire = CloseoutRecord.from_wire(raw).to_wire()
        assert wire["PK"] == "1001"
        assert wire["Amounts"]["GrossAmount"] == 10.0
        assert wire["Tarjeta"] == "3,5"
        assert "TotalFacturado" not in wire


class TestRequestSchemas:
    """Tests per filtri e richiesta di sincronizzazione."""

    def test_filters_normalization(self):
        filters = CloseoutFilters(
            venue_codes=" 1001 ", year="24", month="13", search="  ÁVILA ", date_to="2024-01-31",
        )
        assert filters.venue_codes == ["1001"]
        assert filters.year is None
        assert filters.month is None
        assert filters.search == "ávila"
        assert filters.date_to == "2024-01-31"

    def test_sync_request_aliases_and_display_dates(self):
        request = SyncRangeRequest.model_validate({"from": "1/2/2024", "to": "2024-02-03"})
        assert request.date_from == "2024-02-01"
        assert request.date_to == "2024-02-03"
        assert SyncRangeRequest(date_from="2024-02-01").date_to is None


class TestSettings:
    """Tests per le impostazioni."""

    def test_defaults(self):
        cfg = Settings(_env_file=None)
        assert cfg.page_size == 100
        assert cfg.sync_max_days == 365
        assert cfg.sync_day_timeout_seconds is None

    def test_normalization(self):
        cfg = Settings(
            _env_file=None,
            backend_api_url="https://cierres.example.com/api/",
            sync_day_timeout_seconds="2,5",
        )
        assert cfg.backend_api_url == "https://cierres.example.com/api"
        assert cfg.sync_day_timeout_seconds == 2.5
        assert Settings(_env_file=None, sync_day_timeout_seconds=0).sync_day_timeout_seconds is None

    def test_invalid_backend_url(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, backend_api_url="ftp://backend")

    def test_production_rejects_localhost_cors(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, app_env="production")
