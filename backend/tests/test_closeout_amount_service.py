"""
Unit tests per AmountAggregator e format_amount.

Verificano la regola di precedenza del totale riportato rispetto alle
somme derivate e la tolleranza verso importi malformati.
"""

from decimal import Decimal

import pytest

from closeout_console.schemas.closeout import CloseoutRecord
from closeout_console.services.closeout_amount_service import format_amount

from conftest import pay, raw_closeout


# ============================================================
# Tests per total_for_method
# ============================================================


class TestTotalForMethod:
    """Tests per i totali per metodo di pagamento."""

    def test_sums_variants_across_arrays(self, aggregator, make_record):
        """Test "efectivo", "Efectivo", " EFECTIVO " si sommano sotto "Efectivo"."""
        record = make_record(
            invoice=[pay("efectivo", 10)],
            ticket=[pay("Efectivo", "5,25")],
            delivery=[pay(" EFECTIVO ", 2.75)],
        )
        assert aggregator.total_for_method(record, "Efectivo") == Decimal("18.00")

    def test_missing_and_invalid_amounts_count_as_zero(self, aggregator, make_record):
        """Test importi assenti o non numerici valgono 0 senza eccezioni."""
        record = make_record(
            invoice=[pay("Tarjeta", None), pay("Tarjeta", "abc"), pay("Tarjeta", 7), pay("Tarjeta", True)],
        )
        assert aggregator.total_for_method(record, "Tarjeta") == Decimal("7")

    def test_method_not_present(self, aggregator, make_record):
        """Test metodo assente -> 0."""
        record = make_record(invoice=[pay("Efectivo", 10)])
        assert aggregator.total_for_method(record, "AgoraPay") == Decimal("0")

    def test_unnamed_method(self, aggregator, make_record):
        """Test le righe senza nome si sommano sotto "Sin nombre"."""
        record = make_record(invoice=[pay("", 3), pay(None, 4)])
        assert aggregator.total_for_method(record, "Sin nombre") == Decimal("7")

    def test_direct_column_wins(self, aggregator):
        """Test la colonna storica appiattita prevale sulla somma delle righe."""
        record = CloseoutRecord.from_wire(
            raw_closeout(invoice=[pay("Efectivo", 10)], Efectivo="99,90")
        )
        assert aggregator.total_for_method(record, "Efectivo") == Decimal("99.90")

    def test_direct_column_case_insensitive_key(self, aggregator):
        """Test la colonna diretta viene risolta anche con chiave in minuscolo."""
        record = CloseoutRecord.from_wire(raw_closeout(tarjeta=12.5))
        assert aggregator.total_for_method(record, "Tarjeta") == Decimal("12.5")

    @pytest.mark.parametrize("blank", ["", "   ", None, "n/a"])
    def test_blank_or_invalid_direct_column_falls_back(self, aggregator, blank):
        """Test colonna diretta vuota o non numerica -> somma delle righe."""
        record = CloseoutRecord.from_wire(
            raw_closeout(invoice=[pay("Efectivo", 10)], ticket=[pay("cash", 5)], Efectivo=blank)
        )
        assert aggregator.total_for_method(record, "Efectivo") == Decimal("15")


# ============================================================
# Tests per invoice_total
# ============================================================


class TestInvoiceTotal:
    """Tests per la precedenza del totale fatturato."""

    def test_without_authoritative_field_sums_invoice_payments(self, aggregator, make_record):
        """Test senza campo autorevole -> somma di InvoicePayments."""
        record = make_record(
            gross=None,
            invoice=[pay("Efectivo", 10), pay("Tarjeta", "2,5"), pay("Bizum", None)],
            ticket=[pay("Efectivo", 1000)],
        )
        assert aggregator.invoice_total(record) == Decimal("12.5")

    def test_authoritative_field_wins_when_disagreeing(self, aggregator):
        """Test il totale riportato prevale anche se la somma è diversa."""
        record = CloseoutRecord.from_wire(
            raw_closeout(gross=50, invoice=[pay("Efectivo", 10)], TotalFacturado="321,40")
        )
        assert aggregator.invoice_total(record) == Decimal("321.40")

    def test_gross_amount_used_as_reported_total(self, aggregator, make_record):
        """Test Amounts.GrossAmount vale come totale riportato."""
        record = make_record(gross=80, invoice=[pay("Efectivo", 10)])
        assert aggregator.invoice_total(record) == Decimal("80")

    def test_zero_reported_total_is_still_authoritative(self, aggregator, make_record):
        """Test un totale riportato a 0 non viene sostituito dalla somma."""
        record = make_record(gross=0, invoice=[pay("Efectivo", 10)])
        assert aggregator.invoice_total(record) == Decimal("0")

    def test_invalid_authoritative_field_falls_back(self, aggregator):
        """Test un campo autorevole non numerico viene ignorato."""
        record = CloseoutRecord.from_wire(
            raw_closeout(gross=None, invoice=[pay("Efectivo", 10)], TotalFacturado="—")
        )
        assert aggregator.invoice_total(record) == Decimal("10")

    def test_has_billing(self, aggregator, make_record):
        """Test "con fatturato" significa totale > 0."""
        assert aggregator.has_billing(make_record(gross=1))
        assert not aggregator.has_billing(make_record(gross=0, invoice=[pay("Efectivo", 10)]))
        assert not aggregator.has_billing(make_record(gross=None))


# ============================================================
# Tests per summarize
# ============================================================


class TestSummarize:
    """Tests per i totali dell'insieme filtrato."""

    def test_totals(self, aggregator, catalog, sample_records):
        """Test fatturato complessivo e totali per metodo."""
        methods = catalog.discover_methods(sample_records)
        totals = aggregator.summarize(sample_records, methods)

        assert totals.record_count == 4
        assert totals.invoice_total == Decimal("250.5") + Decimal("20.50") + Decimal("0") + Decimal("1234.56")
        assert totals.per_method["Efectivo"] == Decimal("130.50")
        assert totals.per_method["Tarjeta"] == Decimal("190.5")
        assert totals.per_method["Bizum"] == Decimal("5")
        assert totals.invoice_total_display == "1.505,56 €"

    def test_empty(self, aggregator):
        """Test insieme vuoto -> totali a zero mostrati come "—"."""
        totals = aggregator.summarize([], ["Efectivo"])
        assert totals.invoice_total == Decimal("0")
        assert totals.invoice_total_display == "—"
        assert totals.per_method_display == {"Efectivo": "—"}


# ============================================================
# Tests per format_amount
# ============================================================


class TestFormatAmount:
    """Tests per la formattazione europea degli importi."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1234.56, "1.234,56 €"),
            (Decimal("1234567.891"), "1.234.567,89 €"),
            ("12,5", "12,50 €"),
            (0.005, "0,01 €"),
            (-1500, "-1.500,00 €"),
            (999, "999,00 €"),
        ],
    )
    def test_format(self, value, expected):
        """Test due decimali, virgola decimale, punto per le migliaia."""
        assert format_amount(value) == expected

    @pytest.mark.parametrize("value", [0, "0", "0,00", 0.001, None, "", "abc", float("nan")])
    def test_zero_or_invalid_is_no_value(self, value):
        """Test zero o importo non valido -> "—", mai "0,00"."""
        assert format_amount(value) == "—"

    def test_without_currency_symbol(self):
        """Test senza simbolo valuta."""
        assert format_amount(10, currency_symbol=None) == "10,00"
