"""
Unit tests per PaymentMethodCatalog.

Verificano la canonicalizzazione delle etichette grezze del POS e
l'ordine deterministico dei metodi scoperti.
"""

import itertools

import pytest

from closeout_console.schemas.closeout import KNOWN_PAYMENT_METHODS, UNNAMED_PAYMENT_METHOD
from closeout_console.services.payment_method_service import PaymentMethodCatalog

from conftest import pay


# ============================================================
# Tests per canonicalize
# ============================================================


class TestCanonicalize:
    """Tests per la risoluzione delle etichette."""

    @pytest.mark.parametrize("raw", ["efectivo", "Efectivo", " EFECTIVO ", "EfEcTiVo", "cash"])
    def test_cash_variants(self, catalog, raw):
        """Test tutte le grafie di contanti diventano "Efectivo"."""
        assert catalog.canonicalize(raw) == "Efectivo"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("card", "Tarjeta"),
            ("CARD", "Tarjeta"),
            ("Tarjeta de crédito", "Tarjeta"),
            ("pending", "Pendiente de cobro"),
            ("pendiente  de  cobro", "Pendiente de cobro"),
            ("PendienteDeCobro", "Pendiente de cobro"),
            ("prepago transferencia", "Prepago Transferencia"),
            ("Agora Pay", "AgoraPay"),
            ("agorapay", "AgoraPay"),
        ],
    )
    def test_aliases(self, catalog, raw, expected):
        """Test sinonimi e spazi/maiuscole non influiscono."""
        assert catalog.canonicalize(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", "\t"])
    def test_blank_label_is_unnamed(self, catalog, raw):
        """Test etichetta vuota -> "Sin nombre"."""
        assert catalog.canonicalize(raw) == UNNAMED_PAYMENT_METHOD

    def test_unknown_label_is_its_own_method(self, catalog):
        """Test un'etichetta sconosciuta resta tale, senza spazi esterni."""
        assert catalog.canonicalize("  Bizum ") == "Bizum"
        assert catalog.canonicalize("Vale regalo") == "Vale regalo"

    @pytest.mark.parametrize(
        "raw",
        ["efectivo", " EFECTIVO ", "card", "pending", "", None, "  Bizum ", "Sin nombre", "AgoraPay", "x  y"],
    )
    def test_idempotent(self, catalog, raw):
        """Test canonicalize(canonicalize(x)) == canonicalize(x)."""
        once = catalog.canonicalize(raw)
        assert catalog.canonicalize(once) == once

    def test_same_label_same_result(self, catalog):
        """Test la funzione è pura all'interno della sessione."""
        results = {catalog.canonicalize("tarjeta") for _ in range(5)}
        assert results == {"Tarjeta"}

    def test_output_preserves_canonical_casing(self, catalog):
        """Test la ricerca è in minuscolo ma l'output usa la grafia canonica."""
        for method in KNOWN_PAYMENT_METHODS:
            assert catalog.canonicalize(method.upper()) == method


# ============================================================
# Tests per discover_methods
# ============================================================


class TestDiscoverMethods:
    """Tests per la scoperta dei metodi presenti nei cierres."""

    def test_known_first_then_others_sorted(self, catalog, make_record):
        """Test noti nell'ordine fisso, poi altri in ordine lessicale."""
        records = [
            make_record(invoice=[pay("Zelle", 1), pay("AgoraPay", 1)]),
            make_record(ticket=[pay("Bizum", 1), pay("card", 1), pay("efectivo", 1)]),
        ]
        assert catalog.discover_methods(records) == ["Efectivo", "Tarjeta", "AgoraPay", "Bizum", "Zelle"]

    def test_unnamed_excluded_from_others(self, catalog, make_record):
        """Test "Sin nombre" non è ordinato tra gli altri ma va in coda."""
        records = [make_record(invoice=[pay("", 1), pay("Bizum", 2), pay("Abono", 3), pay("Efectivo", 4)])]
        assert catalog.discover_methods(records) == ["Efectivo", "Abono", "Bizum", UNNAMED_PAYMENT_METHOD]

    def test_variants_collapse_to_one_method(self, catalog, make_record):
        """Test "efectivo", "Efectivo", " EFECTIVO " producono un solo metodo."""
        records = [
            make_record(invoice=[pay("efectivo", 1)]),
            make_record(ticket=[pay("Efectivo", 1)]),
            make_record(delivery=[pay(" EFECTIVO ", 1)]),
        ]
        assert catalog.discover_methods(records) == ["Efectivo"]

    def test_scans_all_four_payment_arrays(self, catalog, make_record):
        """Test tutti e quattro gli array di pagamento vengono letti."""
        record = make_record(
            invoice=[pay("Efectivo", 1)],
            ticket=[pay("Tarjeta", 1)],
            delivery=[pay("Prepago Transferencia", 1)],
            orders=[pay("pending", 1)],
        )
        assert catalog.discover_methods([record]) == [
            "Efectivo", "Tarjeta", "Pendiente de cobro", "Prepago Transferencia",
        ]

    def test_order_independent_of_record_order(self, catalog, sample_records, make_record):
        """Test l'output è identico per ogni permutazione dei record."""
        records = sample_records + [make_record(invoice=[pay("Zelle", 1), pay("Abono", 2)])]
        expected = catalog.discover_methods(records)
        for permutation in itertools.permutations(records):
            fresh = PaymentMethodCatalog()
            assert fresh.discover_methods(list(permutation)) == expected

    def test_empty_records(self, catalog):
        """Test nessun record -> nessun metodo."""
        assert catalog.discover_methods([]) == []

    def test_is_known(self, catalog):
        """Test solo le grafie canoniche dei metodi noti sono "note"."""
        assert catalog.is_known("Efectivo")
        assert catalog.is_known("Pendiente de cobro")
        assert not catalog.is_known("efectivo")
        assert not catalog.is_known("Bizum")
        assert not catalog.is_known(UNNAMED_PAYMENT_METHOD)
