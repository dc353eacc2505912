"""
Service Layer per gli importi dei cierres
Progetto: Hospitality Console (Cierres Teóricos)

Calcola i totali per metodo di pagamento e il totale fatturato di un cierre,
applicando la regola di precedenza tra i campi scalari riportati dal POS
e le somme derivate dagli array di pagamento.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from closeout_console.schemas.closeout import CloseoutRecord, CloseoutTotals
from closeout_console.services.payment_method_service import (
    PaymentMethodCatalog,
    payment_method_catalog,
)
from closeout_console.utils.dates import NO_VALUE
from closeout_console.utils.numbers import amount_or_zero, parse_amount

CENT = Decimal("0.01")


def format_amount(value: Any, currency_symbol: Optional[str] = "€") -> str:
    """
    Formatta un importo in stile europeo: `1.234,56 €`.

    Arrotonda a due decimali; un importo nullo o non interpretabile
    viene mostrato come "—" e mai come "0,00".
    """
    amount = parse_amount(value)
    if amount is None:
        return NO_VALUE
    rounded = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if rounded == 0:
        return NO_VALUE
    int_part, dec_part = f"{abs(rounded):,.2f}".split(".")
    text = f"{'-' if rounded < 0 else ''}{int_part.replace(',', '.')},{dec_part}"
    return f"{text} {currency_symbol}" if currency_symbol else text


class AmountAggregator:
    """
    Aggregatore degli importi di un cierre.

    Non solleva mai eccezioni su importi malformati: i valori mancanti
    o non numerici valgono 0.
    """

    def __init__(self, catalog: Optional[PaymentMethodCatalog] = None) -> None:
        self.catalog = catalog or payment_method_catalog

    def direct_amount(self, record: CloseoutRecord, canonical_method: str) -> Optional[Decimal]:
        """Valore della colonna storica appiattita del metodo, se valorizzata."""
        value = record.direct_amounts.get(canonical_method)
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return parse_amount(value)

    def total_for_method(self, record: CloseoutRecord, canonical_method: str) -> Decimal:
        """
        Totale di un metodo di pagamento canonico per un cierre.

        Se la colonna diretta del metodo è valorizzata con un numero
        (anche con virgola decimale) viene restituita così com'è;
        altrimenti si sommano gli importi di tutte le righe dei quattro
        array di pagamento la cui etichetta canonica coincide.
        """
        direct = self.direct_amount(record, canonical_method)
        if direct is not None:
            return direct
        total = Decimal("0")
        for line in record.iter_payment_lines():
            if self.catalog.canonicalize(line.method_name_raw) == canonical_method:
                total += amount_or_zero(line.amount)
        return total

    def invoice_payments_total(self, record: CloseoutRecord) -> Decimal:
        return sum((amount_or_zero(p.amount) for p in record.invoice_payments), Decimal("0"))

    def invoice_total(self, record: CloseoutRecord) -> Decimal:
        """
        Totale fatturato di un cierre.

        Il totale riportato direttamente (campo autorevole) prevale sempre
        sulla somma delle righe di InvoicePayments, anche se i due valori
        sono entrambi presenti e discordanti.
        """
        reported = parse_amount(record.reported_gross)
        if reported is not None:
            return reported
        return self.invoice_payments_total(record)

    def has_billing(self, record: CloseoutRecord) -> bool:
        return self.invoice_total(record) > 0

    def summarize(
        self,
        records: Iterable[CloseoutRecord],
        methods: Iterable[str],
        currency_symbol: Optional[str] = "€",
    ) -> CloseoutTotals:
        """Totali dell'insieme: fatturato complessivo e importo per metodo."""
        methods = list(methods)
        per_method = {m: Decimal("0") for m in methods}
        invoice_total = Decimal("0")
        count = 0
        for record in records:
            count += 1
            invoice_total += self.invoice_total(record)
            for method in methods:
                per_method[method] += self.total_for_method(record, method)
        return CloseoutTotals(
            record_count=count,
            invoice_total=invoice_total,
            invoice_total_display=format_amount(invoice_total, currency_symbol),
            per_method=per_method,
            per_method_display={
                m: format_amount(v, currency_symbol) for m, v in per_method.items()
            },
        )


# Istanza di default condivisa dai service
amount_aggregator = AmountAggregator()
