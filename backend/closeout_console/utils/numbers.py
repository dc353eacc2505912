"""
Utility per il parsing degli importi
Progetto: Hospitality Console (Cierres Teóricos)
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

_WHITESPACE_RE = re.compile(r"\s")


def parse_amount(value: Any) -> Optional[Decimal]:
    """
    Converte un importo numerico o testuale in Decimal.

    Accetta la virgola come separatore decimale ("12,5") e, se sono presenti
    sia punto che virgola, interpreta il punto come separatore delle
    migliaia ("1.234,56"). Booleani, stringhe vuote, NaN e infiniti
    restituiscono None.

    Args:
        value: Valore grezzo proveniente dal backend o dall'utente

    Returns:
        L'importo come Decimal, oppure None se non interpretabile
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = _WHITESPACE_RE.sub("", value).replace("€", "")
        if not text:
            return None
        if "," in text:
            text = text.replace(".", "").replace(",", ".")
        try:
            result = Decimal(text)
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def amount_or_zero(value: Any) -> Decimal:
    """Come parse_amount, ma gli importi mancanti o non validi valgono 0."""
    parsed = parse_amount(value)
    return parsed if parsed is not None else Decimal("0")
