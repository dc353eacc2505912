"""
Utility per le date dei cierres
Progetto: Hospitality Console (Cierres Teóricos)

Formato wire sempre `YYYY-MM-DD`, formato di visualizzazione `dd/mm/yyyy`.
"""

import datetime
import re
from typing import Optional

from closeout_console.core.exceptions import BusinessValidationError

WIRE_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DISPLAY_SPLIT_RE = re.compile(r"[/.\-]")

NO_VALUE = "—"

# Anni accettati per le date inserite dall'utente
USER_MIN_YEAR = 1900
USER_MAX_YEAR = 2100

MONTH_NAMES = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
]
# Indicizzati secondo date.weekday() (lunedì = 0)
WEEKDAY_NAMES = ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"]


def parse_wire_date(value: Optional[str]) -> Optional[datetime.date]:
    """Converte `YYYY-MM-DD` in date; None se il formato o la data non sono validi."""
    if not value:
        return None
    value = value.strip()
    if not WIRE_DATE_RE.match(value):
        return None
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        return None


def is_wire_date(value: Optional[str]) -> bool:
    return parse_wire_date(value) is not None


def to_display(value: Optional[str]) -> str:
    """Converte `YYYY-MM-DD` in `dd/mm/yyyy`; stringa vuota se non valida."""
    parsed = parse_wire_date(value)
    if parsed is None:
        return ""
    return f"{parsed.day:02d}/{parsed.month:02d}/{parsed.year:04d}"


def to_wire(value: Optional[str]) -> Optional[str]:
    """
    Converte una data `dd/mm/yyyy` in formato wire.

    Accetta `D/M/YYYY` o `DD/MM/YYYY` con separatori `/`, `.` o `-`
    e spazi arbitrari. L'anno deve avere quattro cifre; le date
    inesistenti (es. 31/02) vengono rifiutate.

    Returns:
        La data in formato `YYYY-MM-DD`, oppure None se non valida
    """
    if not value:
        return None
    compact = re.sub(r"\s", "", value)
    parts = _DISPLAY_SPLIT_RE.split(compact)
    if len(parts) != 3 or not all(p.isdigit() for p in parts) or len(parts[2]) != 4:
        return None
    day, month, year = (int(p) for p in parts)
    try:
        parsed = datetime.date(year, month, day)
    except ValueError:
        return None
    return parsed.isoformat()


def in_user_year_range(value: Optional[str]) -> bool:
    parsed = parse_wire_date(value)
    return parsed is not None and USER_MIN_YEAR <= parsed.year <= USER_MAX_YEAR


def parse_user_date(value: Optional[str]) -> Optional[str]:
    """
    Data inserita dall'utente (filtri, intervallo di sincronizzazione).

    Accetta formato wire o `dd/mm/yyyy`; rifiuta anni fuori da
    USER_MIN_YEAR..USER_MAX_YEAR.
    """
    if not value:
        return None
    text = value.strip()
    wire = text if is_wire_date(text) else to_wire(text)
    return wire if in_user_year_range(wire) else None


def days_in_range(date_from: str, date_to: str) -> list[str]:
    """Tutte le date wire tra gli estremi inclusi; lista vuota se from > to."""
    start = parse_wire_date(date_from)
    end = parse_wire_date(date_to)
    if start is None or end is None or start > end:
        return []
    span = (end - start).days
    return [(start + datetime.timedelta(days=i)).isoformat() for i in range(span + 1)]


def validate_sync_range(date_from: str, date_to: Optional[str], max_days: int) -> list[str]:
    """
    Valida un intervallo di sincronizzazione e restituisce i giorni.

    Se `date_to` è assente si sincronizza solo `date_from`.

    Raises:
        BusinessValidationError: Date malformate o fuori da
            USER_MIN_YEAR..USER_MAX_YEAR, intervallo invertito o più
            lungo di `max_days`
    """
    if not in_user_year_range(date_from):
        raise BusinessValidationError(
            "Introduce al menos la fecha inicial (YYYY-MM-DD)",
            error_code="INVALID_SYNC_RANGE",
        )
    if date_to is None or not date_to.strip():
        return [date_from.strip()]
    if not in_user_year_range(date_to):
        raise BusinessValidationError(
            "La fecha 'Hasta' debe tener formato YYYY-MM-DD",
            error_code="INVALID_SYNC_RANGE",
        )
    days = days_in_range(date_from, date_to)
    if not days:
        raise BusinessValidationError(
            "La fecha 'Hasta' debe ser igual o posterior a 'Desde'.",
            error_code="INVALID_SYNC_RANGE",
        )
    if len(days) > max_days:
        raise BusinessValidationError(
            f"El rango no puede superar {max_days} días.",
            error_code="INVALID_SYNC_RANGE",
            extra={"days": len(days), "max_days": max_days},
        )
    return days


def month_name(business_day: Optional[str]) -> str:
    parsed = parse_wire_date(business_day)
    return MONTH_NAMES[parsed.month - 1] if parsed else NO_VALUE


def weekday_name(business_day: Optional[str]) -> str:
    parsed = parse_wire_date(business_day)
    return WEEKDAY_NAMES[parsed.weekday()] if parsed else NO_VALUE


def year_of(business_day: Optional[str]) -> str:
    parsed = parse_wire_date(business_day)
    return str(parsed.year) if parsed else NO_VALUE
