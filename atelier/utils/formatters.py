"""
Utilidades de formateo para notificaciones.
Montos y fechas en estilo rioplatense (1.234,56 / DD/MM/YYYY HH:MM).
"""
from decimal import Decimal, InvalidOperation
from datetime import datetime
from typing import Union


def money_ar_2(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Formatea un monto con exactamente 2 decimales, punto para miles y coma para decimales.

    Examples:
        money_ar_2(850) -> "850,00"
        money_ar_2(Decimal('12345.5')) -> "12.345,50"
        money_ar_2(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    num = abs(num)

    integer_part, decimal_part = f"{num:.2f}".split(".")
    reversed_int = integer_part[::-1]
    groups = [reversed_int[i:i+3] for i in range(0, len(reversed_int), 3)]
    integer_formatted = '.'.join(groups)[::-1]

    return f"{sign}{integer_formatted},{decimal_part}"


def datetime_ar(value: Union[datetime, None], with_time: bool = True) -> str:
    """
    Formatea un datetime como DD/MM/YYYY HH:MM (o solo la fecha).

    Examples:
        datetime_ar(datetime(2026, 1, 12, 15, 30)) -> "12/01/2026 15:30"
    """
    if not isinstance(value, datetime):
        return "-"

    if with_time:
        return value.strftime("%d/%m/%Y %H:%M")
    return value.strftime("%d/%m/%Y")
