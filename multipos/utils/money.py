"""Money helpers: everything monetary is a Decimal with 2 fractional digits."""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union, Optional

CENTS = Decimal('0.01')
AMOUNT_PATTERN = re.compile(r"^-?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?$")


def to_decimal(value: Union[int, float, Decimal, str, None]) -> Decimal:
    """
    Convert an incoming value to Decimal without going through binary floats.

    Accepts ints, Decimals, floats (via their repr) and strings such as
    "18", "18.5" or "1,234.56" (thousands separators are dropped).

    Raises:
        ValueError: if the value is empty or not a number.
    """
    if value is None:
        raise ValueError('Monto requerido')
    if isinstance(value, bool):
        raise ValueError(f'Monto inválido: {value}')
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value))
    else:
        cleaned = str(value).strip().replace('$', '').replace(' ', '')
        if not cleaned or not AMOUNT_PATTERN.match(cleaned):
            raise ValueError(f'Monto inválido: {value}')
        try:
            result = Decimal(cleaned.replace(',', ''))
        except InvalidOperation:
            raise ValueError(f'Monto inválido: {value}')

    if not result.is_finite():
        raise ValueError(f'Monto inválido: {value}')
    return result


def round2(value: Union[int, float, Decimal, str]) -> Decimal:
    """Round half-up to cents."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_amount(value, field: str = 'monto', allow_zero: bool = False) -> Decimal:
    """Parse a non-negative monetary input (2 decimals) or raise ValueError with a user message."""
    try:
        amount = round2(value)
    except ValueError:
        raise ValueError(f'El {field} debe ser un número válido')
    if amount < 0:
        raise ValueError(f'El {field} no puede ser negativo')
    if amount == 0 and not allow_zero:
        raise ValueError(f'El {field} debe ser mayor a 0')
    return amount


def percent_to_rate(percent: Union[int, Decimal, str]) -> Decimal:
    """16 -> Decimal('0.16')."""
    return to_decimal(percent) / Decimal('100')


def format_money(value: Optional[Union[int, float, Decimal, str]], symbol: str = '$') -> str:
    """
    Format a monetary value for receipts.

    Examples:
        format_money(1500) -> "$1,500.00"
        format_money(Decimal('41.76')) -> "$41.76"
        format_money(None) -> "-"
    """
    if value is None or value == '':
        return '-'
    try:
        amount = round2(value)
    except ValueError:
        return '-'
    sign = '-' if amount < 0 else ''
    return f"{sign}{symbol}{abs(amount):,.2f}"
