"""Small helpers for reading JSON bodies and query args."""
from datetime import date, datetime
from typing import Any, Dict, Optional

from flask import request

from multipos.exceptions import ValidationError

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def get_json_body(required: bool = True) -> Dict[str, Any]:
    """Request JSON as a dict; empty dict when optional and absent."""
    data = request.get_json(silent=True)
    if data is None:
        if required:
            raise ValidationError('Se esperaba un cuerpo JSON')
        return {}
    if not isinstance(data, dict):
        raise ValidationError('El cuerpo JSON debe ser un objeto')
    return data


def arg_bool(name: str, default: bool = False) -> bool:
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


def arg_int(name: str, default: Optional[int] = None, minimum: int = 1, maximum: int = 500) -> Optional[int]:
    value = request.args.get(name)
    if value in (None, ''):
        return default
    try:
        number = int(value)
    except ValueError:
        raise ValidationError(f'{name} debe ser un número entero')
    return max(minimum, min(maximum, number))


def arg_date(name: str) -> Optional[date]:
    """YYYY-MM-DD query arg."""
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f'Fecha inválida en {name}: use AAAA-MM-DD')
