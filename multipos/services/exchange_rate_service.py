"""
Exchange rates for customer-facing currencies.

Rates come from the configured exchange-rate API, are cached in Redis for
EXCHANGE_RATE_TTL seconds, and fall back to a fixed table when the API is
unreachable.
"""
import logging
import time
from decimal import Decimal
from typing import Dict, Any

import requests
from flask import current_app

from multipos.exceptions import ValidationError
from multipos.services.cache_service import get_cache
from multipos.utils.money import to_decimal, round2

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = 'fx'
SUPPORTED_CURRENCIES = ('MXN', 'USD', 'EUR', 'GBP', 'CNY', 'JPY')

# MXN based
DEFAULT_RATES = {
    'MXN': Decimal('1'),
    'USD': Decimal('0.05'),
    'EUR': Decimal('0.045'),
    'GBP': Decimal('0.038'),
    'CNY': Decimal('0.35'),
    'JPY': Decimal('5.5'),
}

RATE_PRECISION = Decimal('0.000001')


def normalize_currency(code) -> str:
    value = str(code or '').strip().upper()
    if value not in SUPPORTED_CURRENCIES:
        raise ValidationError(f'Moneda no soportada: {code}')
    return value


def default_rates(base: str = 'MXN') -> Dict[str, Decimal]:
    """Fallback table re-based on `base`."""
    base = normalize_currency(base)
    base_value = DEFAULT_RATES[base]
    return {code: (value / base_value).quantize(RATE_PRECISION) for code, value in DEFAULT_RATES.items()}


def get_exchange_rates(base: str = 'MXN') -> Dict[str, Any]:
    """
    Rates from `base` to every supported currency.

    Returns:
        {'base', 'rates': {code: Decimal}, 'timestamp', 'source': 'api'|'cache'|'default'}
    """
    base = normalize_currency(base)
    cache = get_cache()

    cached = cache.get(CACHE_NAMESPACE, base)
    if cached is not None:
        cached['source'] = 'cache'
        return cached

    try:
        rates = _fetch_rates(base)
    except (requests.RequestException, ValueError, KeyError) as e:
        logger.warning(f"[FX] Rate API failed for {base}: {e}. Using default table.")
        return {
            'base': base,
            'rates': default_rates(base),
            'timestamp': int(time.time()),
            'source': 'default',
        }

    data = {'base': base, 'rates': rates, 'timestamp': int(time.time()), 'source': 'api'}
    cache.set(CACHE_NAMESPACE, base, data, ttl=current_app.config.get('EXCHANGE_RATE_TTL', 3600))
    return data


def get_rate(from_currency: str, to_currency: str) -> Decimal:
    from_currency = normalize_currency(from_currency)
    to_currency = normalize_currency(to_currency)
    if from_currency == to_currency:
        return Decimal('1')
    return get_exchange_rates(from_currency)['rates'][to_currency]


def convert(amount, from_currency: str, to_currency: str) -> Dict[str, Any]:
    """Convert an amount; the converted figure is rounded to cents."""
    try:
        amount = to_decimal(amount)
    except ValueError as e:
        raise ValidationError(str(e))
    rate = get_rate(from_currency, to_currency)
    return {
        'from': normalize_currency(from_currency),
        'to': normalize_currency(to_currency),
        'rate': rate,
        'amount': amount,
        'converted': round2(amount * rate),
    }


def _fetch_rates(base: str) -> Dict[str, Decimal]:
    url = f"{current_app.config['EXCHANGE_RATE_API_URL'].rstrip('/')}/{base}"
    logger.info(f"[FX] Fetching rates: {url}")
    response = requests.get(url, timeout=current_app.config.get('HTTP_TIMEOUT', 30))
    response.raise_for_status()
    upstream = response.json()['rates']

    fallback = default_rates(base)
    rates = {}
    for code in SUPPORTED_CURRENCIES:
        value = upstream.get(code)
        # Missing or zero upstream values keep the table value
        rates[code] = to_decimal(value).quantize(RATE_PRECISION) if value else fallback[code]
    return rates


def refresh_exchange_rates() -> int:
    """Drop every cached rate table; the next lookup goes to the API."""
    deleted = get_cache().invalidate_namespace(CACHE_NAMESPACE)
    logger.info(f"[FX] Cached rate tables dropped: {deleted}")
    return deleted
