"""Store configuration: branding, defaults and the tax rate used by carts."""
from decimal import Decimal
from typing import Dict, Any

from flask import current_app

from multipos.models import StoreConfig
from multipos.exceptions import ValidationError
from multipos.utils.money import to_decimal, percent_to_rate

SUPPORTED_LANGUAGES = {
    'es': 'Español',
    'en': 'English',
    'fr': 'Français',
    'de': 'Deutsch',
    'zh': '中文',
    'ja': '日本語',
}

SUPPORTED_CURRENCIES = {
    'MXN': {'name': 'Peso Mexicano', 'symbol': '$'},
    'USD': {'name': 'US Dollar', 'symbol': '$'},
    'EUR': {'name': 'Euro', 'symbol': '€'},
    'GBP': {'name': 'British Pound', 'symbol': '£'},
    'CNY': {'name': 'Chinese Yuan', 'symbol': '¥'},
    'JPY': {'name': 'Japanese Yen', 'symbol': '¥'},
}

_EDITABLE_FIELDS = (
    'business_name', 'domain', 'logo_url', 'primary_color', 'secondary_color',
    'accent_color', 'default_language', 'default_currency', 'tax_rate', 'active',
)


def get_store_config(session) -> StoreConfig:
    """Return the active store config, creating one from app defaults if missing."""
    config = session.query(StoreConfig).filter(StoreConfig.active == True).first()  # noqa: E712
    if config:
        return config

    config = StoreConfig(
        business_name=current_app.config.get('BUSINESS_NAME', 'Mi Negocio'),
        default_language=current_app.config.get('DEFAULT_LANGUAGE', 'es'),
        default_currency=current_app.config.get('DEFAULT_CURRENCY', 'MXN'),
        tax_rate=to_decimal(current_app.config.get('DEFAULT_TAX_RATE', '16')),
        active=True
    )
    session.add(config)
    session.commit()
    current_app.logger.info("[CONFIG] Created default store config")
    return config


def get_tax_rate(session) -> Decimal:
    """Tax rate as a fraction (16% -> 0.16)."""
    return percent_to_rate(get_store_config(session).tax_rate)


def update_store_config(session, data: Dict[str, Any]) -> StoreConfig:
    """Partial update of the store config."""
    config = get_store_config(session)
    unknown = set(data) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Campos no editables: {', '.join(sorted(unknown))}")

    if 'business_name' in data and not str(data['business_name'] or '').strip():
        raise ValidationError('El nombre del negocio es requerido')

    if 'default_language' in data and data['default_language'] not in SUPPORTED_LANGUAGES:
        raise ValidationError(f"Idioma no soportado: {data['default_language']}")

    if 'default_currency' in data and data['default_currency'] not in SUPPORTED_CURRENCIES:
        raise ValidationError(f"Moneda no soportada: {data['default_currency']}")

    if 'tax_rate' in data:
        try:
            rate = to_decimal(data['tax_rate'])
        except ValueError:
            raise ValidationError('La tasa de impuesto debe ser un número')
        if rate < 0 or rate > 100:
            raise ValidationError('La tasa de impuesto debe estar entre 0 y 100')
        data = dict(data, tax_rate=rate)

    for field, value in data.items():
        setattr(config, field, value)

    session.commit()
    return config
