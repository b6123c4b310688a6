"""
Payment terminal integration (Mercado Pago Point).

The store links its Mercado Pago account through OAuth; the resulting tokens
live in terminal_connection and are used to push charges to a Point device
and poll their status.
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Dict, Any, Optional

from flask import current_app

from multipos.exceptions import ConfigurationError, ValidationError, NotFoundError
from multipos.models import TerminalConnection
from multipos.services.mercadopago_client import (
    MercadoPagoClient, build_authorization_url, exchange_code_for_token,
    normalize_intent_status, cents_to_amount
)
from multipos.utils.money import parse_amount

logger = logging.getLogger(__name__)

PROVIDER = 'mercadopago'


def get_connection(session) -> Optional[TerminalConnection]:
    return session.query(TerminalConnection).filter_by(provider=PROVIDER).first()


def get_client(session) -> MercadoPagoClient:
    connection = get_connection(session)
    if not connection or connection.status != 'connected':
        raise ConfigurationError('No hay una terminal de pago conectada')
    return MercadoPagoClient(connection.access_token)


# =====================================================
# OAUTH
# =====================================================

def get_redirect_uri() -> str:
    configured = current_app.config.get('MERCADOPAGO_REDIRECT_URI')
    if configured:
        return configured
    return f"{current_app.config.get('APP_URL', '').rstrip('/')}/api/oauth/mercadopago/callback"


def start_oauth(state: str) -> Dict[str, str]:
    """Authorization URL carrying the CSRF state the callback must echo."""
    client_id = current_app.config.get('MERCADOPAGO_CLIENT_ID')
    if not client_id:
        raise ConfigurationError('Mercado Pago no está configurado', payload={'demo_mode': True})

    return {
        'auth_url': build_authorization_url(client_id, get_redirect_uri(), state),
        'state': state,
    }


def complete_oauth(session, code: str, state: str, expected_state: Optional[str]) -> TerminalConnection:
    """
    Validate state, exchange the code and store (or refresh) the connection.

    Raises:
        ValidationError: missing params, or state not matching the one issued at connect
        ConfigurationError: client credentials missing
        ExternalServiceError: token exchange failed
    """
    if not code or not state:
        raise ValidationError('Faltan parámetros code o state')
    if not expected_state or state != expected_state:
        logger.warning(f"[MP] OAuth state mismatch - received: {state[:10]}...")
        raise ValidationError('Parámetro state inválido')

    config = current_app.config
    if not config.get('MERCADOPAGO_CLIENT_ID') or not config.get('MERCADOPAGO_CLIENT_SECRET'):
        raise ConfigurationError('Mercado Pago no está configurado')

    tokens = exchange_code_for_token(code, get_redirect_uri())
    if not tokens.get('access_token'):
        raise ValidationError('Respuesta de token inválida')

    connection = get_connection(session)
    if connection is None:
        connection = TerminalConnection(provider=PROVIDER)
        session.add(connection)

    connection.mp_user_id = str(tokens['user_id']) if tokens.get('user_id') else None
    connection.access_token = tokens['access_token']
    connection.refresh_token = tokens.get('refresh_token')
    connection.public_key = tokens.get('public_key')
    connection.token_expires_at = datetime.now() + timedelta(seconds=int(tokens.get('expires_in') or 0))
    connection.live_mode = bool(tokens.get('live_mode', False))
    connection.status = 'connected'

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[MP] Terminal account linked (user {connection.mp_user_id})")
    return connection


def disconnect(session) -> None:
    connection = get_connection(session)
    if not connection:
        raise NotFoundError('No hay una terminal conectada')
    session.delete(connection)
    session.commit()
    logger.info("[MP] Terminal account unlinked")


def set_default_device(session, device_id: str) -> TerminalConnection:
    connection = get_connection(session)
    if not connection:
        raise NotFoundError('No hay una terminal conectada')
    connection.device_id = (device_id or '').strip() or None
    session.commit()
    return connection


# =====================================================
# PAYMENTS
# =====================================================

def list_devices(session):
    return get_client(session).list_devices()


def create_payment_intent(session, amount, device_id: Optional[str] = None,
                          external_reference: Optional[str] = None) -> Dict[str, Any]:
    """Send a charge to the terminal. Returns {status: 'processing', paymentIntentId, ...}."""
    try:
        amount = parse_amount(amount, field='monto')
    except ValueError as e:
        raise ValidationError(str(e))

    client = get_client(session)
    device_id = device_id or get_connection(session).device_id
    if not device_id:
        raise ValidationError('Selecciona una terminal (device_id)')

    reference = external_reference or f"POS-{int(time.time() * 1000)}"
    intent = client.create_payment_intent(device_id, amount, reference)
    return {
        'status': 'processing',
        'paymentIntentId': intent.get('id'),
        'device_id': intent.get('device_id', device_id),
        'amount': str(cents_to_amount(intent['amount'])) if intent.get('amount') is not None else str(amount),
        'external_reference': reference,
    }


def get_payment_status(session, intent_id: str) -> Dict[str, Any]:
    if not intent_id:
        raise ValidationError('payment_intent_id es requerido')
    return normalize_intent_status(get_client(session).get_payment_intent(intent_id))
