"""Mercado Pago API client for Point terminals and OAuth account linking."""
from decimal import Decimal
from typing import Dict, Any, List, Optional
from urllib.parse import urlencode

import requests
from flask import current_app

from multipos.exceptions import ExternalServiceError, ConfigurationError
from multipos.utils.money import round2

AUTH_URL = "https://auth.mercadopago.com/authorization"

# Payment intent state -> POS status
INTENT_STATES = {
    'PROCESSING': 'processing',
    'OPEN': 'processing',
    'CANCELLED': 'cancelled',
    'ERROR': 'error',
}
FINISHED_PAYMENT_STATES = ('approved', 'rejected', 'cancelled')


class MercadoPagoClient:
    """Cliente para interactuar con la API de Mercado Pago."""

    BASE_URL = "https://api.mercadopago.com"
    POINT_URL = f"{BASE_URL}/point/integration-api"

    def __init__(self, access_token: str):
        """
        Args:
            access_token: OAuth access token of the linked seller account
        """
        if not access_token:
            raise ConfigurationError('La terminal de pago no está conectada')
        self.access_token = access_token
        self.headers = {
            'Authorization': f'Bearer {self.access_token}',
            'Content-Type': 'application/json'
        }

    @property
    def timeout(self) -> int:
        return current_app.config.get('HTTP_TIMEOUT', 30)

    def list_devices(self) -> List[Dict[str, Any]]:
        """Point devices of the account, normalised."""
        current_app.logger.info("[MP] Listing Point devices")
        data = self._request('GET', f"{self.POINT_URL}/devices", params={'offset': 0, 'limit': 50},
                             error_message='Error al obtener dispositivos de Mercado Pago')
        return [
            {
                'id': device.get('id'),
                'pos_id': device.get('pos_id'),
                'store_id': device.get('store_id'),
                'external_pos_id': device.get('external_pos_id'),
                'operating_mode': device.get('operating_mode'),
                'model': str(device.get('id') or '').split('__')[0] or 'Point',
            }
            for device in data.get('devices', [])
        ]

    def create_payment_intent(self, device_id: str, amount, external_reference: str) -> Dict[str, Any]:
        """
        Push a charge to a Point device. Amount goes in cents.

        Returns:
            Dict with the provider's intent (id, device_id, amount)
        """
        cents = int(round2(amount) * 100)
        payload = {
            'amount': cents,
            'additional_info': {
                'external_reference': external_reference,
                'print_on_terminal': True,
            },
        }
        current_app.logger.info(f"[MP] Creating payment intent on {device_id} for {cents} cents ({external_reference})")
        return self._request('POST', f"{self.POINT_URL}/devices/{device_id}/payment-intents", json=payload,
                             error_message='Error al enviar el cobro a la terminal')

    def get_payment_intent(self, intent_id: str) -> Dict[str, Any]:
        return self._request('GET', f"{self.POINT_URL}/payment-intents/{intent_id}",
                             error_message='Error al verificar estado del pago')

    def _request(self, method: str, url: str, error_message: str, **kwargs) -> Dict[str, Any]:
        try:
            response = requests.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as e:
            detail = _error_detail(e.response)
            current_app.logger.error(f"[MP] {method} {url} failed: {e.response.status_code} {detail}")
            raise ExternalServiceError(error_message, payload={'details': detail})
        except (requests.RequestException, ValueError) as e:
            current_app.logger.error(f"[MP] {method} {url} failed: {e}")
            raise ExternalServiceError(error_message)


def normalize_intent_status(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map a payment intent to {status, payment_id, authorization_code, error_message, raw_state}."""
    state = data.get('state')
    payment = data.get('payment') or {}
    status = 'pending'
    if state == 'FINISHED':
        payment_state = str(payment.get('state') or '').lower()
        if payment_state in FINISHED_PAYMENT_STATES:
            status = payment_state
    elif state in INTENT_STATES:
        status = INTENT_STATES[state]

    return {
        'status': status,
        'payment_id': payment.get('id'),
        'authorization_code': payment.get('authorization_code'),
        'error_message': payment.get('status_detail'),
        'raw_state': state,
    }


def build_authorization_url(client_id: str, redirect_uri: str, state: str) -> str:
    params = {
        'client_id': client_id,
        'response_type': 'code',
        'platform_id': 'mp',
        'redirect_uri': redirect_uri,
        'state': state,
    }
    return f"{AUTH_URL}?{urlencode(params)}"


def exchange_code_for_token(code: str, redirect_uri: str) -> Dict[str, Any]:
    """Exchange an authorization code at the OAuth token endpoint."""
    config = current_app.config
    payload = {
        'client_id': config['MERCADOPAGO_CLIENT_ID'],
        'client_secret': config['MERCADOPAGO_CLIENT_SECRET'],
        'grant_type': 'authorization_code',
        'code': code,
        'redirect_uri': redirect_uri,
    }
    current_app.logger.info("[MP] Exchanging OAuth code for token")
    try:
        response = requests.post(
            f"{MercadoPagoClient.BASE_URL}/oauth/token",
            json=payload,
            headers={'Content-Type': 'application/json'},
            timeout=config.get('HTTP_TIMEOUT', 30)
        )
        response.raise_for_status()
        return response.json()
    except requests.HTTPError as e:
        detail = _error_detail(e.response)
        current_app.logger.error(f"[MP] Token exchange failed: {detail}")
        raise ExternalServiceError('Error al intercambiar el código de autorización', payload={'details': detail})
    except (requests.RequestException, ValueError) as e:
        current_app.logger.error(f"[MP] Token exchange failed: {e}")
        raise ExternalServiceError('Error al intercambiar el código de autorización')


def cents_to_amount(cents) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(Decimal('0.01'))


def _error_detail(response: Optional[requests.Response]) -> str:
    if response is None:
        return ''
    try:
        data = response.json()
    except ValueError:
        return response.reason or ''
    return str(data.get('message') or data.get('error') or response.reason or '')
