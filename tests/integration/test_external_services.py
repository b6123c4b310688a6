"""
Integration tests for endpoints backed by third-party HTTP APIs.
Outbound calls are mocked at the requests layer.
"""

import io
import pytest
import requests
from decimal import Decimal
from unittest.mock import MagicMock

from multipos.models import Category, Product, TerminalConnection


def fake_response(json_data=None, content=b'', status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.content = content
    response.raise_for_status.return_value = None
    return response


def chat_reply(content):
    return fake_response({'choices': [{'message': {'content': content}}]})


class TestExchangeRates:
    """Rates come from the API, falling back to the default table."""

    def test_convert_with_api_rates(self, client, mocker):
        mock_get = mocker.patch('multipos.services.exchange_rate_service.requests.get')
        mock_get.return_value = fake_response({'rates': {'MXN': 1, 'USD': 0.058, 'EUR': 0.053}})

        response = client.get('/api/exchange-rate?from=MXN&to=USD&amount=100')

        assert response.status_code == 200
        data = response.get_json()
        assert data['rate'] == '0.058000'
        assert data['converted'] == '5.80'
        assert mock_get.call_args[0][0].endswith('/MXN')

    def test_missing_upstream_rates_use_table(self, client, mocker):
        mocker.patch(
            'multipos.services.exchange_rate_service.requests.get',
            return_value=fake_response({'rates': {'USD': 0.058}})
        )

        data = client.get('/api/exchange-rates?base=MXN').get_json()

        assert data['source'] == 'api'
        assert data['rates']['USD'] == '0.058000'
        assert data['rates']['JPY'] == '5.500000'

    def test_api_failure_falls_back_to_defaults(self, client, mocker):
        mocker.patch(
            'multipos.services.exchange_rate_service.requests.get',
            side_effect=requests.ConnectionError('down')
        )

        data = client.get('/api/exchange-rates?base=MXN').get_json()

        assert data['source'] == 'default'
        assert data['rates']['USD'] == '0.050000'

    def test_same_currency_skips_api(self, client, mocker):
        mock_get = mocker.patch('multipos.services.exchange_rate_service.requests.get')

        data = client.get('/api/exchange-rate?from=USD&to=usd').get_json()

        assert Decimal(data['rate']) == Decimal('1')
        mock_get.assert_not_called()

    def test_unknown_currency(self, client):
        assert client.get('/api/exchange-rate?from=MXN&to=ARS').status_code == 400


class TestVoice:
    """Transcription, command parsing and synthesis."""

    def test_transcribe(self, client, mocker):
        mock_post = mocker.patch(
            'multipos.services.voice_service.requests.post',
            return_value=fake_response({'text': ' dos cafés americanos '})
        )

        response = client.post('/api/voice/transcribe', data={
            'audio': (io.BytesIO(b'fake-audio'), 'voice.webm'),
            'language': 'es',
        }, content_type='multipart/form-data')

        assert response.status_code == 200
        assert response.get_json()['text'] == 'dos cafés americanos'
        kwargs = mock_post.call_args.kwargs
        assert kwargs['data']['language'] == 'es'
        assert kwargs['headers']['Authorization'] == 'Bearer test-openai-key'

    def test_transcribe_without_hint_for_other_languages(self, client, mocker):
        mock_post = mocker.patch(
            'multipos.services.voice_service.requests.post',
            return_value=fake_response({'text': 'bonjour'})
        )

        client.post('/api/voice/transcribe', data={
            'audio': (io.BytesIO(b'fake-audio'), 'voice.webm'),
            'language': 'fr',
        }, content_type='multipart/form-data')

        assert 'language' not in mock_post.call_args.kwargs['data']

    def test_transcribe_requires_audio(self, client):
        response = client.post('/api/voice/transcribe', data={}, content_type='multipart/form-data')
        assert response.status_code == 400

    def test_transcribe_not_configured(self, app, client, mocker):
        mocker.patch.dict(app.config, {'OPENAI_API_KEY': None})

        response = client.post('/api/voice/transcribe', data={
            'audio': (io.BytesIO(b'fake-audio'), 'voice.webm'),
        }, content_type='multipart/form-data')

        assert response.status_code == 503

    def test_process_command_matches_product(self, client, mocker, product):
        mocker.patch(
            'multipos.services.voice_service.requests.post',
            return_value=chat_reply('{"type": "add", "productName": "Café Americano", "quantity": 2}')
        )

        response = client.post('/api/voice/process', json={'transcription': 'dos cafés', 'language': 'es'})

        data = response.get_json()
        assert data['command'] == {'type': 'add', 'productName': 'Café Americano', 'quantity': 2}
        assert data['product']['id'] == product.id

    def test_process_falls_back_to_search(self, client, mocker, product):
        mocker.patch(
            'multipos.services.voice_service.requests.post',
            side_effect=requests.ConnectionError('down')
        )

        data = client.post('/api/voice/process', json={'transcription': 'algo dulce'}).get_json()

        assert data['command'] == {'type': 'search', 'productName': 'algo dulce', 'quantity': 1}
        assert data['product'] is None

    def test_process_requires_transcription(self, client, store_config):
        assert client.post('/api/voice/process', json={'transcription': '  '}).status_code == 400

    def test_synthesize(self, client, mocker):
        mock_post = mocker.patch(
            'multipos.services.voice_service.requests.post',
            return_value=fake_response(content=b'ID3-audio')
        )

        response = client.post('/api/voice/synthesize', json={'text': 'Su total es 41.76', 'language': 'es'})

        assert response.status_code == 200
        assert response.mimetype == 'audio/mpeg'
        assert response.data == b'ID3-audio'
        url = mock_post.call_args[0][0]
        assert url.endswith('/text-to-speech/EXAVITQu4vr4xnSDxMaL')
        assert mock_post.call_args.kwargs['headers']['xi-api-key'] == 'test-elevenlabs-key'

    def test_detect_language(self, client, mocker):
        mocker.patch(
            'multipos.services.voice_service.requests.post',
            return_value=chat_reply('{"language": "fr"}')
        )
        assert client.post('/api/detect-language', json={'text': 'Bonjour'}).get_json() == {'language': 'fr'}

    def test_detect_language_defaults_to_english(self, client, mocker):
        mocker.patch(
            'multipos.services.voice_service.requests.post',
            side_effect=requests.Timeout('slow')
        )
        assert client.post('/api/detect-language', json={'text': 'Hola'}).get_json() == {'language': 'en'}


class TestMenuDigital:
    """Menu photos become catalog products."""

    MENU_REPLY = (
        '```json\n'
        '[{"name": "Café Americano", "description": "Recién hecho", "price": 20, "category": "Bebidas"},'
        ' {"name": "Flan Napolitano", "description": "", "price": 35, "category": "Postres"}]\n'
        '```'
    )

    def test_process_menu(self, client, session, mocker, product):
        product_id = product.id
        mock_post = mocker.patch(
            'multipos.services.menu_service.requests.post',
            return_value=chat_reply(self.MENU_REPLY)
        )

        response = client.post('/api/menu-digital/process', data={
            'files': [(io.BytesIO(b'jpeg-bytes'), 'menu.jpg')],
        }, content_type='multipart/form-data')

        assert response.status_code == 200
        data = response.get_json()
        assert data['products_added'] == 1
        assert data['products_updated'] == 1
        assert data['total_extracted'] == 2
        assert mock_post.call_args.kwargs['headers']['X-Title'] == 'MultiPOS - Menu Digital'

        assert session.query(Product).filter_by(id=product_id).one().price == Decimal('20.00')
        flan = session.query(Product).filter_by(name='Flan Napolitano').one()
        assert flan.stock == 100
        assert flan.sku.startswith('PRD-FLANNAPO-')
        postres = session.query(Category).filter_by(name='Postres').one()
        assert postres.available_in_digital_menu is True
        assert postres.available_in_pos is False

    def test_failed_images_are_reported(self, client, mocker, store_config):
        mocker.patch(
            'multipos.services.menu_service.requests.post',
            side_effect=requests.ConnectionError('down')
        )

        response = client.post('/api/menu-digital/process', data={
            'files': [(io.BytesIO(b'jpeg-bytes'), 'menu.jpg')],
        }, content_type='multipart/form-data')

        assert response.status_code == 400
        assert len(response.get_json()['errors']) == 1

    def test_requires_files(self, client, store_config):
        response = client.post('/api/menu-digital/process', data={}, content_type='multipart/form-data')
        assert response.status_code == 400


@pytest.fixture
def terminal(session):
    connection = TerminalConnection(
        provider='mercadopago',
        mp_user_id='123456',
        access_token='APP_USR-token',
        status='connected',
        live_mode=False
    )
    session.add(connection)
    session.commit()
    return connection


class TestTerminals:
    """Mercado Pago OAuth linking and Point charges."""

    def test_connect_keeps_state_in_session(self, client):
        data = client.get('/api/oauth/mercadopago/connect').get_json()

        assert 'client_id=test-client-id' in data['auth_url']
        assert f"state={data['state']}" in data['auth_url']
        with client.session_transaction() as flask_session:
            assert flask_session['mp_oauth_state'] == data['state']

    def test_connect_not_configured(self, app, client, mocker):
        mocker.patch.dict(app.config, {'MERCADOPAGO_CLIENT_ID': None})

        response = client.get('/api/oauth/mercadopago/connect')

        assert response.status_code == 503
        assert response.get_json()['demo_mode'] is True

    def test_callback_stores_connection(self, client, mocker):
        mock_post = mocker.patch(
            'multipos.services.mercadopago_client.requests.post',
            return_value=fake_response({
                'access_token': 'APP_USR-new', 'refresh_token': 'TG-refresh',
                'public_key': 'APP_USR-pk', 'user_id': 987, 'expires_in': 15552000, 'live_mode': True,
            })
        )
        state = client.get('/api/oauth/mercadopago/connect').get_json()['state']

        response = client.get(f'/api/oauth/mercadopago/callback?code=TG-code&state={state}')

        assert response.status_code == 200
        connection = response.get_json()['connection']
        assert connection['mp_user_id'] == '987'
        assert connection['status'] == 'connected'
        assert 'access_token' not in connection
        assert mock_post.call_args.kwargs['json']['grant_type'] == 'authorization_code'

        status = client.get('/api/terminals/connection').get_json()
        assert status['connected'] is True

    def test_callback_rejects_mismatched_state(self, client, mocker):
        mock_post = mocker.patch('multipos.services.mercadopago_client.requests.post')
        client.get('/api/oauth/mercadopago/connect')

        response = client.get('/api/oauth/mercadopago/callback?code=TG-code&state=forged')

        assert response.status_code == 400
        mock_post.assert_not_called()
        with client.session_transaction() as flask_session:
            assert 'mp_oauth_state' not in flask_session

    def test_callback_without_connect(self, client, mocker):
        mock_post = mocker.patch('multipos.services.mercadopago_client.requests.post')

        response = client.get('/api/oauth/mercadopago/callback?code=TG-code&state=anything')

        assert response.status_code == 400
        mock_post.assert_not_called()

    def test_state_is_single_use(self, client, mocker):
        mocker.patch(
            'multipos.services.mercadopago_client.requests.post',
            return_value=fake_response({'access_token': 'APP_USR-new', 'user_id': 1})
        )
        state = client.get('/api/oauth/mercadopago/connect').get_json()['state']

        first = client.get(f'/api/oauth/mercadopago/callback?code=TG-code&state={state}')
        second = client.get(f'/api/oauth/mercadopago/callback?code=TG-code&state={state}')

        assert first.status_code == 200
        assert second.status_code == 400

    def test_devices_without_connection(self, client):
        assert client.get('/api/terminals/devices').status_code == 503

    def test_list_devices(self, client, mocker, terminal):
        mock_request = mocker.patch(
            'multipos.services.mercadopago_client.requests.request',
            return_value=fake_response({'devices': [
                {'id': 'PAX_A910__SMARTPOS1234', 'pos_id': 1, 'operating_mode': 'PDV'},
            ]})
        )

        devices = client.get('/api/terminals/devices').get_json()['devices']

        assert devices[0]['model'] == 'PAX_A910'
        assert mock_request.call_args.kwargs['headers']['Authorization'] == 'Bearer APP_USR-token'

    def test_payment_intent_in_cents(self, client, mocker, terminal):
        client.patch('/api/terminals/connection', json={'device_id': 'PAX_A910__SMARTPOS1234'})
        mock_request = mocker.patch(
            'multipos.services.mercadopago_client.requests.request',
            return_value=fake_response({'id': 'intent-1', 'device_id': 'PAX_A910__SMARTPOS1234', 'amount': 4176})
        )

        response = client.post('/api/terminals/payment-intent', json={'amount': '41.76', 'external_reference': 'V-1'})

        assert response.status_code == 201
        data = response.get_json()
        assert data['status'] == 'processing'
        assert data['paymentIntentId'] == 'intent-1'
        assert data['amount'] == '41.76'
        assert mock_request.call_args.kwargs['json']['amount'] == 4176
        assert mock_request.call_args[0][1].endswith('/devices/PAX_A910__SMARTPOS1234/payment-intents')

    def test_payment_intent_requires_device(self, client, terminal):
        response = client.post('/api/terminals/payment-intent', json={'amount': '10'})
        assert response.status_code == 400

    def test_payment_status(self, client, mocker, terminal):
        mocker.patch(
            'multipos.services.mercadopago_client.requests.request',
            return_value=fake_response({'state': 'FINISHED', 'payment': {'id': 55, 'state': 'approved'}})
        )

        data = client.get('/api/terminals/payment-status/intent-1').get_json()

        assert data['status'] == 'approved'
        assert data['payment_id'] == 55

    def test_provider_error_is_502(self, client, mocker, terminal):
        error_response = MagicMock(status_code=409, reason='Conflict')
        error_response.json.return_value = {'message': 'device busy'}
        failing = fake_response()
        failing.raise_for_status.side_effect = requests.HTTPError(response=error_response)
        mocker.patch('multipos.services.mercadopago_client.requests.request', return_value=failing)

        response = client.get('/api/terminals/payment-status/intent-1')

        assert response.status_code == 502
        assert response.get_json()['details'] == 'device busy'

    def test_disconnect(self, client, terminal):
        assert client.delete('/api/terminals/connection').status_code == 204
        assert client.get('/api/terminals/connection').get_json()['connected'] is False
        assert client.delete('/api/terminals/connection').status_code == 404
