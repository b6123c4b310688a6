"""
Voice ordering: speech-to-text, command parsing and text-to-speech.

Transcription and command parsing go to the OpenAI HTTP API (Whisper and
chat completions), speech synthesis to ElevenLabs. All calls use requests.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from multipos.exceptions import ConfigurationError, ExternalServiceError, ValidationError
from multipos.models import Product

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES = ('es', 'en', 'fr', 'de', 'zh', 'ja')
COMMAND_TYPES = ('add', 'remove', 'change', 'search', 'total', 'complete', 'cancel')

# Whisper gets an explicit language hint only where it helps
TRANSCRIBE_HINT_LANGUAGES = ('es', 'en')

ELEVENLABS_MODEL = 'eleven_multilingual_v2'
ELEVENLABS_DEFAULT_VOICE = '21m00Tcm4TlvDq8ikWAM'
ELEVENLABS_VOICES = {
    'es': 'EXAVITQu4vr4xnSDxMaL',
    'en': ELEVENLABS_DEFAULT_VOICE,
}

COMMAND_PROMPTS = {
    'es': (
        "Analiza el siguiente comando de voz de un cliente en un punto de venta "
        "y extrae la acción y el producto mencionado.\n\n"
        "Productos disponibles: {products}\n\n"
        "Comando: \"{transcription}\"\n\n"
        "Identifica:\n"
        "1. Tipo de comando: \"add\" (agregar), \"remove\" (quitar), \"change\" (cambiar cantidad), "
        "\"search\" (buscar), \"total\" (cuánto es), \"complete\" (finalizar), \"cancel\" (cancelar)\n"
        "2. Nombre del producto (si aplica), usa búsqueda aproximada\n"
        "3. Cantidad (si se menciona, si no, usa 1)\n\n"
        "Responde en JSON: { \"type\": \"add|remove|change|search|total|complete|cancel\", "
        "\"productName\": \"nombre exacto del producto disponible o null\", \"quantity\": número }"
    ),
    'en': (
        "Analyze the following voice command from a customer at a point of sale "
        "and extract the action and mentioned product.\n\n"
        "Available products: {products}\n\n"
        "Command: \"{transcription}\"\n\n"
        "Identify:\n"
        "1. Command type: \"add\", \"remove\", \"change\" (quantity), \"search\", \"total\", "
        "\"complete\", \"cancel\"\n"
        "2. Product name (if applicable), use fuzzy matching\n"
        "3. Quantity (if mentioned, otherwise use 1)\n\n"
        "Respond in JSON: { \"type\": \"add|remove|change|search|total|complete|cancel\", "
        "\"productName\": \"exact product name from available list or null\", \"quantity\": number }"
    ),
}


def normalize_language(language: Optional[str], default: str = 'es') -> str:
    value = str(language or '').strip().lower()[:2]
    return value if value in SUPPORTED_LANGUAGES else default


def transcribe_audio(audio_file, language: str = 'es') -> str:
    """
    Transcribe an uploaded audio file (werkzeug FileStorage) with Whisper.

    Raises:
        ConfigurationError: OPENAI_API_KEY missing
        ExternalServiceError: the API failed
    """
    api_key = _require_config('OPENAI_API_KEY')
    language = normalize_language(language)

    data = {'model': current_app.config['OPENAI_TRANSCRIBE_MODEL']}
    if language in TRANSCRIBE_HINT_LANGUAGES:
        data['language'] = language

    files = {
        'file': (
            audio_file.filename or 'audio.webm',
            audio_file.stream,
            audio_file.mimetype or 'audio/webm'
        )
    }

    logger.info(f"[VOICE] Transcribing audio ({language})")
    try:
        response = requests.post(
            f"{current_app.config['OPENAI_API_URL']}/audio/transcriptions",
            headers={'Authorization': f'Bearer {api_key}'},
            data=data,
            files=files,
            timeout=current_app.config.get('HTTP_TIMEOUT', 30)
        )
        response.raise_for_status()
        return response.json().get('text', '').strip()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"[VOICE] Transcription failed: {e}")
        raise ExternalServiceError('No se pudo transcribir el audio')


def detect_language(text: str) -> str:
    """Language code of `text`; 'en' whenever detection fails."""
    if not text or not text.strip():
        return 'en'
    try:
        result = _chat_json([
            {
                'role': 'system',
                'content': (
                    "Detect the language of the text and respond with a language code. "
                    "Respond with JSON in this format: { 'language': 'es' | 'en' | 'fr' | 'de' | 'zh' | 'ja' }"
                ),
            },
            {'role': 'user', 'content': text},
        ])
    except (ConfigurationError, ExternalServiceError) as e:
        logger.warning(f"[VOICE] Language detection failed: {e.message}")
        return 'en'
    return normalize_language(result.get('language'), default='en')


def parse_voice_command(session, transcription: str, language: str = 'es') -> Dict[str, Any]:
    """
    Turn a transcription into a POS command and the product it refers to.

    Returns:
        {'command': {'type', 'productName', 'quantity'}, 'product': Product | None}
        On LLM failure the command degrades to a search for the raw text.
    """
    transcription = (transcription or '').strip()
    if not transcription:
        raise ValidationError('La transcripción es requerida')

    language = normalize_language(language)
    products = session.query(Product).filter(
        Product.active == True,  # noqa: E712
        Product.stock > 0
    ).order_by(Product.name).all()

    product_list = ', '.join(f"{p.name} (SKU: {p.sku})" for p in products)
    prompt = COMMAND_PROMPTS.get(language, COMMAND_PROMPTS['en']).format(
        products=product_list, transcription=transcription
    )

    try:
        result = _chat_json([
            {'role': 'system', 'content': 'You are a smart POS system assistant that processes voice commands accurately.'},
            {'role': 'user', 'content': prompt},
        ])
    except (ConfigurationError, ExternalServiceError) as e:
        logger.warning(f"[VOICE] Command parsing failed, falling back to search: {e.message}")
        return {
            'command': {'type': 'search', 'productName': transcription, 'quantity': 1},
            'product': None,
        }

    command = {
        'type': result.get('type') if result.get('type') in COMMAND_TYPES else 'search',
        'productName': result.get('productName') or None,
        'quantity': _coerce_quantity(result.get('quantity')),
    }
    product = match_product(products, command['productName']) if command['productName'] else None
    return {'command': command, 'product': product}


def match_product(products: List[Product], name: str) -> Optional[Product]:
    """First active in-stock product whose name contains (or is contained in) the term, or whose SKU/barcode equals it."""
    term = name.strip().lower()
    if not term:
        return None
    for p in products:
        if not p.active or p.stock <= 0:
            continue
        product_name = p.name.lower()
        if (term in product_name or product_name in term
                or (p.sku or '').lower() == term
                or (p.barcode or '').lower() == term):
            return p
    return None


def synthesize_speech(text: str, language: str = 'es') -> bytes:
    """MP3 audio for `text` from ElevenLabs."""
    if not text or not text.strip():
        raise ValidationError('El texto es requerido')
    api_key = _require_config('ELEVENLABS_API_KEY')
    voice_id = ELEVENLABS_VOICES.get(normalize_language(language), ELEVENLABS_DEFAULT_VOICE)

    logger.info(f"[VOICE] Synthesizing {len(text)} chars with voice {voice_id}")
    try:
        response = requests.post(
            f"{current_app.config['ELEVENLABS_API_URL']}/text-to-speech/{voice_id}",
            headers={
                'Accept': 'audio/mpeg',
                'Content-Type': 'application/json',
                'xi-api-key': api_key,
            },
            json={
                'text': text,
                'model_id': ELEVENLABS_MODEL,
                'voice_settings': {'stability': 0.5, 'similarity_boost': 0.75},
            },
            timeout=current_app.config.get('HTTP_TIMEOUT', 30)
        )
        response.raise_for_status()
        return response.content
    except requests.RequestException as e:
        logger.error(f"[VOICE] Speech synthesis failed: {e}")
        raise ExternalServiceError('No se pudo sintetizar el audio')


def _chat_json(messages: List[Dict[str, str]]) -> Dict[str, Any]:
    """Chat completion constrained to a JSON object reply."""
    api_key = _require_config('OPENAI_API_KEY')
    try:
        response = requests.post(
            f"{current_app.config['OPENAI_API_URL']}/chat/completions",
            headers={
                'Authorization': f'Bearer {api_key}',
                'Content-Type': 'application/json',
            },
            json={
                'model': current_app.config['OPENAI_CHAT_MODEL'],
                'messages': messages,
                'response_format': {'type': 'json_object'},
            },
            timeout=current_app.config.get('HTTP_TIMEOUT', 30)
        )
        response.raise_for_status()
        content = response.json()['choices'][0]['message']['content'] or '{}'
        result = json.loads(content)
    except (requests.RequestException, ValueError, KeyError, IndexError) as e:
        logger.error(f"[VOICE] Chat completion failed: {e}")
        raise ExternalServiceError('Error al procesar el texto con el modelo de lenguaje')
    if not isinstance(result, dict):
        raise ExternalServiceError('Respuesta inesperada del modelo de lenguaje')
    return result


def _require_config(key: str) -> str:
    value = current_app.config.get(key)
    if not value:
        raise ConfigurationError(f'{key} no está configurado')
    return value


def _coerce_quantity(value) -> int:
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        return 1
    return max(1, quantity)
