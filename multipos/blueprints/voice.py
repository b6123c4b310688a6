"""
Voice ordering endpoints.

The browser records audio, sends it to /transcribe, feeds the text to
/process and applies the returned command to the POS cart itself.
"""
from flask import Blueprint, jsonify, request, Response

from multipos.database import get_session
from multipos.exceptions import ValidationError
from multipos.services import voice_service
from multipos.utils.request_helpers import get_json_body

voice_bp = Blueprint('voice', __name__, url_prefix='/api')


@voice_bp.route('/voice/transcribe', methods=['POST'])
def transcribe():
    """Multipart upload: audio (file), language (optional form field)."""
    audio = request.files.get('audio')
    if audio is None or not audio.filename:
        raise ValidationError('No se proporcionó archivo de audio')

    language = voice_service.normalize_language(request.form.get('language'))
    text = voice_service.transcribe_audio(audio, language)
    return jsonify({'text': text, 'language': language})


@voice_bp.route('/voice/process', methods=['POST'])
def process_command():
    db_session = get_session()
    data = get_json_body()
    result = voice_service.parse_voice_command(
        db_session,
        data.get('transcription'),
        data.get('language', 'es')
    )
    product = result['product']
    return jsonify({
        'command': result['command'],
        'product': product.to_dict() if product else None,
    })


@voice_bp.route('/voice/synthesize', methods=['POST'])
def synthesize():
    data = get_json_body()
    audio = voice_service.synthesize_speech(data.get('text', ''), data.get('language', 'es'))
    return Response(audio, mimetype='audio/mpeg')


@voice_bp.route('/detect-language', methods=['POST'])
def detect_language():
    data = get_json_body(required=False)
    return jsonify({'language': voice_service.detect_language(data.get('text', ''))})
