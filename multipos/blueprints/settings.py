"""Store configuration endpoints."""
from flask import Blueprint, jsonify

from multipos.database import get_session
from multipos.services.store_config_service import (
    get_store_config, update_store_config, SUPPORTED_LANGUAGES, SUPPORTED_CURRENCIES
)
from multipos.utils.request_helpers import get_json_body

settings_bp = Blueprint('settings', __name__, url_prefix='/api/config')


@settings_bp.route('', methods=['GET'])
def get_config():
    """Current store config plus the languages and currencies the UI can offer."""
    db_session = get_session()
    return jsonify({
        'config': get_store_config(db_session).to_dict(),
        'languages': SUPPORTED_LANGUAGES,
        'currencies': SUPPORTED_CURRENCIES,
    })


@settings_bp.route('', methods=['PUT', 'PATCH'])
def update_config():
    db_session = get_session()
    config = update_store_config(db_session, get_json_body())
    return jsonify({'config': config.to_dict()})
