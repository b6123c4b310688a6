"""Menu digitization endpoint (photos of a printed menu -> catalog products)."""
from flask import Blueprint, jsonify, request

from multipos.database import get_session
from multipos.services.menu_service import process_menu_images

menu_digital_bp = Blueprint('menu_digital', __name__, url_prefix='/api/menu-digital')


@menu_digital_bp.route('/process', methods=['POST'])
def process_menu():
    db_session = get_session()
    files = [f for f in request.files.getlist('files') if f and f.filename]
    result = process_menu_images(db_session, files)
    return jsonify({'success': True, **result})
