"""Catalog blueprint: products and categories (JSON)."""
from flask import Blueprint, jsonify, request

from multipos.database import get_session
from multipos.services import catalog_service
from multipos.utils.request_helpers import get_json_body, arg_bool, arg_int

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


@catalog_bp.route('/products', methods=['GET'])
def list_products():
    """Search products. An exact barcode match is returned alone."""
    session = get_session()
    products, exact_match_id = catalog_service.search_products(
        session,
        query=request.args.get('q', ''),
        category_id=request.args.get('category_id'),
        include_inactive=arg_bool('include_inactive'),
        limit=arg_int('limit', default=50)
    )
    return jsonify({
        'products': [p.to_dict() for p in products],
        'exact_barcode_match': exact_match_id,
    })


@catalog_bp.route('/products/low-stock', methods=['GET'])
def low_stock_products():
    session = get_session()
    products = catalog_service.get_low_stock_products(session, threshold=arg_int('threshold', minimum=0, maximum=100000))
    return jsonify({'products': [p.to_dict() for p in products]})


@catalog_bp.route('/products/<int:product_id>', methods=['GET'])
def get_product(product_id: int):
    session = get_session()
    return jsonify({'product': catalog_service.get_product(session, product_id).to_dict()})


@catalog_bp.route('/products', methods=['POST'])
def create_product():
    session = get_session()
    product = catalog_service.create_product(session, get_json_body())
    return jsonify({'product': product.to_dict()}), 201


@catalog_bp.route('/products/<int:product_id>', methods=['PUT', 'PATCH'])
def update_product(product_id: int):
    session = get_session()
    product = catalog_service.update_product(session, product_id, get_json_body())
    return jsonify({'product': product.to_dict()})


@catalog_bp.route('/products/<int:product_id>', methods=['DELETE'])
def delete_product(product_id: int):
    """Soft delete."""
    session = get_session()
    catalog_service.deactivate_product(session, product_id)
    return '', 204


@catalog_bp.route('/categories', methods=['GET'])
def list_categories():
    session = get_session()
    categories = catalog_service.list_categories(
        session,
        include_inactive=arg_bool('include_inactive'),
        digital_menu_only=arg_bool('digital_menu')
    )
    return jsonify({'categories': [c.to_dict() for c in categories]})


@catalog_bp.route('/categories', methods=['POST'])
def create_category():
    session = get_session()
    category = catalog_service.create_category(session, get_json_body())
    return jsonify({'category': category.to_dict()}), 201


@catalog_bp.route('/categories/<int:category_id>', methods=['PUT', 'PATCH'])
def update_category(category_id: int):
    session = get_session()
    category = catalog_service.update_category(session, category_id, get_json_body())
    return jsonify({'category': category.to_dict()})


@catalog_bp.route('/categories/<int:category_id>', methods=['DELETE'])
def delete_category(category_id: int):
    session = get_session()
    catalog_service.deactivate_category(session, category_id)
    return '', 204
