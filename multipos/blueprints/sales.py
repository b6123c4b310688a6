"""Sales blueprint: stateless sale creation, history, receipts and reversals."""
from flask import Blueprint, jsonify, request, send_file, current_app

from multipos.database import get_session
from multipos.services import sales_service
from multipos.services.receipt_service import render_receipt_pdf
from multipos.services.store_config_service import get_store_config, get_tax_rate
from multipos.utils.request_helpers import get_json_body, arg_date, arg_int

sales_bp = Blueprint('sales', __name__, url_prefix='/api/sales')


@sales_bp.route('', methods=['POST'])
def create_sale():
    """
    Create a sale in one request.

    Body: {items: [{product_id, quantity, discount}], global_discount,
           payments: [{method, amount, reference}] | payment_method + amount_paid,
           customer_id, customer_currency, customer_language, exchange_rate}
    """
    db_session = get_session()
    data = get_json_body()

    checkout = sales_service.build_checkout_from_payload(db_session, data, get_tax_rate(db_session))
    sale = sales_service.complete_checkout(
        db_session,
        checkout,
        customer_id=data.get('customer_id'),
        currency=data.get('customer_currency'),
        language=data.get('customer_language'),
        exchange_rate=data.get('exchange_rate')
    )
    return jsonify({'sale': sale.to_dict()}), 201


@sales_bp.route('', methods=['GET'])
def list_sales():
    db_session = get_session()
    sales = sales_service.list_sales(
        db_session,
        start=arg_date('start'),
        end=arg_date('end'),
        status=request.args.get('status') or None,
        customer_id=arg_int('customer_id'),
        limit=arg_int('limit', default=100)
    )
    return jsonify({'sales': [s.to_dict(include_items=False) for s in sales]})


@sales_bp.route('/<int:sale_id>', methods=['GET'])
def get_sale(sale_id: int):
    db_session = get_session()
    return jsonify({'sale': sales_service.get_sale(db_session, sale_id).to_dict()})


@sales_bp.route('/<int:sale_id>/receipt.pdf', methods=['GET'])
def sale_receipt(sale_id: int):
    """Download the sale receipt as PDF."""
    db_session = get_session()
    sale = sales_service.get_sale(db_session, sale_id)
    store = get_store_config(db_session)

    business_info = {
        'name': store.business_name or current_app.config.get('BUSINESS_NAME'),
        'address': current_app.config.get('BUSINESS_ADDRESS', ''),
        'phone': current_app.config.get('BUSINESS_PHONE', ''),
    }
    pdf_buffer = render_receipt_pdf(sale, business_info)

    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=f"ticket_{sale.sale_number}.pdf"
    )


@sales_bp.route('/<int:sale_id>/cancel', methods=['POST'])
def cancel_sale(sale_id: int):
    db_session = get_session()
    sale = sales_service.cancel_sale(db_session, sale_id)
    return jsonify({'sale': sale.to_dict()})


@sales_bp.route('/<int:sale_id>/refund', methods=['POST'])
def refund_sale(sale_id: int):
    db_session = get_session()
    sale = sales_service.refund_sale(db_session, sale_id)
    return jsonify({'sale': sale.to_dict()})
