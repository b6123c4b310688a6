"""Sale receipt PDF rendering (reportlab)."""
from io import BytesIO
from typing import Any, Dict

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from multipos.models import Sale, SaleStatus
from multipos.services.checkout import normalize_payment_method
from multipos.utils.money import format_money

STATUS_LABELS = {
    SaleStatus.COMPLETED.value: 'Completada',
    SaleStatus.REFUNDED.value: 'Reembolsada',
    SaleStatus.CANCELLED.value: 'Cancelada',
}


def render_receipt_pdf(sale: Sale, business_info: Dict[str, Any]) -> BytesIO:
    """
    Render a sale receipt.

    Args:
        sale: persisted sale with items and payments loaded
        business_info: name, address, phone shown in the header
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch,
        title=f"Ticket {sale.sale_number}"
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'ReceiptTitle',
        parent=styles['Heading1'],
        fontSize=20,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=10,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )
    header_style = ParagraphStyle(
        'ReceiptHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#7F8C8D'),
        alignment=TA_CENTER,
        spaceAfter=4
    )

    # 1. Business header
    elements.append(Paragraph(business_info.get('name') or 'Ticket de venta', title_style))
    if business_info.get('address'):
        elements.append(Paragraph(business_info['address'], header_style))
    if business_info.get('phone'):
        elements.append(Paragraph(f"Tel: {business_info['phone']}", header_style))
    elements.append(Spacer(1, 0.25*inch))

    # 2. Sale metadata
    info_data = [
        ['Venta N°:', sale.sale_number],
        ['Fecha:', sale.created_at.strftime('%d/%m/%Y %H:%M') if sale.created_at else '-'],
        ['Estado:', STATUS_LABELS.get(sale.status, sale.status)],
    ]
    if sale.customer:
        info_data.append(['Cliente:', sale.customer.name])

    info_table = Table(info_data, colWidths=[1.5*inch, 4*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.25*inch))

    # 3. Items
    table_data = [['Producto', 'Cant.', 'Precio Unit.', 'Desc.', 'Importe']]
    for item in sale.items:
        table_data.append([
            item.product.name if item.product else f'#{item.product_id}',
            str(item.quantity),
            format_money(item.unit_price),
            format_money(item.discount) if item.discount else '-',
            format_money(item.subtotal - item.discount),
        ])

    items_table = Table(table_data, colWidths=[2.9*inch, 0.6*inch, 1.1*inch, 0.9*inch, 1.1*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498DB')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#ECF0F1')]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # 4. Totals
    totals_data = [
        ['Subtotal:', format_money(sale.subtotal)],
        ['Descuento:', f"-{format_money(sale.discount)}"],
        ['Impuestos:', format_money(sale.tax)],
        ['TOTAL:', format_money(sale.total)],
    ]
    for payment in sale.payments:
        label = normalize_payment_method(payment.payment_method).label
        if payment.reference:
            label = f"{label} ({payment.reference})"
        totals_data.append([f"{label}:", format_money(payment.amount)])
    totals_data.append(['Cambio:', format_money(sale.change_amount)])

    totals_table = Table(totals_data, colWidths=[5.1*inch, 1.5*inch])
    totals_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('FONTNAME', (0, 3), (-1, 3), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 3), (-1, 3), 13),
        ('TEXTCOLOR', (0, 3), (-1, 3), colors.HexColor('#27AE60')),
    ]))
    elements.append(totals_table)

    if sale.customer_currency and sale.exchange_rate:
        elements.append(Spacer(1, 0.2*inch))
        converted = sale.total * sale.exchange_rate
        elements.append(Paragraph(
            f"Equivalente: {format_money(converted)} {sale.customer_currency} (TC {sale.exchange_rate})",
            header_style
        ))

    elements.append(Spacer(1, 0.3*inch))
    elements.append(Paragraph("¡Gracias por su compra!", header_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
