"""Sales reporting: summary figures, top products and daily totals."""
from decimal import Decimal
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, desc

from multipos.models import Product, Sale, SaleItem, SalePayment, SaleStatus

ZERO = Decimal('0.00')


def resolve_period(start: Optional[date] = None, end: Optional[date] = None, default_days: int = 30) -> Tuple[datetime, datetime]:
    """Inclusive [start 00:00, end 23:59:59] window; defaults to the last `default_days` days."""
    end = end or date.today()
    start = start or (end - timedelta(days=default_days - 1))
    return datetime.combine(start, time.min), datetime.combine(end, time.max)


def get_sales_summary(session, start: Optional[date] = None, end: Optional[date] = None) -> Dict[str, Any]:
    """
    Totals for completed sales in the period.

    Returns:
        sale_count, subtotal, discount, tax, total, average_ticket and a
        per-payment-method breakdown built from the recorded tenders.
    """
    start_dt, end_dt = resolve_period(start, end)
    completed = (
        Sale.status == SaleStatus.COMPLETED.value,
        Sale.created_at >= start_dt,
        Sale.created_at <= end_dt,
    )

    row = session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.subtotal), 0),
        func.coalesce(func.sum(Sale.discount), 0),
        func.coalesce(func.sum(Sale.tax), 0),
        func.coalesce(func.sum(Sale.total), 0),
        func.coalesce(func.sum(Sale.change_amount), 0),
    ).filter(*completed).one()

    count = int(row[0] or 0)
    total = _money(row[4])

    by_method = {}
    payment_rows = (
        session.query(SalePayment.payment_method, func.count(SalePayment.id), func.sum(SalePayment.amount))
        .join(Sale, Sale.id == SalePayment.sale_id)
        .filter(*completed)
        .group_by(SalePayment.payment_method)
        .all()
    )
    for method, tender_count, amount in payment_rows:
        by_method[method] = {'count': int(tender_count), 'amount': str(_money(amount))}

    return {
        'start': start_dt.date().isoformat(),
        'end': end_dt.date().isoformat(),
        'sale_count': count,
        'subtotal': str(_money(row[1])),
        'discount': str(_money(row[2])),
        'tax': str(_money(row[3])),
        'total': str(total),
        'change_given': str(_money(row[5])),
        'average_ticket': str((total / count).quantize(Decimal('0.01')) if count else ZERO),
        'by_payment_method': by_method,
    }


def get_top_products(session, start: Optional[date] = None, end: Optional[date] = None,
                     limit: int = 10) -> List[Dict[str, Any]]:
    """Best sellers by units, with revenue net of line discounts."""
    start_dt, end_dt = resolve_period(start, end)
    rows = (
        session.query(
            Product.id.label('product_id'),
            Product.name.label('name'),
            Product.sku.label('sku'),
            func.sum(SaleItem.quantity).label('units'),
            func.sum(SaleItem.subtotal - SaleItem.discount).label('revenue'),
        )
        .join(SaleItem, SaleItem.product_id == Product.id)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .filter(Sale.status == SaleStatus.COMPLETED.value)
        .filter(Sale.created_at >= start_dt, Sale.created_at <= end_dt)
        .group_by(Product.id, Product.name, Product.sku)
        .order_by(desc('units'), Product.name)
        .limit(limit)
        .all()
    )
    return [
        {
            'product_id': row.product_id,
            'name': row.name,
            'sku': row.sku,
            'units': int(row.units or 0),
            'revenue': str(_money(row.revenue)),
        }
        for row in rows
    ]


def get_daily_totals(session, start: Optional[date] = None, end: Optional[date] = None) -> List[Dict[str, Any]]:
    """One entry per day in the period (days without sales included as zero)."""
    start_dt, end_dt = resolve_period(start, end)
    sales = (
        session.query(Sale.created_at, Sale.total)
        .filter(Sale.status == SaleStatus.COMPLETED.value)
        .filter(Sale.created_at >= start_dt, Sale.created_at <= end_dt)
        .all()
    )

    # Grouped in Python: date() extraction differs between PostgreSQL and SQLite
    buckets: Dict[date, Dict[str, Any]] = {}
    day = start_dt.date()
    while day <= end_dt.date():
        buckets[day] = {'count': 0, 'total': ZERO}
        day += timedelta(days=1)

    for created_at, total in sales:
        bucket = buckets.setdefault(created_at.date(), {'count': 0, 'total': ZERO})
        bucket['count'] += 1
        bucket['total'] += _money(total)

    return [
        {'date': day.isoformat(), 'sale_count': data['count'], 'total': str(data['total'])}
        for day, data in sorted(buckets.items())
    ]


def _money(value) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(Decimal('0.01'))
