"""
Cart accumulator for one checkout session.

Lines are keyed by product id. Every derived figure (subtotal, discount,
tax, total) is recomputed from the lines on access, so any mutation is
reflected immediately.

Discount/tax order:
    1. line_subtotal = unit_price * quantity            (list price, stored as-is)
    2. line_discount = line_subtotal * line_pct / 100
    3. global_discount = sum(line_subtotal - line_discount) * global_pct / 100
    4. discount = round2(sum(line_discount) + global_discount)
    5. tax = round2((subtotal - discount) * tax_rate)
    6. total = subtotal - discount + tax
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, List, Optional, Any

from multipos.utils.money import to_decimal, round2

HUNDRED = Decimal('100')


def clamp_quantity(quantity) -> int:
    """Quantities are whole units, never below 1."""
    try:
        value = int(Decimal(str(quantity)).to_integral_value(rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError, TypeError, OverflowError):
        return 1
    return max(1, value)


def clamp_percent(percent) -> Decimal:
    """Percentages live in [0, 100]."""
    try:
        value = to_decimal(percent)
    except ValueError:
        return Decimal('0')
    if value < 0:
        return Decimal('0')
    if value > HUNDRED:
        return HUNDRED
    return value


class CartLine:
    """One product entry in the cart."""

    def __init__(self, product_id: int, name: str, unit_price, quantity: int = 1,
                 discount_percent=0, sku: Optional[str] = None):
        self.product_id = int(product_id)
        self.name = name
        self.sku = sku
        self.unit_price = to_decimal(unit_price)
        self.quantity = clamp_quantity(quantity)
        self.discount_percent = clamp_percent(discount_percent)

    @property
    def id(self) -> int:
        return self.product_id

    @property
    def subtotal(self) -> Decimal:
        """List price x quantity. Unaffected by discounts."""
        return self.unit_price * self.quantity

    @property
    def discount_amount(self) -> Decimal:
        return self.subtotal * self.discount_percent / HUNDRED

    @property
    def total(self) -> Decimal:
        return self.subtotal - self.discount_amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'name': self.name,
            'sku': self.sku,
            'unit_price': str(self.unit_price),
            'quantity': self.quantity,
            'discount_percent': str(self.discount_percent),
            'subtotal': str(round2(self.subtotal)),
            'discount': str(round2(self.discount_amount)),
            'total': str(round2(self.total)),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartLine':
        return cls(
            product_id=data['product_id'],
            name=data.get('name', ''),
            unit_price=data['unit_price'],
            quantity=data.get('quantity', 1),
            discount_percent=data.get('discount_percent', 0),
            sku=data.get('sku'),
        )

    def __repr__(self):
        return f"<CartLine(product_id={self.product_id}, quantity={self.quantity}, discount={self.discount_percent}%)>"


class Cart:
    """Ordered list of cart lines plus a global discount percent."""

    def __init__(self, tax_rate=Decimal('0.16'), lines: Optional[List[CartLine]] = None,
                 global_discount_percent=0):
        self.tax_rate = to_decimal(tax_rate)
        self.lines: List[CartLine] = list(lines or [])
        self.global_discount_percent = clamp_percent(global_discount_percent)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def get_line(self, line_id) -> Optional[CartLine]:
        line_id = int(line_id)
        for line in self.lines:
            if line.product_id == line_id:
                return line
        return None

    def add_item(self, product, quantity: int = 1) -> CartLine:
        """
        Add a product, merging into the existing line for the same product.

        `product` is anything with id, name, price (and optionally sku):
        a Product model row or a plain object in tests.
        """
        quantity = clamp_quantity(quantity)
        line = self.get_line(product.id)
        if line:
            line.quantity += quantity
            return line

        line = CartLine(
            product_id=product.id,
            name=product.name,
            unit_price=product.price,
            quantity=quantity,
            sku=getattr(product, 'sku', None),
        )
        self.lines.append(line)
        return line

    def update_quantity(self, line_id, new_quantity) -> Optional[CartLine]:
        line = self.get_line(line_id)
        if line:
            line.quantity = clamp_quantity(new_quantity)
        return line

    def update_item_discount(self, line_id, percent) -> Optional[CartLine]:
        line = self.get_line(line_id)
        if line:
            line.discount_percent = clamp_percent(percent)
        return line

    def update_global_discount(self, percent) -> None:
        self.global_discount_percent = clamp_percent(percent)

    def remove_item(self, line_id) -> bool:
        line = self.get_line(line_id)
        if not line:
            return False
        self.lines.remove(line)
        return True

    def clear(self) -> None:
        self.lines = []
        self.global_discount_percent = Decimal('0')

    # ------------------------------------------------------------------
    # Derived figures
    # ------------------------------------------------------------------

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal(self) -> Decimal:
        return round2(sum((line.subtotal for line in self.lines), Decimal('0')))

    @property
    def line_discount(self) -> Decimal:
        """Unrounded sum of per-line discounts."""
        return sum((line.discount_amount for line in self.lines), Decimal('0'))

    @property
    def global_discount(self) -> Decimal:
        """Unrounded global discount, applied on the already line-discounted sum."""
        discounted_sum = sum((line.total for line in self.lines), Decimal('0'))
        return discounted_sum * self.global_discount_percent / HUNDRED

    @property
    def discount(self) -> Decimal:
        return round2(self.line_discount + self.global_discount)

    @property
    def taxable_amount(self) -> Decimal:
        return self.subtotal - self.discount

    @property
    def tax(self) -> Decimal:
        return round2(self.taxable_amount * self.tax_rate)

    @property
    def total(self) -> Decimal:
        return self.subtotal - self.discount + self.tax

    def totals(self) -> Dict[str, Decimal]:
        return {
            'subtotal': self.subtotal,
            'discount': self.discount,
            'tax': self.tax,
            'total': self.total,
        }

    # ------------------------------------------------------------------
    # Serialization (Flask session storage)
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tax_rate': str(self.tax_rate),
            'global_discount_percent': str(self.global_discount_percent),
            'lines': [line.to_dict() for line in self.lines],
            'item_count': self.item_count,
            'subtotal': str(self.subtotal),
            'discount': str(self.discount),
            'tax': str(self.tax),
            'total': str(self.total),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], tax_rate=None) -> 'Cart':
        data = data or {}
        rate = tax_rate if tax_rate is not None else data.get('tax_rate', '0.16')
        return cls(
            tax_rate=rate,
            lines=[CartLine.from_dict(line) for line in data.get('lines', [])],
            global_discount_percent=data.get('global_discount_percent', 0),
        )

    def __repr__(self):
        return f"<Cart(lines={len(self.lines)}, total={self.total})>"
