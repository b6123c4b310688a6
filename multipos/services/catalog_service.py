"""Catalog service: products and categories."""
import re
import unicodedata
import uuid
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy import or_, and_, func
from sqlalchemy.exc import IntegrityError

from multipos.models import Product, Category
from multipos.exceptions import ValidationError, NotFoundError, BusinessLogicError
from multipos.utils.money import parse_amount

PRODUCT_FIELDS = (
    'sku', 'barcode', 'name', 'description', 'category_id', 'price', 'cost',
    'stock', 'min_stock', 'max_stock', 'image_url', 'active',
)


# =====================================================
# PRODUCTS
# =====================================================

def search_products(session, query: str = '', category_id=None, include_inactive: bool = False,
                    limit: int = 50) -> Tuple[List[Product], Optional[int]]:
    """
    Product search for the POS.

    An exact barcode match wins and is returned alone; otherwise name, SKU
    and barcode are matched as case-insensitive substrings.

    Returns:
        (products, exact_barcode_match_id)
    """
    base = session.query(Product)
    if not include_inactive:
        base = base.filter(Product.active == True)  # noqa: E712
    if category_id not in (None, ''):
        try:
            base = base.filter(Product.category_id == int(category_id))
        except (TypeError, ValueError):
            raise ValidationError('ID de categoría inválido')

    query = (query or '').strip()[:100]
    if not query:
        return base.order_by(Product.name).limit(limit).all(), None

    exact_match = base.filter(
        Product.barcode.isnot(None),
        func.lower(Product.barcode) == query.lower()
    ).first()
    if exact_match:
        return [exact_match], exact_match.id

    pattern = f'%{query.lower()}%'
    products = base.filter(or_(
        func.lower(Product.name).like(pattern),
        func.lower(Product.sku).like(pattern),
        and_(Product.barcode.isnot(None), func.lower(Product.barcode).like(pattern))
    )).order_by(Product.name).limit(limit).all()
    return products, None


def get_product(session, product_id: int) -> Product:
    product = session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise NotFoundError(f'Producto {product_id} no encontrado')
    return product


def get_low_stock_products(session, threshold: Optional[int] = None) -> List[Product]:
    """Active products at or below their minimum stock (or below a global threshold)."""
    if threshold is None:
        threshold = current_app.config.get('LOW_STOCK_THRESHOLD', 10)
    return session.query(Product).filter(
        Product.active == True,  # noqa: E712
        or_(Product.stock <= Product.min_stock, Product.stock <= threshold)
    ).order_by(Product.stock.asc(), Product.name).all()


def create_product(session, data: Dict[str, Any]) -> Product:
    clean = validate_product_data(session, data)
    if not clean.get('sku'):
        clean['sku'] = generate_sku(clean['name'])
    product = Product(**clean)
    session.add(product)
    _commit_unique(session, 'Ya existe un producto con ese SKU o código de barras')
    current_app.logger.info(f"Product created: {product.id} {product.name}")
    return product


def update_product(session, product_id: int, data: Dict[str, Any]) -> Product:
    product = get_product(session, product_id)
    clean = validate_product_data(session, data, partial=True)
    for field, value in clean.items():
        setattr(product, field, value)
    _commit_unique(session, 'Ya existe un producto con ese SKU o código de barras')
    return product


def deactivate_product(session, product_id: int) -> Product:
    """Products are never hard-deleted; sales keep referencing them."""
    product = get_product(session, product_id)
    product.active = False
    session.commit()
    return product


def validate_product_data(session, data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate product input.

    Returns the cleaned fields; raises ValidationError listing every problem.
    With partial=True only present fields are validated.
    """
    unknown = set(data) - set(PRODUCT_FIELDS)
    if unknown:
        raise ValidationError(f"Campos desconocidos: {', '.join(sorted(unknown))}")

    errors = []
    clean: Dict[str, Any] = {}

    if 'name' in data or not partial:
        name = str(data.get('name') or '').strip()
        if not name:
            errors.append('El nombre es requerido')
        clean['name'] = name

    for field in ('sku', 'barcode'):
        if field in data:
            clean[field] = _normalize_id(data[field])

    if 'description' in data:
        clean['description'] = (str(data['description']).strip() or None) if data['description'] else None
    if 'image_url' in data:
        clean['image_url'] = data['image_url'] or None

    if 'category_id' in data:
        category_id = data['category_id']
        if category_id in (None, ''):
            clean['category_id'] = None
        else:
            try:
                category = session.query(Category).filter_by(id=int(category_id)).first()
                if not category:
                    errors.append('La categoría seleccionada no existe')
                clean['category_id'] = int(category_id)
            except (TypeError, ValueError):
                errors.append('ID de categoría inválido')

    if 'price' in data or not partial:
        try:
            clean['price'] = parse_amount(data.get('price'), field='precio de venta', allow_zero=True)
        except ValueError as e:
            errors.append(str(e))

    if 'cost' in data:
        try:
            clean['cost'] = parse_amount(data.get('cost') or 0, field='costo', allow_zero=True)
        except ValueError as e:
            errors.append(str(e))

    for field, label in (('stock', 'stock'), ('min_stock', 'stock mínimo'), ('max_stock', 'stock máximo')):
        if field in data:
            try:
                value = int(str(data[field]).strip())
                if value < 0:
                    errors.append(f'El {label} debe ser mayor o igual a 0')
                clean[field] = value
            except (TypeError, ValueError):
                errors.append(f'El {label} debe ser un número entero')

    if 'active' in data:
        clean['active'] = bool(data['active'])

    if errors:
        raise ValidationError('; '.join(errors), payload={'errors': errors})
    return clean


def generate_sku(name: str) -> str:
    """PRD-<slug>-<random>, e.g. PRD-TACOS-1A2B3C."""
    ascii_name = unicodedata.normalize('NFKD', name or '').encode('ascii', 'ignore').decode('ascii')
    slug = re.sub(r'[^A-Z0-9]+', '', ascii_name.upper())[:8] or 'ITEM'
    return f"PRD-{slug}-{uuid.uuid4().hex[:6].upper()}"


# =====================================================
# CATEGORIES
# =====================================================

def list_categories(session, include_inactive: bool = False, digital_menu_only: bool = False) -> List[Category]:
    query = session.query(Category)
    if not include_inactive:
        query = query.filter(Category.active == True)  # noqa: E712
    if digital_menu_only:
        query = query.filter(Category.available_in_digital_menu == True)  # noqa: E712
    return query.order_by(Category.name).all()


def get_category(session, category_id: int) -> Category:
    category = session.query(Category).filter_by(id=category_id).first()
    if not category:
        raise NotFoundError(f'Categoría {category_id} no encontrada')
    return category


def find_category_by_name(session, name: str) -> Optional[Category]:
    """Case-insensitive lookup among active categories."""
    return session.query(Category).filter(
        Category.active == True,  # noqa: E712
        func.lower(Category.name) == name.strip().lower()
    ).first()


def create_category(session, data: Dict[str, Any]) -> Category:
    name = str(data.get('name') or '').strip()
    if not name:
        raise ValidationError('El nombre de la categoría es requerido')
    if find_category_by_name(session, name):
        raise BusinessLogicError(f"Ya existe una categoría con el nombre '{name}'", status_code=409)

    parent_id = data.get('parent_id')
    if parent_id not in (None, ''):
        get_category(session, int(parent_id))

    category = Category(
        name=name,
        parent_id=int(parent_id) if parent_id not in (None, '') else None,
        available_in_pos=bool(data.get('available_in_pos', True)),
        available_in_digital_menu=bool(data.get('available_in_digital_menu', False)),
    )
    session.add(category)
    session.commit()
    return category


def update_category(session, category_id: int, data: Dict[str, Any]) -> Category:
    category = get_category(session, category_id)
    if 'name' in data:
        name = str(data.get('name') or '').strip()
        if not name:
            raise ValidationError('El nombre de la categoría es requerido')
        existing = find_category_by_name(session, name)
        if existing and existing.id != category.id:
            raise BusinessLogicError(f"Ya existe una categoría con el nombre '{name}'", status_code=409)
        category.name = name
    if 'parent_id' in data:
        parent_id = data['parent_id']
        if parent_id not in (None, '') and int(parent_id) == category.id:
            raise ValidationError('Una categoría no puede ser su propia categoría padre')
        category.parent_id = int(parent_id) if parent_id not in (None, '') else None
    for flag in ('available_in_pos', 'available_in_digital_menu', 'active'):
        if flag in data:
            setattr(category, flag, bool(data[flag]))
    session.commit()
    return category


def deactivate_category(session, category_id: int) -> Category:
    category = get_category(session, category_id)
    category.active = False
    session.commit()
    return category


def _normalize_id(value) -> Optional[str]:
    """SKU / barcode: 'none' or empty -> None."""
    if value is None:
        return None
    val_str = str(value).strip()
    if not val_str or val_str.lower() == 'none':
        return None
    return val_str


def _commit_unique(session, message: str) -> None:
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError(message, status_code=409)
