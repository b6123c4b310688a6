"""
Menu digitization.

Photos of a printed menu are sent to a vision model through the OpenRouter
chat completions API; the extracted items become catalog products under
digital-menu categories.
"""
import base64
import json
import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from multipos.exceptions import ConfigurationError, ExternalServiceError, ValidationError
from multipos.models import Category, Product
from multipos.services.catalog_service import find_category_by_name, generate_sku
from multipos.utils.money import round2

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = 'Sin Categoría'
DEFAULT_MENU_STOCK = 100

EXTRACTION_PROMPT = """Analiza esta imagen de un menú de restaurante y extrae TODOS los productos que veas.

Para cada producto, proporciona la siguiente información en formato JSON:
- name: nombre del producto (string)
- description: descripción breve del producto (string, puede ser vacío)
- price: precio del producto (número, si no está visible usa 0)
- category: categoría del producto como "Entradas", "Platos Principales", "Bebidas", "Postres", etc. (string)

IMPORTANTE:
- Extrae TODOS los productos que veas en la imagen
- Si hay precios en la imagen, úsalos exactamente como aparecen
- Si NO hay precio visible, usa 0
- Devuelve SOLO un array JSON válido, sin texto adicional
- El formato debe ser exactamente: [{"name": "...", "description": "...", "price": 0, "category": "..."}]

Responde ÚNICAMENTE con el array JSON, sin markdown, sin explicaciones adicionales."""

_FENCE_RE = re.compile(r'```(?:json)?\n?')
_ARRAY_RE = re.compile(r'\[[\s\S]*\]')


def process_menu_images(session, files) -> Dict[str, Any]:
    """
    Extract products from every uploaded image and save them.

    A failing image is skipped and reported; if nothing at all is extracted
    a ValidationError is raised.

    Returns:
        {'products_added', 'products_updated', 'total_extracted', 'errors'}
    """
    if not files:
        raise ValidationError('No se proporcionaron imágenes')
    if not current_app.config.get('OPENROUTER_API_KEY'):
        raise ConfigurationError('OPENROUTER_API_KEY no está configurado')

    extracted: List[Dict[str, Any]] = []
    errors: List[str] = []

    for upload in files:
        try:
            items = extract_menu_items(upload.read(), upload.mimetype or 'image/jpeg')
            logger.info(f"[MENU] Extracted {len(items)} items from {upload.filename}")
            extracted.extend(items)
        except ExternalServiceError as e:
            logger.warning(f"[MENU] Skipping {upload.filename}: {e.message}")
            errors.append(f'{upload.filename}: {e.message}')

    if not extracted:
        raise ValidationError('No se pudieron extraer productos de las imágenes', payload={'errors': errors})

    result = save_menu_items(session, extracted)
    result['errors'] = errors
    return result


def extract_menu_items(image_bytes: bytes, mimetype: str) -> List[Dict[str, Any]]:
    """Send one image to the vision model and return the parsed item list."""
    config = current_app.config
    data_url = f"data:{mimetype};base64,{base64.b64encode(image_bytes).decode('ascii')}"

    try:
        response = requests.post(
            f"{config['OPENROUTER_API_URL']}/chat/completions",
            headers={
                'Authorization': f"Bearer {config['OPENROUTER_API_KEY']}",
                'HTTP-Referer': config.get('APP_URL', 'http://localhost:5000'),
                'X-Title': 'MultiPOS - Menu Digital',
                'Content-Type': 'application/json',
            },
            json={
                'model': config['OPENROUTER_MODEL'],
                'messages': [{
                    'role': 'user',
                    'content': [
                        {'type': 'text', 'text': EXTRACTION_PROMPT},
                        {'type': 'image_url', 'image_url': {'url': data_url}},
                    ],
                }],
            },
            timeout=config.get('HTTP_TIMEOUT', 30) * 4
        )
        response.raise_for_status()
        content = response.json()['choices'][0]['message']['content'] or ''
    except (requests.RequestException, ValueError, KeyError, IndexError) as e:
        logger.error(f"[MENU] Vision API error: {e}")
        raise ExternalServiceError('Error al analizar la imagen del menú')

    return parse_menu_reply(content)


def parse_menu_reply(text: str) -> List[Dict[str, Any]]:
    """
    Parse the model reply into a list of item dicts.

    Markdown fences are stripped; if the remaining text is not valid JSON the
    first bracketed array in it is tried.
    """
    text = _FENCE_RE.sub('', text or '').strip()
    try:
        items = json.loads(text)
    except ValueError:
        match = _ARRAY_RE.search(text)
        if not match:
            raise ExternalServiceError('No se pudo extraer JSON válido de la respuesta')
        try:
            items = json.loads(match.group(0))
        except ValueError:
            raise ExternalServiceError('No se pudo extraer JSON válido de la respuesta')

    if not isinstance(items, list):
        raise ExternalServiceError('La respuesta no contiene una lista de productos')
    return [item for item in items if isinstance(item, dict) and str(item.get('name') or '').strip()]


def save_menu_items(session, items: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Create or update products for extracted menu items in one commit."""
    existing_products = session.query(Product).all()
    categories: Dict[str, Category] = {}
    added = 0
    updated = 0

    try:
        for item in items:
            name = str(item['name']).strip()[:200]
            category = _get_or_create_category(session, categories, item.get('category') or DEFAULT_CATEGORY)
            price = _parse_price(item.get('price'))
            description = str(item.get('description') or '').strip() or None

            existing = find_existing_product(existing_products, name)
            if existing:
                if price is not None and price > 0:
                    existing.price = price
                existing.description = description or existing.description
                existing.category_id = category.id
                existing.active = True
                updated += 1
                continue

            product = Product(
                sku=generate_sku(name),
                name=name,
                description=description,
                category_id=category.id,
                price=price if price is not None else Decimal('0.00'),
                cost=Decimal('0.00'),
                stock=DEFAULT_MENU_STOCK,
                min_stock=10,
                max_stock=1000,
                active=True,
            )
            session.add(product)
            existing_products.append(product)
            added += 1

        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[MENU] Saved menu: added={added} updated={updated}")
    return {
        'products_added': added,
        'products_updated': updated,
        'total_extracted': len(items),
    }


def find_existing_product(products: List[Product], name: str) -> Optional[Product]:
    """Exact or containment match on the lowercased name."""
    normalized = name.lower().strip()
    for p in products:
        existing = p.name.lower().strip()
        if existing == normalized or existing in normalized or normalized in existing:
            return p
    return None


def _get_or_create_category(session, cache: Dict[str, Category], name: str) -> Category:
    name = str(name).strip()[:120] or DEFAULT_CATEGORY
    key = name.lower()
    if key in cache:
        return cache[key]

    category = find_category_by_name(session, name)
    if category:
        category.available_in_digital_menu = True
    else:
        category = Category(name=name, active=True, available_in_pos=False, available_in_digital_menu=True)
        session.add(category)
        session.flush()
    cache[key] = category
    return category


def _parse_price(value) -> Optional[Decimal]:
    if value in (None, ''):
        return None
    try:
        price = round2(value)
    except ValueError:
        return None
    return price if price >= 0 else None
