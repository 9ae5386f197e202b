import hashlib
import json
import logging
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = 'USD'
EMPTY_DESCRIPTION = 'N/A'
MINOR_UNITS_PER_MAJOR = 100


def get_product_data(product) -> dict:
    """Product-level fields sent to the catalog API. A blank description is sent as 'N/A'."""
    return {
        'description': product.description or EMPTY_DESCRIPTION,
        'name': product.name,
    }


def to_minor_units(amount) -> int:
    """Convert a major-unit amount (e.g. 9.99) to integer minor units (999)."""
    if amount is None:
        return 0
    minor = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    return int(minor.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def get_price_data(product) -> dict:
    """Price-level fields sent to the catalog API."""
    return {
        'currency': getattr(settings, 'STORE_CURRENCY', DEFAULT_CURRENCY),
        'interval': product.billing_period,
        'interval_count': product.billing_interval,
        'unit_amount': to_minor_units(product.price),
    }


def compute_hash(values: list) -> str:
    """Compute a stable SHA-256 hash over an ordered list of field values."""
    serialized = json.dumps(values, ensure_ascii=False, default=str)
    return hashlib.sha256(serialized.encode('utf-8')).hexdigest()


def get_product_hash(product) -> str:
    return compute_hash(list(get_product_data(product).values()))


def get_price_hash(product) -> str:
    return compute_hash(list(get_price_data(product).values()))


def get_products_to_update(product) -> list:
    """
    Resolve a product to its units of synchronisation.

    A variable subscription is synced through each of its available
    variations; anything else is its own unit.
    """
    if product.product_type == product.VARIABLE_SUBSCRIPTION:
        variations = product.get_available_variations()
        logger.debug("Product %s expands to %d variation(s).", product.pk, len(variations))
        return variations
    return [product]
