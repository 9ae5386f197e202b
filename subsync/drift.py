from .transformer import get_price_hash, get_product_hash

REMOTE_PRODUCT_ID_KEY = 'remote_product_id'
PRODUCT_HASH_KEY = 'product_hash'
REMOTE_PRICE_ID_KEY = 'remote_price_id'
PRICE_HASH_KEY = 'price_hash'


def get_remote_product_id(product) -> str:
    return product.get_attribute(REMOTE_PRODUCT_ID_KEY) or ''


def get_remote_price_id(product) -> str:
    return product.get_attribute(REMOTE_PRICE_ID_KEY) or ''


def has_remote_product_id(product) -> bool:
    return bool(get_remote_product_id(product))


def _hash_differs(stored, current: str) -> bool:
    # An absent or empty stored hash never matches, not even the hash of empty data.
    return not stored or stored != current


def product_needs_update(product) -> bool:
    """True when name/description changed since the last successful sync."""
    return _hash_differs(product.get_attribute(PRODUCT_HASH_KEY), get_product_hash(product))


def price_needs_update(product) -> bool:
    """True when currency/interval/interval count/amount changed since the last successful sync."""
    return _hash_differs(product.get_attribute(PRICE_HASH_KEY), get_price_hash(product))


def needs_sync(product) -> bool:
    return (
        not has_remote_product_id(product)
        or product_needs_update(product)
        or price_needs_update(product)
    )
