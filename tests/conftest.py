import json
from decimal import Decimal

import pytest
import responses as responses_lib

from subsync.drift import PRICE_HASH_KEY, PRODUCT_HASH_KEY, REMOTE_PRICE_ID_KEY, REMOTE_PRODUCT_ID_KEY
from subsync.models import Product
from subsync.transformer import get_price_hash, get_product_hash

BASE_URL = 'https://api.fake-catalog.test/v1'
API_KEY = 'catalog-secret-token'


@pytest.fixture(autouse=True)
def override_settings(settings):
    settings.CATALOG_API_BASE_URL = BASE_URL
    settings.CATALOG_API_KEY = API_KEY
    settings.STORE_CURRENCY = 'USD'


@pytest.fixture()
def make_product(db):
    """Create a product; subscription monthly plan unless overridden."""
    def _make(**fields):
        defaults = {
            'product_type': Product.SUBSCRIPTION,
            'name': 'Gold Plan',
            'description': '',
            'price': Decimal('9.99'),
            'billing_period': 'month',
            'billing_interval': 1,
        }
        defaults.update(fields)
        return Product.objects.create(**defaults)
    return _make


@pytest.fixture()
def mark_synced():
    """Store sync metadata matching the product's current fields."""
    def _mark(product, remote_product_id='prod_1', remote_price_id='price_1'):
        product.set_attribute(REMOTE_PRODUCT_ID_KEY, remote_product_id)
        product.set_attribute(PRODUCT_HASH_KEY, get_product_hash(product))
        product.set_attribute(REMOTE_PRICE_ID_KEY, remote_price_id)
        product.set_attribute(PRICE_HASH_KEY, get_price_hash(product))
        product.persist()
        return product
    return _mark


@pytest.fixture()
def catalog():
    with responses_lib.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def request_json(call) -> dict:
    return json.loads(call.request.body)
