import logging
from contextlib import contextmanager

from .catalog_client import CatalogAPIError, CatalogClient
from .drift import (
    PRICE_HASH_KEY,
    PRODUCT_HASH_KEY,
    REMOTE_PRICE_ID_KEY,
    REMOTE_PRODUCT_ID_KEY,
    get_remote_price_id,
    get_remote_product_id,
    has_remote_product_id,
    price_needs_update,
    product_needs_update,
)
from .models import Product
from .transformer import (
    get_price_data,
    get_price_hash,
    get_product_data,
    get_product_hash,
    get_products_to_update,
)

logger = logging.getLogger(__name__)


class ProductService:
    """
    Creates, updates and archives subscription products in the remote catalog.

    Remote failures are logged and swallowed: catalog sync is a side channel
    of the commerce operation that triggered it and must never break it.
    Drift is re-detected on the next save or migration pass.
    """

    def __init__(self, client=None):
        self.client = client if client is not None else CatalogClient()
        self._writing_metadata = False

    @property
    def is_writing_metadata(self) -> bool:
        """True while sync metadata is being saved; product save receivers must not schedule."""
        return self._writing_metadata

    @contextmanager
    def _metadata_write(self):
        self._writing_metadata = True
        try:
            yield
        finally:
            self._writing_metadata = False

    # -----------------------------------------------------------------
    # Create / update
    # -----------------------------------------------------------------

    def create_or_update_product(self, product: Product) -> None:
        if has_remote_product_id(product):
            self.update_product(product)
        else:
            self.create_product(product)

    def create_product(self, product: Product) -> None:
        """Create the product and its initial price, then store all four sync attributes."""
        payload = {**get_product_data(product), **get_price_data(product)}
        try:
            remote = self.client.create_product(payload)
        except CatalogAPIError as exc:
            logger.error("There was a problem creating product %s in the catalog: %s", product.pk, exc)
            return

        if not remote.get('remote_product_id') or not remote.get('remote_price_id'):
            logger.error(
                "Catalog did not return product and price ids for product %s: %r", product.pk, remote,
            )
            return

        with self._metadata_write():
            product.set_attribute(PRODUCT_HASH_KEY, get_product_hash(product))
            product.set_attribute(REMOTE_PRODUCT_ID_KEY, remote['remote_product_id'])
            product.set_attribute(PRICE_HASH_KEY, get_price_hash(product))
            product.set_attribute(REMOTE_PRICE_ID_KEY, remote['remote_price_id'])
            product.persist()

        logger.info(
            "Product %s created in catalog as %s (price %s).",
            product.pk, remote['remote_product_id'], remote['remote_price_id'],
        )

    def update_product(self, product: Product) -> None:
        """Push only the drifted part of the product; price changes get a new remote price."""
        remote_product_id = get_remote_product_id(product)
        if not remote_product_id:
            self.create_product(product)
            return

        data = {}
        if product_needs_update(product):
            data.update(get_product_data(product))
        if price_needs_update(product):
            data.update(get_price_data(product))

        if not data:
            logger.debug("Product %s already in sync – skipping.", product.pk)
            return

        try:
            remote = self.client.update_product(remote_product_id, data)

            old_price_id = get_remote_price_id(product)
            new_price_id = remote.get('remote_price_id')

            with self._metadata_write():
                if remote.get('remote_product_id'):
                    product.set_attribute(PRODUCT_HASH_KEY, get_product_hash(product))
                if new_price_id:
                    product.set_attribute(PRICE_HASH_KEY, get_price_hash(product))
                    product.set_attribute(REMOTE_PRICE_ID_KEY, new_price_id)
                product.persist()

            logger.info("Product %s updated in catalog (%s).", product.pk, ', '.join(sorted(remote)) or 'no changes')

            if new_price_id and old_price_id and old_price_id != new_price_id:
                self.archive_price(old_price_id)
        except CatalogAPIError as exc:
            logger.error("There was a problem updating product %s in the catalog: %s", product.pk, exc)

    # -----------------------------------------------------------------
    # Archive / unarchive
    # -----------------------------------------------------------------

    def maybe_archive_product(self, product_id: int) -> None:
        for product in self._subscription_units(product_id):
            self.archive_product(product)

    def maybe_unarchive_product(self, product_id: int) -> None:
        for product in self._subscription_units(product_id):
            self.unarchive_product(product)

    def archive_product(self, product: Product) -> None:
        remote_product_id = get_remote_product_id(product)
        if not remote_product_id:
            return

        try:
            price_id = get_remote_price_id(product)
            if price_id:
                self.archive_price(price_id)
            self.client.update_product(remote_product_id, {'active': False})
            logger.info("Product %s archived in catalog.", product.pk)
        except CatalogAPIError as exc:
            logger.error("There was a problem archiving product %s: %s", product.pk, exc)

    def unarchive_product(self, product: Product) -> None:
        """Reactivate the remote product only; prices are reissued by the next update."""
        remote_product_id = get_remote_product_id(product)
        if not remote_product_id:
            return

        try:
            self.client.update_product(remote_product_id, {'active': True})
            logger.info("Product %s unarchived in catalog.", product.pk)
        except CatalogAPIError as exc:
            logger.error("There was a problem unarchiving product %s: %s", product.pk, exc)

    def archive_price(self, price_id: str) -> None:
        self.client.update_price(price_id, {'active': False})

    @staticmethod
    def _subscription_units(product_id: int) -> list:
        product = Product.objects.filter(pk=product_id).first()
        if product is None or not product.is_subscription():
            return []
        return get_products_to_update(product)
