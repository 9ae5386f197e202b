import logging

from .drift import needs_sync
from .models import Product
from .product_service import ProductService
from .transformer import get_products_to_update

logger = logging.getLogger(__name__)


class UpdateScheduler:
    """
    Collects subscription products changed during one request or command and
    syncs each of them once when the owner flushes.

    Without an explicit service, one is only built once something needs it.
    """

    def __init__(self, service=None):
        self._service = service
        self._owns_service = service is None
        self.pending = {}
        self._flushed = False

    def __len__(self):
        return len(self.pending)

    @property
    def service(self) -> ProductService:
        if self._service is None:
            self._service = ProductService()
        return self._service

    @property
    def is_writing_metadata(self) -> bool:
        return self._service is not None and self._service.is_writing_metadata

    def is_scheduled(self, product_id: int) -> bool:
        return product_id in self.pending

    def maybe_schedule_product_create_or_update(self, product_id: int, product: Product) -> None:
        if product_id in self.pending or not product.is_subscription():
            return

        for unit in get_products_to_update(product):
            if unit.pk in self.pending:
                continue
            if needs_sync(unit):
                self.pending[unit.pk] = unit.pk
                logger.debug("Product %s scheduled for catalog sync.", unit.pk)

    def create_or_update_products(self) -> None:
        """Sync every scheduled product. Only the first call does anything."""
        if self._flushed:
            logger.warning("Pending catalog updates were already flushed – ignoring repeated flush.")
            return
        self._flushed = True

        pending, self.pending = self.pending, {}
        for product_id in pending.values():
            product = Product.objects.select_related('parent').filter(pk=product_id).first()
            if product is None:
                logger.debug("Product %s no longer exists – skipping catalog sync.", product_id)
                continue
            if not product.is_in_catalog():
                logger.debug("Product %s is in the trash – skipping catalog sync.", product_id)
                continue
            try:
                self.service.create_or_update_product(product)
            except Exception:
                logger.exception("Catalog sync of product %s failed.", product_id)

    def close(self) -> None:
        """Release the catalog client of a service this scheduler built itself."""
        if self._owns_service and self._service is not None:
            self._service.client.close()
