import enum
import logging
from typing import Callable, Generic, NamedTuple, Protocol, Sequence, TypeVar

from django.conf import settings
from django.db.models import Exists, OuterRef, Q

from .drift import REMOTE_PRODUCT_ID_KEY
from .lifecycle import current_scheduler
from .models import Product, ProductAttribute
from .product_service import ProductService

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

T = TypeVar('T')


class QueryResult(NamedTuple):
    items: Sequence
    total: int


class MigrationStrategy(Protocol[T]):
    """Supplies the backlog query and the per-item handler for a BatchMigrator."""

    name: str

    def get_query(self, items_per_page: int, page: int = 0) -> QueryResult:
        ...

    def handle_item(self, item: T) -> None:
        ...


class MigratorState(enum.Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    DONE = 'done'


class BatchMigrator(Generic[T]):
    """
    Works through a backlog of items one page per batch.

    Items leave the strategy's query once handled, so the cursor only moves
    forward when a batch made no progress. The run ends on the first empty page.
    """

    def __init__(self, strategy: MigrationStrategy[T], batch_size: int = None):
        for method in ('get_query', 'handle_item'):
            if not callable(getattr(strategy, method, None)):
                raise TypeError(f"{type(strategy).__name__} must implement {method}()")
        self.strategy = strategy
        if batch_size is None:
            batch_size = getattr(settings, 'SUBSYNC_MIGRATION_BATCH_SIZE', DEFAULT_BATCH_SIZE)
        self.batch_size = batch_size
        self.state = MigratorState.IDLE

    @property
    def name(self) -> str:
        return self.strategy.name

    def get_items_to_update_count(self) -> int:
        # A page of one is enough to read the total.
        return self.strategy.get_query(1).total

    def has_items_to_update(self) -> bool:
        return self.get_items_to_update_count() > 0

    def schedule_updates(self, page: int = 0) -> None:
        from .tasks import run_migration_batch

        logger.info("Scheduling '%s' migration batch (page %d).", self.name, page)
        run_migration_batch.delay(self.name, page)

    def process_batch(self, page: int = 0) -> dict:
        self.state = MigratorState.RUNNING
        result = self.strategy.get_query(self.batch_size, page)

        if not result.items:
            self.state = MigratorState.DONE
            logger.info("Migration '%s' complete.", self.name)
            return {'handled': 0, 'errors': 0, 'next_page': None}

        handled = errors = 0
        for item in result.items:
            try:
                self.strategy.handle_item(item)
                handled += 1
            except Exception:
                errors += 1
                logger.exception("Migration '%s' failed to handle item %r.", self.name, item)

        remaining = self.get_items_to_update_count()
        next_page = page if remaining < result.total else page + 1
        self.state = MigratorState.IDLE

        logger.info(
            "Migration '%s' batch done. page=%d, handled=%d, errors=%d, remaining=%d.",
            self.name, page, handled, errors, remaining,
        )
        return {'handled': handled, 'errors': errors, 'next_page': next_page}


class SubscriptionProductMigration:
    """Creates catalog products for subscription products that were never synced."""

    name = 'subscription_products'

    def __init__(self, service=None):
        self._service = service

    @property
    def service(self):
        # Share the running task's service so its metadata writes are not rescheduled.
        if self._service is not None:
            return self._service
        scheduler = current_scheduler()
        if scheduler is not None:
            return scheduler.service
        self._service = ProductService()
        return self._service

    def get_query(self, items_per_page: int, page: int = 0) -> QueryResult:
        synced = ProductAttribute.objects.filter(
            product=OuterRef('pk'), key=REMOTE_PRODUCT_ID_KEY,
        ).exclude(value='')
        queryset = (
            Product.objects
            .filter(
                product_type__in=(Product.SUBSCRIPTION, Product.SUBSCRIPTION_VARIATION),
                status=Product.STATUS_PUBLISH,
            )
            .filter(Q(parent__isnull=True) | Q(parent__status=Product.STATUS_PUBLISH))
            .filter(~Exists(synced))
            .order_by('pk')
        )
        offset = page * items_per_page
        return QueryResult(
            items=list(queryset[offset:offset + items_per_page]),
            total=queryset.count(),
        )

    def handle_item(self, item: Product) -> None:
        self.service.create_or_update_product(item)


MIGRATIONS: dict[str, Callable[[], MigrationStrategy]] = {
    SubscriptionProductMigration.name: SubscriptionProductMigration,
}


def get_migrator(name: str) -> BatchMigrator:
    try:
        factory = MIGRATIONS[name]
    except KeyError:
        raise ValueError(f"Unknown migration {name!r}") from None
    return BatchMigrator(factory())
