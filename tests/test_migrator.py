from unittest.mock import MagicMock, patch

import pytest
import responses as responses_lib

from subsync.drift import REMOTE_PRODUCT_ID_KEY
from subsync.migrator import (
    BatchMigrator,
    MigratorState,
    QueryResult,
    SubscriptionProductMigration,
    get_migrator,
)
from subsync.models import Product
from subsync.product_service import ProductService
from subsync.tasks import run_migration_batch, schedule_pending_migrations

from .conftest import BASE_URL


class ListMigration:
    """In-memory backlog; items leave the backlog once handled successfully."""

    name = 'list'

    def __init__(self, items, failing=()):
        self.backlog = list(items)
        self.failing = set(failing)
        self.handled = []

    def get_query(self, items_per_page, page=0):
        offset = page * items_per_page
        return QueryResult(items=self.backlog[offset:offset + items_per_page], total=len(self.backlog))

    def handle_item(self, item):
        self.handled.append(item)
        if item in self.failing:
            raise RuntimeError(f'cannot migrate {item}')
        self.backlog.remove(item)


def run_to_completion(migrator, limit=50):
    page, batches = 0, 0
    while page is not None and batches < limit:
        page = migrator.process_batch(page)['next_page']
        batches += 1
    return batches


# ---------------------------------------------------------------------------
# BatchMigrator
# ---------------------------------------------------------------------------

class TestBatchMigrator:
    def test_strategy_without_handler_is_rejected(self):
        class NoHandler:
            name = 'broken'

            def get_query(self, items_per_page, page=0):
                return QueryResult(items=[], total=0)

        with pytest.raises(TypeError, match='handle_item'):
            BatchMigrator(NoHandler())

    def test_strategy_without_query_is_rejected(self):
        class NoQuery:
            name = 'broken'

            def handle_item(self, item):
                pass

        with pytest.raises(TypeError, match='get_query'):
            BatchMigrator(NoQuery())

    def test_has_items_queries_with_page_size_one(self):
        strategy = MagicMock()
        strategy.get_query.return_value = QueryResult(items=['a'], total=42)
        migrator = BatchMigrator(strategy)

        assert migrator.has_items_to_update()
        strategy.get_query.assert_called_once_with(1)

    def test_no_items_to_update(self):
        assert not BatchMigrator(ListMigration([])).has_items_to_update()

    def test_default_batch_size_from_settings(self, settings):
        settings.SUBSYNC_MIGRATION_BATCH_SIZE = 25
        assert BatchMigrator(ListMigration([])).batch_size == 25

    def test_batch_handles_one_page(self):
        strategy = ListMigration(range(5))
        migrator = BatchMigrator(strategy, batch_size=2)

        stats = migrator.process_batch(0)

        assert strategy.handled == [0, 1]
        assert stats == {'handled': 2, 'errors': 0, 'next_page': 0}
        assert migrator.state is MigratorState.IDLE

    def test_failing_item_does_not_abort_batch(self):
        strategy = ListMigration(range(4), failing={1})
        migrator = BatchMigrator(strategy, batch_size=4)

        stats = migrator.process_batch(0)

        assert strategy.handled == [0, 1, 2, 3]
        assert stats['handled'] == 3
        assert stats['errors'] == 1

    def test_empty_page_finishes_run(self):
        migrator = BatchMigrator(ListMigration([]))

        stats = migrator.process_batch(0)

        assert stats['next_page'] is None
        assert migrator.state is MigratorState.DONE

    def test_run_terminates_past_permanently_failing_items(self):
        strategy = ListMigration(range(7), failing={0, 1, 5})
        migrator = BatchMigrator(strategy, batch_size=2)

        batches = run_to_completion(migrator)

        assert batches < 50
        assert migrator.state is MigratorState.DONE
        assert strategy.backlog == [0, 1, 5]

    def test_schedule_updates_enqueues_batch_task(self):
        migrator = BatchMigrator(ListMigration([1]))
        with patch('subsync.tasks.run_migration_batch.delay') as delay:
            migrator.schedule_updates(3)
        delay.assert_called_once_with('list', 3)


# ---------------------------------------------------------------------------
# SubscriptionProductMigration
# ---------------------------------------------------------------------------

@pytest.mark.django_db
class TestSubscriptionProductMigration:
    def test_query_selects_unsynced_published_subscription_units(self, make_product, mark_synced):
        unsynced = make_product()
        mark_synced(make_product(name='Synced'))
        make_product(name='Plain', product_type=Product.SIMPLE)
        make_product(name='Trashed', status=Product.STATUS_TRASH)
        parent = make_product(product_type=Product.VARIABLE_SUBSCRIPTION, price=None)
        variation = make_product(product_type=Product.SUBSCRIPTION_VARIATION, parent=parent)

        result = SubscriptionProductMigration().get_query(100)

        assert result.items == [unsynced, variation]
        assert result.total == 2

    def test_query_skips_variations_of_trashed_parent(self, make_product):
        parent = make_product(
            product_type=Product.VARIABLE_SUBSCRIPTION, price=None, status=Product.STATUS_TRASH,
        )
        make_product(product_type=Product.SUBSCRIPTION_VARIATION, parent=parent)
        standalone = make_product(name='Standalone')

        result = SubscriptionProductMigration().get_query(100)

        assert result.items == [standalone]
        assert result.total == 1

    def test_query_pages(self, make_product):
        products = [make_product(name=f'Plan {i}') for i in range(3)]

        result = SubscriptionProductMigration().get_query(2, page=1)

        assert result.items == [products[2]]
        assert result.total == 3

    def test_handle_item_delegates_to_service(self, make_product):
        product = make_product()
        service = MagicMock(spec=ProductService)

        SubscriptionProductMigration(service).handle_item(product)

        service.create_or_update_product.assert_called_once_with(product)

    def test_backfill_creates_remote_products(self, make_product, catalog):
        products = [make_product(name=f'Plan {i}') for i in range(3)]
        for i in range(3):
            catalog.add(
                responses_lib.POST, f'{BASE_URL}/products/',
                json={'stripe_product_id': f'prod_{i}', 'stripe_price_id': f'price_{i}'}, status=201,
            )
        migrator = BatchMigrator(SubscriptionProductMigration(), batch_size=2)

        run_to_completion(migrator)

        assert len(catalog.calls) == 3
        assert not migrator.has_items_to_update()
        for product in products:
            assert Product.objects.get(pk=product.pk).get_attribute(REMOTE_PRODUCT_ID_KEY)

    def test_backfill_with_remote_outage_terminates(self, make_product, catalog):
        for i in range(3):
            make_product(name=f'Plan {i}')
        catalog.add(responses_lib.POST, f'{BASE_URL}/products/', status=503)
        migrator = BatchMigrator(SubscriptionProductMigration(), batch_size=2)

        batches = run_to_completion(migrator)

        assert batches == 3
        assert migrator.state is MigratorState.DONE
        assert migrator.get_items_to_update_count() == 3


# ---------------------------------------------------------------------------
# Celery tasks
# ---------------------------------------------------------------------------

@pytest.mark.django_db
class TestTasks:
    def test_unknown_migration_is_rejected(self):
        with pytest.raises(ValueError, match='Unknown migration'):
            get_migrator('nope')

    def test_batch_task_enqueues_next_page(self, make_product, catalog):
        make_product()
        catalog.add(
            responses_lib.POST, f'{BASE_URL}/products/',
            json={'stripe_product_id': 'prod_1', 'stripe_price_id': 'price_1'}, status=201,
        )

        with patch('subsync.tasks.run_migration_batch.delay') as delay:
            stats = run_migration_batch('subscription_products', 0)

        assert stats == {'handled': 1, 'errors': 0, 'next_page': 0}
        delay.assert_called_once_with('subscription_products', 0)

    def test_batch_task_stops_when_done(self, db):
        with patch('subsync.tasks.run_migration_batch.delay') as delay:
            stats = run_migration_batch('subscription_products', 0)

        assert stats['next_page'] is None
        delay.assert_not_called()

    def test_schedule_pending_migrations(self, make_product):
        make_product()
        with patch('subsync.tasks.run_migration_batch.delay') as delay:
            scheduled = schedule_pending_migrations()

        assert scheduled == ['subscription_products']
        delay.assert_called_once_with('subscription_products', 0)

    def test_schedule_pending_migrations_with_empty_backlog(self, db):
        with patch('subsync.tasks.run_migration_batch.delay') as delay:
            assert schedule_pending_migrations() == []
        delay.assert_not_called()
