import logging

from celery import shared_task

from .migrator import MIGRATIONS, get_migrator

logger = logging.getLogger(__name__)


@shared_task(bind=True, name='subsync.run_migration_batch')
def run_migration_batch(self, migration_name: str, page: int = 0):
    """
    Run one batch of a background catalog migration.

    Steps:
      1. Fetch one page of items the migration still has to handle.
      2. Hand each item to the migration (failures are logged, not fatal).
      3. Enqueue the next batch unless the page came back empty.
    """
    migrator = get_migrator(migration_name)
    logger.info("Starting '%s' migration batch (page %d).", migration_name, page)

    stats = migrator.process_batch(page)

    if stats['next_page'] is not None:
        migrator.schedule_updates(stats['next_page'])
    return stats


@shared_task(name='subsync.schedule_pending_migrations')
def schedule_pending_migrations():
    """Kick off every registered migration that still has a backlog."""
    scheduled = []
    for name in MIGRATIONS:
        migrator = get_migrator(name)
        if migrator.has_items_to_update():
            migrator.schedule_updates()
            scheduled.append(name)
        else:
            logger.debug("Migration '%s' has nothing to do.", name)
    return scheduled
