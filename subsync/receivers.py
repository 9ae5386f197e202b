import logging

from celery.signals import task_postrun, task_prerun
from django.db.models.signals import post_save
from django.dispatch import receiver

from .lifecycle import current_scheduler, sync_lifecycle
from .models import Product
from .product_service import ProductService
from .signals import product_trashed, product_untrashed

logger = logging.getLogger(__name__)

# Lifecycles opened for running Celery tasks, keyed by task id.
_task_lifecycles = {}


def _service():
    scheduler = current_scheduler()
    if scheduler is not None:
        return scheduler.service
    return ProductService()


@receiver(post_save, sender=Product, dispatch_uid='subsync_schedule_product_sync')
def schedule_product_sync(sender, instance, raw=False, **kwargs):
    if raw or instance.is_trashed():
        return

    scheduler = current_scheduler()
    if scheduler is None:
        logger.debug("Product %s saved outside a sync lifecycle – not scheduled.", instance.pk)
        return
    if scheduler.is_writing_metadata:
        return

    scheduler.maybe_schedule_product_create_or_update(instance.pk, instance)


@receiver(product_trashed, dispatch_uid='subsync_archive_product')
def archive_trashed_product(sender, product_id, **kwargs):
    _service().maybe_archive_product(product_id)


@receiver(product_untrashed, dispatch_uid='subsync_unarchive_product')
def unarchive_restored_product(sender, product_id, **kwargs):
    _service().maybe_unarchive_product(product_id)


@task_prerun.connect(dispatch_uid='subsync_open_task_lifecycle')
def open_task_lifecycle(task_id=None, **kwargs):
    lifecycle = sync_lifecycle()
    lifecycle.__enter__()
    _task_lifecycles[task_id] = lifecycle


@task_postrun.connect(dispatch_uid='subsync_close_task_lifecycle')
def close_task_lifecycle(task_id=None, **kwargs):
    lifecycle = _task_lifecycles.pop(task_id, None)
    if lifecycle is not None:
        lifecycle.__exit__(None, None, None)
