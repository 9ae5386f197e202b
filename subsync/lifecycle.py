from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional

from .scheduler import UpdateScheduler

_active_scheduler: ContextVar[Optional[UpdateScheduler]] = ContextVar(
    'subsync_active_scheduler', default=None,
)


def current_scheduler() -> Optional[UpdateScheduler]:
    """The scheduler of the innermost running sync lifecycle, if any."""
    return _active_scheduler.get()


@contextmanager
def sync_lifecycle(service=None):
    """
    Scope one request, task or command.

    Product saves inside the block are scheduled on the yielded scheduler,
    which is flushed exactly once when the block exits, also on error.
    """
    scheduler = UpdateScheduler(service)
    token = _active_scheduler.set(scheduler)
    try:
        yield scheduler
    finally:
        _active_scheduler.reset(token)
        try:
            scheduler.create_or_update_products()
        finally:
            scheduler.close()
