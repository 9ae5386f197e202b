from django.dispatch import Signal

# Sent with ``product_id`` after a product has been moved to / restored from the trash.
product_trashed = Signal()
product_untrashed = Signal()
