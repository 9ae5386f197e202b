from django.db import models, transaction

from .signals import product_trashed, product_untrashed


class Product(models.Model):
    SIMPLE = 'simple'
    VARIABLE = 'variable'
    VARIATION = 'variation'
    SUBSCRIPTION = 'subscription'
    VARIABLE_SUBSCRIPTION = 'variable-subscription'
    SUBSCRIPTION_VARIATION = 'subscription_variation'

    TYPE_CHOICES = [
        (SIMPLE, 'Simple product'),
        (VARIABLE, 'Variable product'),
        (VARIATION, 'Variation'),
        (SUBSCRIPTION, 'Simple subscription'),
        (VARIABLE_SUBSCRIPTION, 'Variable subscription'),
        (SUBSCRIPTION_VARIATION, 'Subscription variation'),
    ]
    SUBSCRIPTION_TYPES = (SUBSCRIPTION, VARIABLE_SUBSCRIPTION, SUBSCRIPTION_VARIATION)

    STATUS_PUBLISH = 'publish'
    STATUS_TRASH = 'trash'
    STATUS_CHOICES = [
        (STATUS_PUBLISH, 'Published'),
        (STATUS_TRASH, 'Trash'),
    ]

    PERIOD_CHOICES = [
        ('day', 'Day'),
        ('week', 'Week'),
        ('month', 'Month'),
        ('year', 'Year'),
    ]

    parent = models.ForeignKey(
        'self', null=True, blank=True, on_delete=models.CASCADE, related_name='variations',
    )
    product_type = models.CharField(max_length=32, choices=TYPE_CHOICES, default=SIMPLE)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    billing_period = models.CharField(max_length=10, choices=PERIOD_CHOICES, blank=True, default='')
    billing_interval = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PUBLISH)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._attributes = None
        self._pending_attributes = {}

    def __str__(self):
        return f"{self.name} (#{self.pk}, {self.product_type})"

    def is_subscription(self) -> bool:
        return self.product_type in self.SUBSCRIPTION_TYPES

    def is_trashed(self) -> bool:
        return self.status == self.STATUS_TRASH

    def is_in_catalog(self) -> bool:
        """False for trashed products and for variations of a trashed parent."""
        if self.is_trashed():
            return False
        return self.parent is None or not self.parent.is_trashed()

    def get_available_variations(self) -> list['Product']:
        """Published variations of a variable product, oldest first."""
        return list(self.variations.filter(status=self.STATUS_PUBLISH).order_by('pk'))

    # -----------------------------------------------------------------
    # Attribute store
    # -----------------------------------------------------------------

    def _load_attributes(self) -> dict:
        if self._attributes is None:
            if self.pk is None:
                self._attributes = {}
            else:
                self._attributes = dict(self.attributes.values_list('key', 'value'))
        return self._attributes

    def get_attribute(self, key: str):
        """Return the attribute value (buffered writes included) or None when absent."""
        if key in self._pending_attributes:
            return self._pending_attributes[key]
        return self._load_attributes().get(key)

    def set_attribute(self, key: str, value) -> None:
        """Buffer an attribute write until persist(). A value of None deletes the key."""
        self._pending_attributes[key] = None if value is None else str(value)

    def persist(self) -> None:
        """Save the product row and every buffered attribute in one transaction."""
        with transaction.atomic():
            self.save()
            stored = self._load_attributes()
            for key, value in self._pending_attributes.items():
                if value is None:
                    ProductAttribute.objects.filter(product=self, key=key).delete()
                    stored.pop(key, None)
                else:
                    ProductAttribute.objects.update_or_create(
                        product=self, key=key, defaults={'value': value},
                    )
                    stored[key] = value
        self._pending_attributes = {}

    def refresh_from_db(self, *args, **kwargs):
        super().refresh_from_db(*args, **kwargs)
        self._attributes = None
        self._pending_attributes = {}

    # -----------------------------------------------------------------
    # Catalog lifecycle
    # -----------------------------------------------------------------

    def trash(self) -> None:
        if self.is_trashed():
            return
        self.status = self.STATUS_TRASH
        self.save(update_fields=['status'])
        product_trashed.send(sender=type(self), product_id=self.pk)

    def untrash(self) -> None:
        if not self.is_trashed():
            return
        self.status = self.STATUS_PUBLISH
        self.save(update_fields=['status'])
        product_untrashed.send(sender=type(self), product_id=self.pk)


class ProductAttribute(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='attributes')
    key = models.CharField(max_length=64)
    value = models.TextField(blank=True, default='')

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['product', 'key'], name='unique_product_attribute'),
        ]

    def __str__(self):
        return f"{self.product_id}:{self.key}={self.value[:16]}"
