from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from inventory.models import Product


class Delivery(models.Model):
    """Shipment of products to a store, created by a salesperson"""

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        IN_TRANSIT = 'IN_TRANSIT', 'In Transit'
        DELIVERED = 'DELIVERED', 'Delivered'
        CANCELLED = 'CANCELLED', 'Cancelled'

    salesman = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='deliveries'
    )
    store = models.ForeignKey('stores.Store', on_delete=models.PROTECT, related_name='deliveries')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    notes = models.TextField(blank=True, null=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'deliveries'
        ordering = ['-created_at', '-id']
        verbose_name_plural = 'Deliveries'
        indexes = [
            models.Index(fields=['status'], name='deliveries_status_idx'),
            models.Index(fields=['salesman'], name='deliveries_salesman_idx'),
        ]

    def __str__(self):
        return f"DELIVERY-{self.pk} to {self.store.name} ({self.get_status_display()})"

    @property
    def reference(self):
        return f"DELIVERY-{self.pk}"


class DeliveryItem(models.Model):
    delivery = models.ForeignKey(Delivery, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='delivery_items')
    quantity = models.IntegerField(validators=[MinValueValidator(1)])

    class Meta:
        db_table = 'delivery_items'
        ordering = ['id']

    def __str__(self):
        return f"{self.product.name} x {self.quantity}"
