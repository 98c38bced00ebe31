from django.conf import settings
from django.db import models
from inventory.models import Product


class StockMovement(models.Model):
    """Append-only history of every ledger delta"""

    class Reason(models.TextChoices):
        SALE = 'SALE', 'Sale'
        DELIVERY = 'DELIVERY', 'Delivery'
        ADJUSTMENT = 'ADJUSTMENT', 'Adjustment'

    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='stock_movements')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='stock_movements')
    delta = models.IntegerField(help_text='Signed quantity change')
    quantity_before = models.IntegerField()
    quantity_after = models.IntegerField()
    reason = models.CharField(max_length=20, choices=Reason.choices)
    reference = models.CharField(
        max_length=100,
        blank=True,
        default='',
        help_text='Sale, delivery or adjustment reference'
    )
    notes = models.TextField(blank=True, default='')
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='stock_movements'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'stock_movements'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['store', 'product'], name='stock_mov_store_prod_idx'),
            models.Index(fields=['-created_at'], name='stock_mov_created_idx'),
        ]

    def __str__(self):
        return f"{self.get_reason_display()} {self.delta:+d} {self.product.sku} @ {self.store.name}"
