from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal
from inventory.models import Product


class Sale(models.Model):
    """Point-of-sale transaction recorded by a salesperson at a store"""

    class Status(models.TextChoices):
        COMPLETED = 'COMPLETED', 'Completed'

    store = models.ForeignKey('stores.Store', on_delete=models.PROTECT, related_name='sales')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='sales',
        help_text='Salesperson who recorded the sale'
    )
    total = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.COMPLETED)
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'sales'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['store', '-created_at'], name='sales_store_created_idx'),
            models.Index(fields=['user'], name='sales_user_idx'),
        ]

    def __str__(self):
        return f"SALE-{self.pk} {self.store.name} ({self.total})"

    @property
    def reference(self):
        return f"SALE-{self.pk}"

    def calculate_total(self):
        return sum((item.line_total for item in self.items.all()), Decimal('0.00'))


class SaleItem(models.Model):
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='sale_items')
    quantity = models.IntegerField(validators=[MinValueValidator(1)])
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text='Unit price at the time of sale'
    )

    class Meta:
        db_table = 'sale_items'
        ordering = ['id']

    def __str__(self):
        return f"{self.product.name} x {self.quantity}"

    @property
    def line_total(self):
        return self.price * self.quantity
