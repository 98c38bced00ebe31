from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator, MinLengthValidator
from django.db import models
from decimal import Decimal

from .levels import is_low_stock, stock_status


sku_validator = RegexValidator(
    regex=r'^[A-Za-z0-9\-_]+$',
    message='SKU can only contain letters, numbers, hyphens, and underscores'
)


class Product(models.Model):
    """
    Product catalog shared by every store.

    A product carries no stock counter of its own; quantities live in the
    per-store StoreStock rows and the product-level figure is their sum.
    """

    sku = models.CharField(
        max_length=50,
        unique=True,
        validators=[MinLengthValidator(3), sku_validator],
        help_text='Stock Keeping Unit'
    )
    name = models.CharField(max_length=100, validators=[MinLengthValidator(2)])
    description = models.CharField(max_length=500, blank=True, null=True)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00')), MaxValueValidator(Decimal('1000000'))]
    )
    min_stock_level = models.IntegerField(
        default=10,
        validators=[MinValueValidator(0)],
        help_text='Alert when store stock falls to or below this level'
    )
    category = models.CharField(
        max_length=50,
        blank=True,
        null=True,
        validators=[MinLengthValidator(2)]
    )
    expiry_date = models.DateField(blank=True, null=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_products'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['category'], name='products_category_idx'),
        ]

    def __str__(self):
        return f"{self.sku} - {self.name}"


class StoreStock(models.Model):
    """Ledger entry: quantity of one product held by one store."""

    store = models.ForeignKey('stores.Store', on_delete=models.CASCADE, related_name='stocks')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='store_stocks')
    quantity = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'store_stocks'
        ordering = ['store', 'product__name']
        constraints = [
            models.UniqueConstraint(fields=['store', 'product'], name='unique_store_product_stock'),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0),
                name='store_stock_quantity_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.store.name}: {self.product.sku} x {self.quantity}"

    @property
    def is_low_stock(self):
        return is_low_stock(self.quantity, self.product.min_stock_level)

    @property
    def stock_status(self):
        return stock_status(self.quantity, self.product.min_stock_level)
