from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Store(models.Model):
    """
    A retail outlet in the network.

    Stores are registered by staff and start out PENDING_APPROVAL until an
    admin activates them. Sales users only see the stores they are assigned
    to through StoreStaff.
    """

    class Type(models.TextChoices):
        RETAIL = 'RETAIL', 'Retail'
        WHOLESALE = 'WHOLESALE', 'Wholesale'
        SUPERMARKET = 'SUPERMARKET', 'Supermarket'
        MINIMARKET = 'MINIMARKET', 'Minimarket'
        TRADITIONAL = 'TRADITIONAL', 'Traditional'

    class Status(models.TextChoices):
        PENDING_APPROVAL = 'PENDING_APPROVAL', 'Pending Approval'
        ACTIVE = 'ACTIVE', 'Active'
        INACTIVE = 'INACTIVE', 'Inactive'

    name = models.CharField(max_length=255)
    owner_name = models.CharField(max_length=255)
    owner_phone = models.CharField(max_length=30)
    owner_email = models.EmailField(blank=True, null=True)
    address = models.TextField()
    city = models.CharField(max_length=100)
    province = models.CharField(max_length=100)
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.RETAIL)
    notes = models.TextField(blank=True, null=True)
    latitude = models.FloatField(
        validators=[MinValueValidator(-90), MaxValueValidator(90)]
    )
    longitude = models.FloatField(
        validators=[MinValueValidator(-180), MaxValueValidator(180)]
    )
    photo_url = models.CharField(max_length=500, blank=True, null=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING_APPROVAL
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_stores'
    )
    staff = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='StoreStaff',
        related_name='assigned_stores',
        blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'stores'
        ordering = ['name']
        indexes = [
            models.Index(fields=['status'], name='stores_status_idx'),
            models.Index(fields=['city'], name='stores_city_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.city})"

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE


class StoreStaff(models.Model):
    """Assignment of a user to a store."""
    store = models.ForeignKey(Store, on_delete=models.CASCADE, related_name='staff_assignments')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='store_assignments'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'store_staff'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['store', 'user'], name='unique_store_staff'),
        ]

    def __str__(self):
        return f"{self.user} @ {self.store.name}"
