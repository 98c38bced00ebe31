"""
Access filter for role-scoped data visibility.

Every view builds a ``Requester`` from the authenticated request and asks this
module two kinds of questions:

- which rows of a resource the requester may list (``scope_queryset``), and
- whether the requester may perform an action on one object
  (``check_access``).

Rules:
- ADMIN: unrestricted on products, stores, users and stock adjustments;
  reads every sale and delivery.
- SALES: sees stores they are assigned to, products stocked in those stores,
  the sales they recorded in those stores and the deliveries they created.
  Records sales and deliveries only for assigned stores and mutates only
  their own deliveries.
"""
from dataclasses import dataclass

from django.db.models import Q
from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from users.models import User


class Resource:
    STORE = 'STORE'
    PRODUCT = 'PRODUCT'
    SALE = 'SALE'
    DELIVERY = 'DELIVERY'
    USER = 'USER'
    STOCK = 'STOCK'


class Action:
    READ = 'READ'
    CREATE = 'CREATE'
    UPDATE = 'UPDATE'
    DELETE = 'DELETE'
    APPROVE = 'APPROVE'


@dataclass(frozen=True)
class Requester:
    """Identity and role of whoever issued the current request."""
    user_id: int
    role: str

    @classmethod
    def from_user(cls, user):
        return cls(user_id=user.pk, role=user.role)

    @classmethod
    def from_request(cls, request):
        user = getattr(request, 'user', None)
        if user is None or not user.is_authenticated:
            raise NotAuthenticated()
        return cls.from_user(user)

    @property
    def is_admin(self):
        return self.role == User.Role.ADMIN

    @property
    def is_sales(self):
        return self.role == User.Role.SALES


def assigned_store_ids(requester):
    """Subquery of store ids the requester is assigned to."""
    from stores.models import StoreStaff
    return StoreStaff.objects.filter(user_id=requester.user_id).values('store_id')


def is_assigned(requester, store):
    from stores.models import StoreStaff
    store_id = getattr(store, 'pk', store)
    return StoreStaff.objects.filter(store_id=store_id, user_id=requester.user_id).exists()


# ============== List predicates ==============

def store_scope(requester):
    if requester.is_admin:
        return Q()
    return Q(id__in=assigned_store_ids(requester))


def product_scope(requester):
    if requester.is_admin:
        return Q()
    from inventory.models import StoreStock
    stocked = StoreStock.objects.filter(
        store_id__in=assigned_store_ids(requester)
    ).values('product_id')
    return Q(id__in=stocked)


def sale_scope(requester):
    if requester.is_admin:
        return Q()
    return Q(user_id=requester.user_id, store_id__in=assigned_store_ids(requester))


def delivery_scope(requester):
    if requester.is_admin:
        return Q()
    return Q(salesman_id=requester.user_id)


def stock_scope(requester):
    if requester.is_admin:
        return Q()
    return Q(store_id__in=assigned_store_ids(requester))


def user_scope(requester):
    if requester.is_admin:
        return Q()
    return Q(pk=requester.user_id)


SCOPES = {
    Resource.STORE: store_scope,
    Resource.PRODUCT: product_scope,
    Resource.SALE: sale_scope,
    Resource.DELIVERY: delivery_scope,
    Resource.STOCK: stock_scope,
    Resource.USER: user_scope,
}


def scope_queryset(requester, resource, queryset):
    """Restrict ``queryset`` to the rows of ``resource`` visible to ``requester``."""
    if requester.is_admin:
        return queryset
    return queryset.filter(SCOPES[resource](requester))


# ============== Object decisions ==============

def _store_decision(requester, action, store):
    if action == Action.CREATE:
        return True, None
    if action == Action.READ:
        if requester.is_admin or is_assigned(requester, store):
            return True, None
        return False, "You don't have access to this store"
    if requester.is_admin:
        return True, None
    return False, 'Only admins can modify stores'


def _product_decision(requester, action, product):
    if requester.is_admin:
        return True, None
    if action == Action.READ:
        if product is None:
            return True, None
        from inventory.models import StoreStock
        visible = StoreStock.objects.filter(
            product=product,
            store_id__in=assigned_store_ids(requester)
        ).exists()
        if visible:
            return True, None
        return False, "You don't have access to this product"
    return False, 'Only admins can modify products'


def _sale_decision(requester, action, obj):
    if action == Action.CREATE:
        # obj is the store the sale is recorded against
        if not requester.is_sales:
            return False, 'Only sales users can create transactions'
        if not is_assigned(requester, obj):
            return False, 'You are not assigned to this store'
        return True, None
    if action == Action.READ:
        if requester.is_admin:
            return True, None
        if obj is None:
            return True, None
        if obj.user_id == requester.user_id and is_assigned(requester, obj.store_id):
            return True, None
        return False, "You don't have access to this transaction"
    return False, 'Sales cannot be modified once recorded'


def _delivery_decision(requester, action, obj):
    if action == Action.CREATE:
        # obj is the destination store
        if not requester.is_sales:
            return False, 'Only sales users can create deliveries'
        if not is_assigned(requester, obj):
            return False, 'You are not assigned to this store'
        return True, None
    if action == Action.READ:
        if requester.is_admin or obj is None or obj.salesman_id == requester.user_id:
            return True, None
        return False, "You don't have access to this delivery"
    if requester.is_sales and obj.salesman_id == requester.user_id:
        return True, None
    return False, 'Only the salesman who created this delivery can modify it'


def _user_decision(requester, action, obj):
    if requester.is_admin:
        return True, None
    if action == Action.READ and obj is not None and obj.pk == requester.user_id:
        return True, None
    return False, 'Only admins can manage users'


def _stock_decision(requester, action, obj):
    if requester.is_admin:
        return True, None
    if action == Action.READ:
        if obj is None or is_assigned(requester, obj):
            return True, None
        return False, "You don't have access to this store"
    return False, 'Only admins can adjust stock'


DECISIONS = {
    Resource.STORE: _store_decision,
    Resource.PRODUCT: _product_decision,
    Resource.SALE: _sale_decision,
    Resource.DELIVERY: _delivery_decision,
    Resource.USER: _user_decision,
    Resource.STOCK: _stock_decision,
}


def can_access(requester, resource, action, obj=None):
    allowed, _ = DECISIONS[resource](requester, action, obj)
    return allowed


def check_access(requester, resource, action, obj=None):
    """Raise PermissionDenied unless ``requester`` may perform ``action``.

    For CREATE on sales, deliveries and stock, ``obj`` is the store the new
    record belongs to.
    """
    allowed, message = DECISIONS[resource](requester, action, obj)
    if not allowed:
        raise PermissionDenied(message)
