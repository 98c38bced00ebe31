import logging

from django.db import transaction
from django.db.models import Prefetch, ProtectedError, Q
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from main.query_params import parse_filters
from stores.models import Store
from users.access import Requester, Resource, stock_scope
from users.mixins import AccessFilterMixin
from users.permissions import IsAdminOrReadOnly
from stock.models import StockMovement
from .ledger import apply_delta
from .levels import low_stock_q
from .models import Product, StoreStock
from .serializers import ProductSerializer, ProductCreateUpdateSerializer

logger = logging.getLogger(__name__)


def visible_stock_prefetch(requester):
    """Prefetch of a product's StoreStock rows limited to stores the requester sees."""
    rows = StoreStock.objects.select_related('store', 'product').filter(stock_scope(requester))
    return Prefetch('store_stocks', queryset=rows)


class ProductQuerysetMixin(AccessFilterMixin):
    access_resource = Resource.PRODUCT

    def get_queryset(self):
        queryset = super().get_queryset()
        return queryset.select_related('created_by').prefetch_related(
            visible_stock_prefetch(self.get_requester())
        )


class ProductListCreateView(ProductQuerysetMixin, generics.ListCreateAPIView):
    """List products visible to the requester or create new product (Admin)"""
    queryset = Product.objects.all()
    permission_classes = [IsAuthenticated, IsAdminOrReadOnly]

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return ProductCreateUpdateSerializer
        return ProductSerializer

    def get_queryset(self):
        queryset = super().get_queryset()

        # Filter by search query
        search = self.request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(
                Q(sku__icontains=search) |
                Q(name__icontains=search) |
                Q(category__icontains=search)
            )

        # Filter by category
        category = self.request.query_params.get('category', None)
        if category:
            queryset = queryset.filter(category__iexact=category)

        # Filter by store
        store_id = parse_filters(self.request).get('store_id')
        if store_id:
            queryset = queryset.filter(store_stocks__store_id=store_id)

        # Filter by low stock in any visible store
        low_stock = self.request.query_params.get('low_stock', None)
        if low_stock == 'true':
            low_rows = StoreStock.objects.filter(
                stock_scope(self.get_requester())
            ).filter(low_stock_q()).values('product_id')
            queryset = queryset.filter(id__in=low_rows)

        return queryset.distinct()

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        opening = data.pop('initial_stock', [])

        stores = Store.objects.in_bulk([row['store_id'] for row in opening])
        missing = [row['store_id'] for row in opening if row['store_id'] not in stores]
        if missing:
            return Response(
                {'error': f'Stores not found: {missing}'},
                status=status.HTTP_400_BAD_REQUEST
            )

        with transaction.atomic():
            product = Product.objects.create(created_by=request.user, **data)
            for row in opening:
                store = stores[row['store_id']]
                StoreStock.objects.create(store=store, product=product, quantity=0)
                if row['quantity'] > 0:
                    apply_delta(
                        store, product, row['quantity'],
                        reason=StockMovement.Reason.ADJUSTMENT,
                        performed_by=request.user,
                        reference=f'PRODUCT-{product.pk}',
                        notes='Opening stock'
                    )

        logger.info(f"Product {product.sku} created by {request.user.email}")
        product = self.get_queryset().get(pk=product.pk)
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)


class ProductDetailView(ProductQuerysetMixin, generics.RetrieveUpdateDestroyAPIView):
    """Retrieve, update or delete a product"""
    queryset = Product.objects.all()
    permission_classes = [IsAuthenticated, IsAdminOrReadOnly]

    def get_serializer_class(self):
        if self.request.method in ['PUT', 'PATCH']:
            return ProductCreateUpdateSerializer
        return ProductSerializer

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        instance = self.get_object()
        serializer = self.get_serializer(instance, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        product = self.get_queryset().get(pk=instance.pk)
        return Response(ProductSerializer(product).data)

    def destroy(self, request, *args, **kwargs):
        product = self.get_object()
        try:
            product.delete()
        except ProtectedError:
            return Response(
                {'error': 'Product has sales or deliveries and cannot be deleted'},
                status=status.HTTP_400_BAD_REQUEST
            )
        logger.info(f"Product {product.sku} deleted by {request.user.email}")
        return Response(status=status.HTTP_204_NO_CONTENT)
