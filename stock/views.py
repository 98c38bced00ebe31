import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import generics, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.ledger import LedgerError, apply_delta, lock_stock
from inventory.levels import low_stock_q
from inventory.models import Product, StoreStock
from inventory.serializers import StoreStockSerializer
from main.query_params import parse_filters
from stores.models import Store
from users.access import Action, Requester, Resource, check_access, scope_queryset
from users.mixins import AccessFilterMixin
from users.permissions import IsAdmin
from .models import StockMovement
from .serializers import StockMovementSerializer, StockAdjustmentSerializer

logger = logging.getLogger(__name__)


class StockMovementListView(AccessFilterMixin, generics.ListAPIView):
    """List stock movements in stores visible to the requester"""
    queryset = StockMovement.objects.select_related('store', 'product', 'performed_by').all()
    serializer_class = StockMovementSerializer
    permission_classes = [IsAuthenticated]
    access_resource = Resource.STOCK

    def get_queryset(self):
        queryset = super().get_queryset()
        filters = parse_filters(self.request)

        if 'store_id' in filters:
            queryset = queryset.filter(store_id=filters['store_id'])

        if 'product_id' in filters:
            queryset = queryset.filter(product_id=filters['product_id'])

        reason = self.request.query_params.get('reason', None)
        if reason:
            queryset = queryset.filter(reason=reason.upper())

        # Filter by date range
        if 'start_date' in filters:
            queryset = queryset.filter(created_at__gte=filters['start_date'])
        if 'end_date' in filters:
            queryset = queryset.filter(created_at__lte=filters['end_date'])

        return queryset


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def stock_adjustment(request):
    """
    Correct a store's stock with a compensating ledger entry.

    IN and OUT move the quantity by ``quantity``; SET moves it to exactly
    ``quantity``. Existing movements are never edited.
    """
    requester = Requester.from_request(request)
    serializer = StockAdjustmentSerializer(data=request.data)

    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    store = get_object_or_404(Store, pk=data['store_id'])
    product = get_object_or_404(Product, pk=data['product_id'])
    check_access(requester, Resource.STOCK, Action.CREATE, store)

    try:
        with transaction.atomic():
            stock = lock_stock(store, [product.pk]).get(product.pk)
            current = stock.quantity if stock else 0

            if data['adjustment_type'] == 'IN':
                delta = data['quantity']
            elif data['adjustment_type'] == 'OUT':
                delta = -data['quantity']
            else:  # SET - move to exact quantity
                delta = data['quantity'] - current

            if delta == 0:
                return Response(
                    {'error': f'Stock is already {current}'},
                    status=status.HTTP_400_BAD_REQUEST
                )

            stock = apply_delta(
                store, product, delta,
                reason=StockMovement.Reason.ADJUSTMENT,
                performed_by=request.user,
                reference=data.get('reference', ''),
                notes=data.get('notes', ''),
                stock=stock
            )
    except LedgerError as e:
        logger.warning(f"Stock adjustment rejected for {product.sku} @ store {store.pk}: {e}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    movement = StockMovement.objects.filter(store=store, product=product).first()
    logger.info(f"Stock adjusted for {product.sku} @ store {store.pk} by {request.user.email}")
    return Response({
        'message': 'Stock adjusted successfully',
        'stock': StoreStockSerializer(stock).data,
        'movement': StockMovementSerializer(movement).data
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def low_stock_products(request):
    """Get store stock rows at or below their product's minimum level"""
    requester = Requester.from_request(request)
    rows = StoreStock.objects.select_related('store', 'product').filter(low_stock_q())
    rows = scope_queryset(requester, Resource.STOCK, rows)

    filters = parse_filters(request)
    if 'store_id' in filters:
        rows = rows.filter(store_id=filters['store_id'])

    rows = rows.order_by('quantity', 'product__name')
    serializer = StoreStockSerializer(rows, many=True)
    return Response({
        'count': len(serializer.data),
        'stocks': serializer.data
    })
