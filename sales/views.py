import logging
from datetime import timedelta

from django.db.models import Count, F, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.ledger import LedgerError
from main.query_params import ReportFilterSerializer, parse_filters
from stores.models import Store
from users.access import Action, Requester, Resource, check_access, scope_queryset
from users.mixins import AccessFilterMixin
from .models import Sale, SaleItem
from .serializers import SaleSerializer, SaleCreateSerializer
from .services import SaleError, record_sale

logger = logging.getLogger(__name__)


def filter_sales(queryset, filters):
    # Filter by date range
    if 'start_date' in filters:
        queryset = queryset.filter(created_at__gte=filters['start_date'])
    if 'end_date' in filters:
        queryset = queryset.filter(created_at__lte=filters['end_date'])

    if 'user_id' in filters:
        queryset = queryset.filter(user_id=filters['user_id'])

    return queryset


class StoreTransactionListCreateView(AccessFilterMixin, generics.ListCreateAPIView):
    """List a store's sales or record a new sale at that store"""
    queryset = Sale.objects.select_related('store', 'user').prefetch_related('items__product').all()
    permission_classes = [IsAuthenticated]
    access_resource = Resource.SALE

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return SaleCreateSerializer
        return SaleSerializer

    def get_store(self):
        if not hasattr(self, '_store'):
            self._store = get_object_or_404(Store, pk=self.kwargs['store_id'])
        return self._store

    def get_queryset(self):
        store = self.get_store()
        check_access(self.get_requester(), Resource.STORE, Action.READ, store)
        queryset = super().get_queryset().filter(store=store)
        return filter_sales(queryset, parse_filters(self.request))

    def create(self, request, *args, **kwargs):
        store = self.get_store()
        check_access(self.get_requester(), Resource.SALE, Action.CREATE, store)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            sale = record_sale(
                self.get_requester(),
                store,
                serializer.validated_data['items'],
                notes=serializer.validated_data.get('notes')
            )
        except (SaleError, LedgerError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        sale = self.queryset.get(pk=sale.pk)
        return Response(SaleSerializer(sale).data, status=status.HTTP_201_CREATED)


class TransactionListView(AccessFilterMixin, generics.ListAPIView):
    """List all sales visible to the requester"""
    queryset = Sale.objects.select_related('store', 'user').prefetch_related('items__product').all()
    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated]
    access_resource = Resource.SALE

    def get_queryset(self):
        queryset = super().get_queryset()
        filters = parse_filters(self.request)

        if 'store_id' in filters:
            queryset = queryset.filter(store_id=filters['store_id'])

        return filter_sales(queryset, filters)


class TransactionDetailView(AccessFilterMixin, generics.RetrieveAPIView):
    """Retrieve a sale"""
    queryset = Sale.objects.select_related('store', 'user').prefetch_related('items__product').all()
    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated]
    access_resource = Resource.SALE


def period_start(period):
    now = timezone.now()
    if period == 'week':
        return now - timedelta(days=7)
    if period == 'month':
        return now - timedelta(days=30)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_summary(request):
    """Get sales summary statistics"""
    requester = Requester.from_request(request)
    filters = parse_filters(request, ReportFilterSerializer)

    # today, week, month
    period = filters.get('period', 'today')
    start_date = period_start(period)

    sales = scope_queryset(requester, Resource.SALE, Sale.objects.filter(created_at__gte=start_date))
    if 'store_id' in filters:
        sales = sales.filter(store_id=filters['store_id'])

    totals = sales.aggregate(
        count=Count('id'),
        total_amount=Sum('total')
    )

    return Response({
        'period': period,
        'total_sales_count': totals['count'] or 0,
        'total_revenue': float(totals['total_amount'] or 0),
        'start_date': start_date,
        'end_date': timezone.now()
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def top_selling_products(request):
    """Get top-selling products"""
    requester = Requester.from_request(request)
    filters = parse_filters(request, ReportFilterSerializer)
    limit = filters.get('limit', 10)
    start_date = period_start(filters.get('period', 'month'))

    sales = scope_queryset(requester, Resource.SALE, Sale.objects.filter(created_at__gte=start_date))
    if 'store_id' in filters:
        sales = sales.filter(store_id=filters['store_id'])

    top_products = (
        SaleItem.objects.filter(sale__in=sales)
        .values('product__id', 'product__name', 'product__sku')
        .annotate(
            total_quantity=Sum('quantity'),
            total_revenue=Sum(F('price') * F('quantity'))
        )
        .order_by('-total_quantity')[:limit]
    )

    return Response(list(top_products))
