import hashlib
import logging
import time

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db.models import Count, Max, ProtectedError
from django.utils import timezone
from PIL import Image, UnidentifiedImageError
from rest_framework import viewsets, filters, status
from rest_framework.decorators import action, api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from inventory.levels import low_stock_q
from sales.models import Sale
from users.access import Action, Resource, check_access, scope_queryset
from users.mixins import AccessFilterMixin
from .models import Store, StoreStaff
from .serializers import (
    StoreSerializer, StoreDetailSerializer, StoreCreateSerializer, StoreUpdateSerializer
)

logger = logging.getLogger(__name__)


class StoreViewSet(AccessFilterMixin, viewsets.ModelViewSet):
    queryset = Store.objects.all()
    permission_classes = [IsAuthenticated]
    access_resource = Resource.STORE
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['name', 'owner_name', 'owner_phone', 'address', 'city', 'province']
    ordering_fields = ['name', 'city', 'created_at']
    ordering = ['name']

    def get_serializer_class(self):
        if self.action == 'create':
            return StoreCreateSerializer
        if self.action in ['update', 'partial_update']:
            return StoreUpdateSerializer
        if self.action == 'retrieve':
            return StoreDetailSerializer
        return StoreSerializer

    def get_queryset(self):
        queryset = super().get_queryset().annotate(
            total_products=Count('stocks', distinct=True),
            total_sales=Count('sales', distinct=True),
            last_sale=Max('sales__created_at'),
            low_stock=Count('stocks', filter=low_stock_q('stocks__'), distinct=True),
        )

        if self.action == 'retrieve':
            queryset = queryset.prefetch_related('staff_assignments__user')

        store_status = self.request.query_params.get('status', None)
        if store_status:
            queryset = queryset.filter(status=store_status.upper())

        store_type = self.request.query_params.get('type', None)
        if store_type:
            queryset = queryset.filter(type=store_type.upper())

        city = self.request.query_params.get('city', None)
        if city:
            queryset = queryset.filter(city__iexact=city)

        return queryset

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.action == 'retrieve' and 'pk' in self.kwargs:
            sales = Sale.objects.filter(store_id=self.kwargs['pk'])
            sales = scope_queryset(self.get_requester(), Resource.SALE, sales)
            context['recent_sales'] = sales.select_related('store', 'user').prefetch_related('items__product')[:5]
        return context

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        store = serializer.save(status=Store.Status.PENDING_APPROVAL)
        StoreStaff.objects.create(store=store, user=request.user)
        logger.info(f"Store {store.name} registered by {request.user.email}")

        store = self.get_queryset().get(pk=store.pk)
        return Response(StoreSerializer(store).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        store = self.get_object()
        serializer = self.get_serializer(store, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        new_status = serializer.validated_data.get('status')
        extra = {}
        if new_status and new_status != store.status:
            check_access(self.get_requester(), Resource.STORE, Action.APPROVE, store)
            if new_status == Store.Status.ACTIVE:
                extra = {'approved_at': timezone.now(), 'approved_by': request.user}
            logger.info(f"Store {store.pk} status {store.status} -> {new_status} by {request.user.email}")

        serializer.save(**extra)
        store = self.get_queryset().get(pk=store.pk)
        return Response(StoreSerializer(store).data)

    def destroy(self, request, *args, **kwargs):
        store = self.get_object()
        try:
            store.delete()
        except ProtectedError:
            return Response(
                {'error': 'Store has sales or deliveries and cannot be deleted'},
                status=status.HTTP_400_BAD_REQUEST
            )
        logger.info(f"Store {store.name} deleted by {request.user.email}")
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['get'])
    def inventory(self, request, pk=None):
        """Current stock of every product in the store with its latest sales"""
        store = self.get_object()
        requester = self.get_requester()
        rows = store.stocks.select_related('product').order_by('product__name')

        inventory = []
        for row in rows:
            sales = Sale.objects.filter(store=store, items__product=row.product)
            sales = scope_queryset(requester, Resource.SALE, sales).select_related('user')
            recent = []
            for sale in sales.order_by('-created_at', '-id').distinct()[:3]:
                item = sale.items.filter(product=row.product).first()
                recent.append({
                    'id': sale.id,
                    'created_at': sale.created_at,
                    'user': sale.user.email,
                    'quantity': item.quantity,
                    'price': str(item.price),
                })
            inventory.append({
                'product': {
                    'id': row.product.id,
                    'sku': row.product.sku,
                    'name': row.product.name,
                    'price': str(row.product.price),
                    'category': row.product.category,
                },
                'current_stock': row.quantity,
                'min_stock_level': row.product.min_stock_level,
                'is_low_stock': row.is_low_stock,
                'stock_status': row.stock_status,
                'sales': recent,
            })

        return Response({'store': store.id, 'inventory': inventory})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def upload_image(request):
    """Store an uploaded image and return its URL"""
    upload = request.FILES.get('file')
    if upload is None:
        return Response({'error': 'No file uploaded'}, status=status.HTTP_400_BAD_REQUEST)

    if not (upload.content_type or '').startswith('image/'):
        return Response({'error': 'Invalid file type'}, status=status.HTTP_400_BAD_REQUEST)

    if upload.size > settings.UPLOAD_MAX_BYTES:
        return Response({'error': 'File too large'}, status=status.HTTP_400_BAD_REQUEST)

    content = upload.read()
    try:
        upload.seek(0)
        Image.open(upload).verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        return Response({'error': 'File is not a valid image'}, status=status.HTTP_400_BAD_REQUEST)

    file_hash = hashlib.sha256(content).hexdigest()[:8]
    ext = upload.name.rsplit('.', 1)[-1].lower() if '.' in upload.name else ''
    if not ext.isalnum():
        ext = 'bin'
    filename = f"{settings.UPLOAD_DIR}/{file_hash}-{int(time.time() * 1000)}.{ext}"

    saved = default_storage.save(filename, ContentFile(content))
    logger.info(f"Stored upload {saved} ({upload.size} bytes) for {request.user.email}")
    return Response({'url': default_storage.url(saved)}, status=status.HTTP_201_CREATED)
