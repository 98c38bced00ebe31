from rest_framework import generics, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from main.query_params import parse_filters
from stores.models import Store
from users.access import Resource, scope_queryset
from users.mixins import AccessFilterMixin
from users.permissions import IsSalesOrReadOnly
from .models import Delivery
from .serializers import DeliverySerializer, DeliveryCreateSerializer, DeliveryUpdateSerializer
from .services import DeliveryStateError, create_delivery, update_delivery, delete_delivery


class DeliveryQuerysetMixin(AccessFilterMixin):
    queryset = Delivery.objects.select_related('salesman', 'store').prefetch_related('items__product').all()
    permission_classes = [IsAuthenticated, IsSalesOrReadOnly]
    access_resource = Resource.DELIVERY


class DeliveryListCreateView(DeliveryQuerysetMixin, generics.ListCreateAPIView):
    """List deliveries visible to the requester or create a new delivery (Sales)"""

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return DeliveryCreateSerializer
        return DeliverySerializer

    def get_queryset(self):
        queryset = super().get_queryset()

        delivery_status = self.request.query_params.get('status', None)
        if delivery_status:
            queryset = queryset.filter(status=delivery_status.upper())

        store_id = parse_filters(self.request).get('store_id')
        if store_id:
            queryset = queryset.filter(store_id=store_id)

        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        # Unknown stores answer like unassigned ones
        stores = scope_queryset(self.get_requester(), Resource.STORE, Store.objects.all())
        store = stores.filter(pk=data['store_id']).first()
        if store is None:
            raise PermissionDenied('Deliveries can only be created for your assigned stores')

        try:
            delivery = create_delivery(
                self.get_requester(), store, data['items'], notes=data.get('notes')
            )
        except DeliveryStateError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        delivery = self.queryset.get(pk=delivery.pk)
        return Response(DeliverySerializer(delivery).data, status=status.HTTP_201_CREATED)


class DeliveryDetailView(DeliveryQuerysetMixin, generics.RetrieveUpdateDestroyAPIView):
    """Retrieve, update or delete a delivery"""
    http_method_names = ['get', 'patch', 'delete', 'head', 'options']

    def get_serializer_class(self):
        if self.request.method == 'PATCH':
            return DeliveryUpdateSerializer
        return DeliverySerializer

    def partial_update(self, request, *args, **kwargs):
        delivery = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            delivery = update_delivery(
                self.get_requester(),
                delivery,
                status=serializer.validated_data.get('status'),
                notes=serializer.validated_data.get('notes')
            )
        except DeliveryStateError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        delivery = self.queryset.get(pk=delivery.pk)
        return Response(DeliverySerializer(delivery).data)

    def destroy(self, request, *args, **kwargs):
        delivery = self.get_object()
        try:
            delete_delivery(self.get_requester(), delivery)
        except DeliveryStateError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)
