"""
View mixins applying the access filter uniformly.
"""
from users.access import Action, Requester, check_access, scope_queryset


METHOD_ACTIONS = {
    'GET': Action.READ,
    'HEAD': Action.READ,
    'OPTIONS': Action.READ,
    'POST': Action.CREATE,
    'PUT': Action.UPDATE,
    'PATCH': Action.UPDATE,
    'DELETE': Action.DELETE,
}


class AccessFilterMixin:
    """
    Mixin for scoping querysets and object access by requester role.

    Usage:
        class ProductListCreateView(AccessFilterMixin, generics.ListCreateAPIView):
            queryset = Product.objects.all()
            access_resource = Resource.PRODUCT

    The mixin will:
    1. Filter list requests to the rows visible to the requester
    2. Look single objects up unscoped, so a missing id is a 404 while an
       existing but forbidden object is a 403
    3. Run the object-level access decision for the request method
    """

    access_resource = None

    def get_requester(self):
        if not hasattr(self, '_requester'):
            self._requester = Requester.from_request(self.request)
        return self._requester

    def get_access_action(self):
        return METHOD_ACTIONS.get(self.request.method, Action.READ)

    def is_detail_request(self):
        lookup_url_kwarg = getattr(self, 'lookup_url_kwarg', None) or getattr(self, 'lookup_field', 'pk')
        return lookup_url_kwarg in self.kwargs

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.is_detail_request():
            return queryset
        return scope_queryset(self.get_requester(), self.access_resource, queryset)

    def get_object(self):
        obj = super().get_object()
        check_access(self.get_requester(), self.access_resource, self.get_access_action(), obj)
        return obj
