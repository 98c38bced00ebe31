from django.urls import path
from rest_framework.routers import DefaultRouter
from .views import StoreViewSet, upload_image

router = DefaultRouter()
router.register(r'stores', StoreViewSet, basename='store')

urlpatterns = [
    path('upload/', upload_image, name='upload'),
] + router.urls
