from django.urls import path
from . import views

urlpatterns = [
    path('', views.DeliveryListCreateView.as_view(), name='delivery-list-create'),
    path('<int:pk>/', views.DeliveryDetailView.as_view(), name='delivery-detail'),
]
