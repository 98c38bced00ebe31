from django.urls import path
from . import views

urlpatterns = [
    path('adjust/', views.stock_adjustment, name='stock-adjustment'),
    path('movements/', views.StockMovementListView.as_view(), name='stock-movement-list'),
    path('low-stock/', views.low_stock_products, name='low-stock-products'),
]
