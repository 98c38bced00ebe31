from django.urls import path
from . import views

urlpatterns = [
    path('stores/<int:store_id>/transactions/', views.StoreTransactionListCreateView.as_view(), name='store-transactions'),
    path('transactions/', views.TransactionListView.as_view(), name='transaction-list'),
    path('transactions/<int:pk>/', views.TransactionDetailView.as_view(), name='transaction-detail'),
    path('transactions/summary/', views.sales_summary, name='sales-summary'),
    path('transactions/top-products/', views.top_selling_products, name='top-selling-products'),
]
