from django.urls import path
from . import views

urlpatterns = [
    # Self-service registration
    path('register/', views.register_view, name='register'),

    # User management
    path('users/', views.UserListCreateView.as_view(), name='user-list-create'),
    path('users/<int:pk>/', views.UserDetailView.as_view(), name='user-detail'),
]
