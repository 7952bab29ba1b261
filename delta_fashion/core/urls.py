from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, register, user_me,
    update_profile, change_password, logout,
    user_list, user_stats, user_detail, user_orders, user_wishlist, user_wishlist_item,
    admin_request_list_create, admin_request_user_status, admin_request_detail,
    admin_request_approve, admin_request_reject,
    audit_log_list, health
)

urlpatterns = [
    path('health/', health, name='health'),

    # Auth endpoints
    path('auth/register/', register, name='register'),
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/profile/', update_profile, name='user-profile'),
    path('auth/password/', change_password, name='user-password'),
    path('auth/logout/', logout, name='logout'),

    # User endpoints
    path('users/', user_list, name='user-list'),
    path('users/stats/summary/', user_stats, name='user-stats'),
    path('users/<int:pk>/', user_detail, name='user-detail'),
    path('users/<int:pk>/orders/', user_orders, name='user-orders'),
    path('users/<int:pk>/wishlist/', user_wishlist, name='user-wishlist'),
    path('users/<int:pk>/wishlist/<int:product_id>/', user_wishlist_item, name='user-wishlist-item'),

    # Admin request endpoints
    path('admin-requests/', admin_request_list_create, name='admin-request-list-create'),
    path('admin-requests/user/status/', admin_request_user_status, name='admin-request-user-status'),
    path('admin-requests/<int:pk>/', admin_request_detail, name='admin-request-detail'),
    path('admin-requests/<int:pk>/approve/', admin_request_approve, name='admin-request-approve'),
    path('admin-requests/<int:pk>/reject/', admin_request_reject, name='admin-request-reject'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
]
