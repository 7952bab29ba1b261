from django.urls import path
from .views import (
    order_list_create, order_stats, guest_order_lookup, order_by_number,
    order_detail, order_status_update, order_cancel
)

urlpatterns = [
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/stats/summary/', order_stats, name='order-stats'),
    path('orders/guest/<str:order_number>/<str:email>/', guest_order_lookup, name='order-guest-lookup'),
    path('orders/number/<str:order_number>/', order_by_number, name='order-by-number'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('orders/<int:pk>/status/', order_status_update, name='order-status-update'),
    path('orders/<int:pk>/cancel/', order_cancel, name='order-cancel'),
]
