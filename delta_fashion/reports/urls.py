from django.urls import path
from . import views

urlpatterns = [
    path('admin/dashboard/', views.dashboard, name='admin-dashboard'),
    path('admin/analytics/sales/', views.sales_analytics, name='admin-analytics-sales'),
    path('admin/analytics/products/', views.product_analytics, name='admin-analytics-products'),
    path('admin/analytics/customers/', views.customer_analytics, name='admin-analytics-customers'),
    path('admin/backup/', views.backup, name='admin-backup'),
    path('admin/system/health/', views.system_health, name='admin-system-health'),
]
