from django.urls import path
from .views import banner_list_create, banner_detail, banner_toggle

urlpatterns = [
    path('banners/', banner_list_create, name='banner-list-create'),
    path('banners/<int:pk>/', banner_detail, name='banner-detail'),
    path('banners/<int:pk>/toggle/', banner_toggle, name='banner-toggle'),
]
