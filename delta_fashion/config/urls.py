"""
URL configuration for the Delta Fashion API.

Every app mounts its routes under api/; uploaded images are served from
/uploads/ straight out of MEDIA_ROOT.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Delta Fashion Admin Panel"
admin.site.site_title = "Delta Fashion Admin Portal"
admin.site.index_title = "Welcome to the Delta Fashion Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('delta_fashion.core.urls')),
    path('api/', include('delta_fashion.catalog.urls')),
    path('api/', include('delta_fashion.orders.urls')),
    path('api/', include('delta_fashion.banners.urls')),
    path('api/', include('delta_fashion.reports.urls')),
    re_path(r'^uploads/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
