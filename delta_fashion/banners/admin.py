from django.contrib import admin
from .models import Banner


@admin.register(Banner)
class BannerAdmin(admin.ModelAdmin):
    list_display = ['title', 'order', 'is_active', 'position', 'start_date', 'end_date', 'created_at']
    list_filter = ['is_active', 'position', 'created_at']
    search_fields = ['title', 'subtitle']
    ordering = ['order', '-created_at']
