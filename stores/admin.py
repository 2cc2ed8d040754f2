"""
Stores — Django Admin Configuration

@file stores/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import Store


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ('code', 'name', 'role_badge', 'is_active', 'created_at')
    list_filter = ('role', 'is_active')
    search_fields = ('code', 'name', 'address')
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')
    list_per_page = 50

    @admin.display(description=_('Role'))
    def role_badge(self, obj):
        color = '#2563eb' if obj.is_hub else '#6b7280'
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 8px;'
            'border-radius:4px;font-size:11px;font-weight:600;">{}</span>',
            color, obj.get_role_display(),
        )
