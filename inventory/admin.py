"""
Inventory — Django Admin Configuration

Read-only: validation must go through InventaireService so that the
count adjustments are written with the status change.

@file inventory/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import Inventaire, InventaireLine


class InventaireLineInline(admin.TabularInline):
    model = InventaireLine
    extra = 0
    can_delete = False
    fields = (
        'product', 'theoretical_qty', 'physical_qty', 'variance',
        'variance_value', 'severity', 'comment',
    )
    readonly_fields = fields


@admin.register(Inventaire)
class InventaireAdmin(admin.ModelAdmin):
    list_display = (
        'numero', 'store', 'count_date', 'status_badge',
        'total_variance', 'variance_value', 'submitted_at',
    )
    list_filter = ('status', 'store')
    search_fields = ('numero',)
    readonly_fields = (
        'id', 'numero', 'store', 'count_date', 'status', 'comment', 'version',
        'submitted_at', 'submitted_by', 'validated_at', 'validated_by',
        'rejected_at', 'rejected_by', 'rejection_reason', 'resubmission_of',
        'total_variance', 'variance_value', 'created_at', 'created_by',
    )
    list_select_related = ('store',)
    date_hierarchy = 'count_date'
    inlines = [InventaireLineInline]

    @admin.display(description=_('Status'))
    def status_badge(self, obj):
        colors = {
            'IN_PROGRESS': '#6b7280',
            'PENDING_VALIDATION': '#f59e0b',
            'VALIDATED': '#22c55e',
            'REJECTED': '#dc2626',
        }
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 8px;'
            'border-radius:4px;font-size:11px;font-weight:600;">{}</span>',
            colors.get(obj.status, '#6b7280'), obj.get_status_display(),
        )

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
