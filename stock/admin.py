"""
Stock — Django Admin Configuration

Read-only list of StockMovement and StockReservation. No edit, no delete
on movements (insert-only): model save() blocks updates; delete() raises.

@file stock/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import StockMovement, StockReservation


@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'store', 'product', 'movement_type', 'quantity', 'loss_category',
        'reference_type', 'reference_id', 'recorded_by', 'recorded_at',
    )
    list_filter = ('movement_type', 'loss_category', 'store', 'recorded_at')
    search_fields = ('product__name', 'product__code', 'reason', 'reference_type')
    readonly_fields = (
        'id', 'store', 'product', 'movement_type', 'quantity', 'loss_category',
        'reason', 'comment', 'reference_id', 'reference_type',
        'recorded_by', 'recorded_at',
    )
    list_select_related = ('store', 'product', 'recorded_by')
    show_full_result_count = False
    list_per_page = 50
    date_hierarchy = 'recorded_at'
    ordering = ('-recorded_at',)

    fieldsets = (
        (_('Movement'), {
            'fields': ('id', 'store', 'product', 'movement_type', 'quantity', 'loss_category'),
        }),
        (_('Details'), {
            'fields': ('reason', 'comment'),
        }),
        (_('Reference'), {
            'fields': ('reference_id', 'reference_type'),
        }),
        (_('Audit'), {
            'fields': ('recorded_by', 'recorded_at'),
        }),
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockReservation)
class StockReservationAdmin(admin.ModelAdmin):
    list_display = ('store', 'product', 'quantity', 'transfert_line', 'dispatched_at', 'released_at')
    list_filter = ('store',)
    readonly_fields = (
        'id', 'store', 'product', 'quantity', 'transfert_line',
        'dispatched_at', 'released_at', 'created_at',
    )
    list_select_related = ('store', 'product')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
