"""
Transfers — Django Admin Configuration

Read-only: transfers change state only through TransfertService so that
ledger writes stay tied to transitions.

@file transfers/admin.py
"""

from django.contrib import admin
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import Transfert, TransfertLine


class TransfertLineInline(admin.TabularInline):
    model = TransfertLine
    extra = 0
    can_delete = False
    fields = ('product', 'quantity_sent', 'quantity_received', 'condition', 'comment')
    readonly_fields = fields


@admin.register(Transfert)
class TransfertAdmin(admin.ModelAdmin):
    list_display = (
        'numero', 'source_store', 'destination_store', 'status_badge',
        'dispatched_at', 'received_at', 'created_at',
    )
    list_filter = ('status', 'source_store', 'destination_store')
    search_fields = ('numero',)
    readonly_fields = (
        'id', 'numero', 'source_store', 'destination_store', 'status', 'comment', 'version',
        'dispatched_at', 'dispatched_by', 'received_at', 'received_by', 'reception_comment',
        'cancelled_at', 'cancelled_by', 'cancel_reason', 'created_at', 'created_by',
    )
    list_select_related = ('source_store', 'destination_store')
    date_hierarchy = 'created_at'
    inlines = [TransfertLineInline]

    @admin.display(description=_('Status'))
    def status_badge(self, obj):
        colors = {
            'DRAFT': '#6b7280',
            'IN_TRANSIT': '#f59e0b',
            'RECEIVED': '#22c55e',
            'CANCELLED': '#dc2626',
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
