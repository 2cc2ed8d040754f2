"""
Alerts — Django Admin Configuration

Alerts are raised by the detector only; the admin can read them and
resolve them. Thresholds are fully editable.

@file alerts/admin.py
"""

from django.contrib import admin
from django.utils import timezone
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _

from .models import StockThreshold, VarianceAlert

SEVERITY_COLORS = {
    'LOW': '#6b7280',
    'MEDIUM': '#d97706',
    'HIGH': '#ea580c',
    'CRITICAL': '#dc2626',
}


@admin.register(VarianceAlert)
class VarianceAlertAdmin(admin.ModelAdmin):
    list_display = (
        'title', 'severity_badge', 'alert_type', 'store', 'product',
        'detected_at', 'is_resolved',
    )
    list_filter = ('severity', 'alert_type', 'is_resolved', 'store')
    search_fields = ('title', 'message', 'rule', 'product__name', 'product__code')
    readonly_fields = (
        'id', 'alert_type', 'severity', 'rule', 'store', 'product', 'title', 'message',
        'current_value', 'expected_value', 'variance', 'variance_percentage', 'threshold',
        'window_start', 'window_end', 'detected_at', 'recommended_actions',
        'reference_type', 'reference_id', 'resolved_by', 'resolved_at',
    )
    list_select_related = ('store', 'product')
    date_hierarchy = 'detected_at'
    actions = ['mark_resolved']

    @admin.display(description=_('Severity'))
    def severity_badge(self, obj):
        return format_html(
            '<span style="background:{};color:#fff;padding:2px 8px;'
            'border-radius:4px;font-size:11px;font-weight:600;">{}</span>',
            SEVERITY_COLORS.get(obj.severity, '#6b7280'), obj.get_severity_display(),
        )

    @admin.action(description=_('Mark selected alerts as resolved'))
    def mark_resolved(self, request, queryset):
        updated = queryset.filter(is_resolved=False).update(
            is_resolved=True, resolved_by=request.user, resolved_at=timezone.now(),
        )
        self.message_user(request, _('%d alert(s) resolved.') % updated)

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(StockThreshold)
class StockThresholdAdmin(admin.ModelAdmin):
    list_display = ('store', 'product', 'metric', 'operator', 'value', 'severity', 'is_active')
    list_filter = ('metric', 'severity', 'is_active', 'store')
    search_fields = ('product__name', 'product__code', 'store__code')
    readonly_fields = ('id', 'created_at', 'updated_at', 'created_by', 'updated_by')
    list_select_related = ('store', 'product')
