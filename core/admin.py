"""
Core — Django Admin

Read-only view of the audit trail.

@file core/admin.py
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from core.models import AuditLog


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('timestamp', 'action', 'model_name', 'object_id', 'actor', 'changes')
    list_filter = ('action', 'model_name')
    search_fields = ('object_id', 'actor__employee_code')
    readonly_fields = (
        'id', 'actor', 'action', 'model_name', 'object_id',
        'old_values', 'new_values', 'timestamp',
    )
    date_hierarchy = 'timestamp'
    list_select_related = ('actor',)
    show_full_result_count = False
    list_per_page = 50

    @admin.display(description=_('Changed'))
    def changes(self, obj):
        return ', '.join(obj.changed_fields)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
