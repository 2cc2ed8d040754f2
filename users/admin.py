"""
Users — Django Admin

Staff accounts and role assignments. There is no user API; this is
where accounts are created and roles granted (see also the assign_role
command).

@file users/admin.py
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Role, User, UserRole


class UserRoleInline(admin.TabularInline):
    model = UserRole
    fk_name = 'user'
    extra = 0
    fields = ('role', 'store', 'is_active', 'created_at')
    readonly_fields = ('created_at',)
    autocomplete_fields = ('store',)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('employee_code', 'get_full_name', 'home_store', 'roles', 'is_active', 'last_login')
    list_filter = ('is_active', 'is_staff', 'is_superuser', 'home_store')
    search_fields = ('employee_code', 'email', 'first_name', 'last_name')
    readonly_fields = ('id', 'date_joined', 'last_login', 'created_at', 'updated_at')
    ordering = ('employee_code',)
    list_select_related = ('home_store',)
    inlines = [UserRoleInline]

    fieldsets = (
        (None, {'fields': ('id', 'employee_code', 'password')}),
        (_('Person'), {'fields': ('first_name', 'last_name', 'email', 'home_store')}),
        (_('Access'), {'fields': ('is_active', 'is_staff', 'is_superuser')}),
        (_('Dates'), {
            'fields': ('date_joined', 'last_login', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('employee_code', 'password1', 'password2', 'first_name', 'last_name', 'home_store'),
        }),
    )

    @admin.display(description=_('Roles'))
    def roles(self, obj):
        return ', '.join(obj.role_names) or '-'

    def save_formset(self, request, form, formset, change):
        for assignment in formset.save(commit=False):
            if assignment._state.adding:
                assignment.created_by = request.user
            assignment.updated_by = request.user
            assignment.save()
        for removed in formset.deleted_objects:
            removed.delete()


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ('name', 'scope', 'is_system', 'description')
    list_filter = ('scope', 'is_system')
    search_fields = ('name',)

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.is_system:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ('user', 'role', 'store', 'is_active', 'created_at')
    list_filter = ('role', 'store', 'is_active')
    search_fields = ('user__employee_code', 'user__last_name', 'store__code')
    raw_id_fields = ('user',)
    list_select_related = ('user', 'role', 'store')
