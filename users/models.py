"""
Users — Models

Store staff and their roles. Staff log in with their employee code.

A role is either network-wide (director, auditor) or held on one store
(store manager, stock clerk); for store roles the assignment names the
store in ``UserRole.store``.

@file users/models.py
"""

from django.conf import settings
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel
from users.managers import UserManager, UserRoleQuerySet


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

class User(AbstractBaseUser, PermissionsMixin, BaseModel):
    """
    A member of staff. ``home_store`` is informational (where the person
    usually works); what they may do on a store is decided by their roles.
    """

    employee_code = models.CharField(_('employee code'), max_length=20, unique=True)
    email = models.EmailField(_('email'), unique=True, null=True, blank=True)
    first_name = models.CharField(_('first name'), max_length=100, blank=True)
    last_name = models.CharField(_('last name'), max_length=100, blank=True)
    home_store = models.ForeignKey(
        'stores.Store',
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='staff',
        verbose_name=_('home store'),
    )

    is_staff = models.BooleanField(_('staff status'), default=False)
    is_active = models.BooleanField(_('active'), default=True, db_index=True)
    date_joined = models.DateTimeField(_('date joined'), default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'employee_code'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['employee_code']

    def __str__(self):
        return f'{self.employee_code} {self.get_full_name()}'.strip()

    def get_full_name(self):
        return f'{self.first_name} {self.last_name}'.strip()

    def get_short_name(self):
        return self.first_name or self.employee_code

    @property
    def role_names(self) -> list[str]:
        return list(self.user_roles.active().values_list('role__name', flat=True).distinct())

    def has_role(self, role_name: str) -> bool:
        """Holds ``role_name`` anywhere (network-wide or on any store)."""
        return self.user_roles.active().filter(role__name=role_name).exists()

    def has_store_role(self, role_name: str, store_id) -> bool:
        return self.user_roles.active().for_store(store_id).filter(role__name=role_name).exists()

    def store_ids(self, role_name: str | None = None) -> list:
        """Stores this user holds a store role on."""
        qs = self.user_roles.active().filter(store__isnull=False)
        if role_name:
            qs = qs.filter(role__name=role_name)
        return list(qs.values_list('store_id', flat=True).distinct())


# ---------------------------------------------------------------------------
# Role & UserRole
# ---------------------------------------------------------------------------

class Role(BaseModel):
    """
    Named role. NETWORK roles apply to every store; STORE roles are
    assigned on one store at a time.
    """

    class ScopeChoices(models.TextChoices):
        NETWORK = 'NETWORK', _('Store network')
        STORE = 'STORE', _('Single store')

    name = models.CharField(_('name'), max_length=60, unique=True)
    description = models.TextField(_('description'), blank=True)
    scope = models.CharField(
        _('scope'), max_length=10,
        choices=ScopeChoices.choices, db_index=True,
    )
    is_system = models.BooleanField(
        _('system role'), default=False,
        help_text=_('Created by seed_roles; checked by the stock policy.'),
    )

    class Meta:
        verbose_name = _('role')
        verbose_name_plural = _('roles')
        ordering = ['scope', 'name']

    def __str__(self):
        return self.name


class UserRole(BaseModel):

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='user_roles',
        verbose_name=_('user'),
    )
    role = models.ForeignKey(
        Role,
        on_delete=models.PROTECT,
        related_name='assignments',
        verbose_name=_('role'),
    )
    store = models.ForeignKey(
        'stores.Store',
        null=True, blank=True,
        on_delete=models.CASCADE,
        related_name='role_assignments',
        verbose_name=_('store'),
        help_text=_('Required for store roles, empty for network roles.'),
    )
    is_active = models.BooleanField(_('active'), default=True)

    objects = UserRoleQuerySet.as_manager()

    class Meta:
        verbose_name = _('role assignment')
        verbose_name_plural = _('role assignments')
        ordering = ['user', 'role']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'role', 'store'],
                name='unique_user_role_store',
            ),
        ]
        indexes = [
            models.Index(fields=['user', 'is_active']),
        ]

    def __str__(self):
        where = self.store.code if self.store_id else 'network'
        return f'{self.user.employee_code}: {self.role.name} @ {where}'

    def clean(self):
        if self.role.scope == Role.ScopeChoices.STORE and not self.store_id:
            raise ValidationError({'store': _('Store roles must name a store.')})
        if self.role.scope == Role.ScopeChoices.NETWORK and self.store_id:
            raise ValidationError({'store': _('Network roles apply to every store.')})
