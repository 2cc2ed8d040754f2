"""
Users — Signals

Audit trail for staff accounts and role assignments: who can act on
which store is part of what the ledger audit has to explain.

@file users/signals.py
"""

import logging

from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_UPDATE
from core.services import AuditService
from users.models import User, UserRole

logger = logging.getLogger('freshstock')

USER_AUDITED_FIELDS = ('employee_code', 'email', 'home_store_id', 'is_active', 'is_staff', 'is_superuser')

_previous: dict = {}


def _snapshot(user: User) -> dict:
    return {field: getattr(user, field) for field in USER_AUDITED_FIELDS}


@receiver(pre_save, sender=User)
def remember_user_state(sender, instance, **kwargs):
    if instance.pk is None or instance._state.adding:
        return
    old = User.objects.filter(pk=instance.pk).first()
    if old is not None:
        _previous[str(instance.pk)] = _snapshot(old)


@receiver(post_save, sender=User)
def audit_user(sender, instance, created, **kwargs):
    old_values = _previous.pop(str(instance.pk), None)
    new_values = _snapshot(instance)
    if not created and old_values == new_values:
        # Password or last_login only.
        return
    AuditService.log(
        actor=None,
        action=AUDIT_ACTION_CREATE if created else AUDIT_ACTION_UPDATE,
        model_name='User',
        object_id=str(instance.pk),
        old_values=old_values,
        new_values=new_values,
    )


@receiver(post_save, sender=UserRole)
def audit_role_assignment(sender, instance, created, **kwargs):
    AuditService.log(
        actor=instance.created_by if created else instance.updated_by,
        action=AUDIT_ACTION_CREATE if created else AUDIT_ACTION_UPDATE,
        model_name='UserRole',
        object_id=str(instance.pk),
        new_values={
            'user_id': instance.user_id,
            'role_id': instance.role_id,
            'store_id': instance.store_id,
            'is_active': instance.is_active,
        },
    )
    logger.info(
        'Role %s %s for user %s on store %s',
        instance.role_id, 'granted' if instance.is_active else 'revoked',
        instance.user_id, instance.store_id or 'network',
    )
