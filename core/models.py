"""
Core — Base Models & Audit Trail

Abstract bases shared by every FreshStock model (UUID key, timestamps,
the user who created/last changed the row, an optimistic version for
workflow documents) and the AuditLog that records ledger appends and
workflow status changes.

@file core/models.py
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


class BaseModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(_('created at'), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('created by'),
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('updated by'),
    )

    class Meta:
        abstract = True


class WorkflowModel(BaseModel):
    """
    Document driven by a status state machine (transfers, counts).

    ``version`` is the optimistic concurrency token: transitions run
    ``filter(pk=..., status=..., version=v).update(..., version=v + 1)``
    and zero rows updated means another writer got there first.
    """

    version = models.PositiveIntegerField(_('version'), default=1)

    class Meta:
        abstract = True


class SeverityChoices(models.TextChoices):
    """Shared triage scale for count lines and variance alerts."""

    LOW = 'LOW', _('Low')
    MEDIUM = 'MEDIUM', _('Medium')
    HIGH = 'HIGH', _('High')
    CRITICAL = 'CRITICAL', _('Critical')


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------

class AuditLogQuerySet(models.QuerySet):
    def for_object(self, model_name: str, object_id):
        return self.filter(model_name=model_name, object_id=str(object_id))

    def by_actor(self, user):
        return self.filter(actor=user)


class AuditLog(models.Model):
    """
    Append-only record of a write. ``old_values``/``new_values`` hold the
    JSON-safe fields that changed (see AuditService.clean).
    """

    class ActionChoices(models.TextChoices):
        CREATE = 'CREATE', _('Create')
        UPDATE = 'UPDATE', _('Update')
        STATUS_CHANGE = 'STATUS_CHANGE', _('Status change')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='audit_logs',
        verbose_name=_('actor'),
        help_text=_('Empty for scheduled jobs'),
    )
    action = models.CharField(_('action'), max_length=20, choices=ActionChoices.choices, db_index=True)
    model_name = models.CharField(_('model'), max_length=100)
    object_id = models.CharField(_('object ID'), max_length=40)
    old_values = models.JSONField(_('old values'), null=True, blank=True)
    new_values = models.JSONField(_('new values'), null=True, blank=True)
    timestamp = models.DateTimeField(_('timestamp'), auto_now_add=True, db_index=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        verbose_name = _('audit log entry')
        verbose_name_plural = _('audit log')
        ordering = ['-timestamp']
        indexes = [
            models.Index(fields=['model_name', 'object_id']),
            models.Index(fields=['actor', 'timestamp']),
        ]

    def __str__(self):
        return f'{self.action} {self.model_name}:{self.object_id}'

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise NotImplementedError('AuditLog entries are append-only.')
        super().save(*args, **kwargs)

    @property
    def changed_fields(self) -> list[str]:
        old = self.old_values or {}
        new = self.new_values or {}
        return sorted(key for key in set(old) | set(new) if old.get(key) != new.get(key))
