"""
Inventory — Models

Physical stock counts. An Inventaire snapshots the book (theoretical)
quantity of every stocked product; staff record what they physically find;
a director validates (adjusting the ledger) or rejects the count.

Lifecycle: IN_PROGRESS → PENDING_VALIDATION → VALIDATED | REJECTED.
A rejected count is redone as a new count referencing it.

@file inventory/models.py
"""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, SeverityChoices, WorkflowModel


class Inventaire(WorkflowModel):

    class StatusChoices(models.TextChoices):
        IN_PROGRESS = 'IN_PROGRESS', _('In progress')
        PENDING_VALIDATION = 'PENDING_VALIDATION', _('Pending validation')
        VALIDATED = 'VALIDATED', _('Validated')
        REJECTED = 'REJECTED', _('Rejected')

    ACTIVE_STATUSES = (StatusChoices.IN_PROGRESS, StatusChoices.PENDING_VALIDATION)

    numero = models.CharField(
        _('number'), max_length=20, unique=True,
        help_text=_('Format: INV-YYYY-NNNN'),
    )
    store = models.ForeignKey(
        'stores.Store',
        on_delete=models.PROTECT,
        related_name='inventaires',
        verbose_name=_('store'),
    )
    count_date = models.DateField(_('count date'), default=timezone.localdate)
    status = models.CharField(
        _('status'), max_length=20,
        choices=StatusChoices.choices, default=StatusChoices.IN_PROGRESS,
        db_index=True,
    )
    comment = models.TextField(_('comment'), blank=True)

    submitted_at = models.DateTimeField(_('submitted at'), null=True, blank=True, db_index=True)
    submitted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
        verbose_name=_('submitted by'),
    )
    validated_at = models.DateTimeField(_('validated at'), null=True, blank=True)
    validated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
        verbose_name=_('validated by'),
    )
    rejected_at = models.DateTimeField(_('rejected at'), null=True, blank=True)
    rejected_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
        verbose_name=_('rejected by'),
    )
    rejection_reason = models.TextField(_('rejection reason'), blank=True)
    resubmission_of = models.ForeignKey(
        'self',
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name='resubmissions',
        verbose_name=_('resubmission of'),
    )

    total_variance = models.DecimalField(
        _('total variance'), max_digits=15, decimal_places=3, default=Decimal('0'),
    )
    variance_value = models.DecimalField(
        _('variance value'), max_digits=18, decimal_places=2, default=Decimal('0'),
    )

    class Meta:
        verbose_name = _('inventory count')
        verbose_name_plural = _('inventory counts')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'status']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['store'],
                condition=models.Q(status__in=['IN_PROGRESS', 'PENDING_VALIDATION']),
                name='one_active_inventaire_per_store',
            ),
        ]

    def __str__(self):
        return f'{self.numero} ({self.status})'

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES


class InventaireLine(BaseModel):

    inventaire = models.ForeignKey(
        Inventaire,
        on_delete=models.CASCADE,
        related_name='lines',
        verbose_name=_('inventory count'),
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.PROTECT,
        related_name='inventaire_lines',
        verbose_name=_('product'),
    )
    theoretical_qty = models.DecimalField(_('theoretical quantity'), max_digits=15, decimal_places=3)
    physical_qty = models.DecimalField(
        _('physical quantity'), max_digits=15, decimal_places=3,
        null=True, blank=True,
    )
    unit_cost = models.DecimalField(
        _('unit cost'), max_digits=15, decimal_places=2, default=Decimal('0'),
        help_text=_('Product unit cost when the count was opened'),
    )
    variance = models.DecimalField(
        _('variance'), max_digits=15, decimal_places=3, null=True, blank=True,
    )
    variance_value = models.DecimalField(
        _('variance value'), max_digits=18, decimal_places=2, null=True, blank=True,
    )
    severity = models.CharField(
        _('severity'), max_length=10,
        choices=SeverityChoices.choices, blank=True,
    )
    comment = models.TextField(_('comment'), blank=True)

    class Meta:
        verbose_name = _('inventory count line')
        verbose_name_plural = _('inventory count lines')
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['inventaire', 'product'], name='unique_inventaire_product'),
        ]

    def __str__(self):
        return f'{self.product_id} theoretical={self.theoretical_qty} physical={self.physical_qty}'

    @property
    def variance_percentage(self) -> Decimal | None:
        if self.variance is None or not self.theoretical_qty:
            return None
        return abs(self.variance) / abs(self.theoretical_qty) * Decimal('100')
