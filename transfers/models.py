"""
Transfers — Models

Shipment of stock between two stores of the network. A Transfert moves
through DRAFT → IN_TRANSIT → RECEIVED, or is CANCELLED from DRAFT or
IN_TRANSIT. Each line records what was sent and, on reception, what
actually arrived and in which condition.

@file transfers/models.py
"""

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel, WorkflowModel


class Transfert(WorkflowModel):

    class StatusChoices(models.TextChoices):
        DRAFT = 'DRAFT', _('Draft')
        IN_TRANSIT = 'IN_TRANSIT', _('In transit')
        RECEIVED = 'RECEIVED', _('Received')
        CANCELLED = 'CANCELLED', _('Cancelled')

    numero = models.CharField(
        _('number'), max_length=20, unique=True,
        help_text=_('Format: TR-YYYY-NNNN'),
    )
    source_store = models.ForeignKey(
        'stores.Store',
        on_delete=models.PROTECT,
        related_name='outgoing_transferts',
        verbose_name=_('source store'),
    )
    destination_store = models.ForeignKey(
        'stores.Store',
        on_delete=models.PROTECT,
        related_name='incoming_transferts',
        verbose_name=_('destination store'),
    )
    status = models.CharField(
        _('status'), max_length=12,
        choices=StatusChoices.choices, default=StatusChoices.DRAFT,
        db_index=True,
    )
    comment = models.TextField(_('comment'), blank=True)

    dispatched_at = models.DateTimeField(_('dispatched at'), null=True, blank=True)
    dispatched_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
        verbose_name=_('dispatched by'),
    )
    received_at = models.DateTimeField(_('received at'), null=True, blank=True, db_index=True)
    received_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
        verbose_name=_('received by'),
    )
    reception_comment = models.TextField(_('reception comment'), blank=True)
    cancelled_at = models.DateTimeField(_('cancelled at'), null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name='+',
        verbose_name=_('cancelled by'),
    )
    cancel_reason = models.TextField(_('cancel reason'), blank=True)

    class Meta:
        verbose_name = _('transfer')
        verbose_name_plural = _('transfers')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['source_store', 'status']),
            models.Index(fields=['destination_store', 'status']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(source_store=models.F('destination_store')),
                name='transfert_distinct_stores',
            ),
        ]

    def __str__(self):
        return f'{self.numero} {self.source_store_id} → {self.destination_store_id} ({self.status})'

    @property
    def has_discrepancy(self) -> bool:
        return any(line.discrepancy for line in self.lines.all())


class TransfertLine(BaseModel):

    class ConditionChoices(models.TextChoices):
        GOOD = 'GOOD', _('Good')
        DAMAGED = 'DAMAGED', _('Damaged')
        SPOILED = 'SPOILED', _('Spoiled')

    transfert = models.ForeignKey(
        Transfert,
        on_delete=models.CASCADE,
        related_name='lines',
        verbose_name=_('transfer'),
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.PROTECT,
        related_name='transfert_lines',
        verbose_name=_('product'),
    )
    quantity_sent = models.DecimalField(_('quantity sent'), max_digits=15, decimal_places=3)
    quantity_received = models.DecimalField(
        _('quantity received'), max_digits=15, decimal_places=3,
        null=True, blank=True,
    )
    condition = models.CharField(
        _('condition'), max_length=8,
        choices=ConditionChoices.choices, blank=True,
    )
    comment = models.TextField(_('comment'), blank=True)

    class Meta:
        verbose_name = _('transfer line')
        verbose_name_plural = _('transfer lines')
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(fields=['transfert', 'product'], name='unique_transfert_product'),
        ]

    def __str__(self):
        return f'{self.product_id} sent={self.quantity_sent} received={self.quantity_received}'

    @property
    def discrepancy(self):
        """received − sent; None until the line is received."""
        if self.quantity_received is None:
            return None
        return self.quantity_received - self.quantity_sent
