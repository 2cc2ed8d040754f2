"""
Stock — Models

Movement-based, immutable stock tracking. Stock is never stored as a balance;
it is computed as the signed SUM(quantity) per (store, product).
Movements are INSERT ONLY — never update or delete; corrections are new
movements.

Reservations hold quantities promised to an outgoing transfer until it is
received or cancelled.

@file stock/models.py
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core.models import BaseModel


class StockMovement(models.Model):
    """
    A single immutable stock movement (insert only).

    ``quantity`` is signed: inbound types are positive, outbound types are
    negative, count adjustments carry the sign of the correction. The stock
    level of a (store, product) pair is the plain sum of its movements.
    """

    class MovementType(models.TextChoices):
        ARRIVAL = 'ARRIVAL', _('Arrival')
        LOSS = 'LOSS', _('Loss')
        TRANSFER_OUT = 'TRANSFER_OUT', _('Transfer out')
        TRANSFER_IN = 'TRANSFER_IN', _('Transfer in')
        COUNT_ADJUSTMENT = 'COUNT_ADJUSTMENT', _('Count adjustment')

    class LossCategory(models.TextChoices):
        SPOILAGE = 'SPOILAGE', _('Spoilage')
        DAMAGE = 'DAMAGE', _('Damage')
        PROMOTION = 'PROMOTION', _('Promotion / markdown')

    id = models.UUIDField(
        primary_key=True, default=uuid.uuid4, editable=False,
    )
    store = models.ForeignKey(
        'stores.Store',
        on_delete=models.PROTECT,
        related_name='stock_movements',
        verbose_name=_('store'),
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.PROTECT,
        related_name='stock_movements',
        verbose_name=_('product'),
    )
    movement_type = models.CharField(
        _('movement type'), max_length=16,
        choices=MovementType.choices, db_index=True,
    )
    quantity = models.DecimalField(
        _('quantity'), max_digits=15, decimal_places=3,
        help_text=_('Signed: positive increases stock, negative decreases it'),
    )
    loss_category = models.CharField(
        _('loss category'), max_length=10,
        choices=LossCategory.choices, blank=True, db_index=True,
        help_text=_('Only set on LOSS movements'),
    )
    reason = models.CharField(_('reason'), max_length=255, blank=True)
    comment = models.TextField(_('comment'), blank=True)
    reference_id = models.UUIDField(
        _('reference ID'), null=True, blank=True,
        help_text=_('Source record: Transfert, Inventaire, etc.'),
    )
    reference_type = models.CharField(
        _('reference type'), max_length=100, blank=True,
        help_text=_('Model name of source record'),
    )
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
        verbose_name=_('recorded by'),
    )
    recorded_at = models.DateTimeField(
        _('recorded at'), default=timezone.now, db_index=True,
    )
    # No updated_at — immutable record.

    class Meta:
        verbose_name = _('stock movement')
        verbose_name_plural = _('stock movements')
        ordering = ['recorded_at']
        indexes = [
            models.Index(fields=['store', 'product', 'recorded_at'], name='stock_store_product_idx'),
            models.Index(fields=['store', 'movement_type', 'recorded_at'], name='stock_store_type_idx'),
            models.Index(fields=['reference_type', 'reference_id'], name='stock_reference_idx'),
        ]

    def __str__(self):
        return f'{self.movement_type} {self.quantity} product={self.product_id} store={self.store_id}'

    def save(self, *args, **kwargs):
        if self.pk and StockMovement.objects.filter(pk=self.pk).exists():
            raise NotImplementedError('StockMovement is insert-only; updates are not allowed.')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise NotImplementedError('StockMovement records cannot be deleted.')


class StockReservationQuerySet(models.QuerySet):
    def active(self):
        return self.filter(released_at__isnull=True)

    def pending(self):
        """Held at the source, not yet shipped."""
        return self.active().filter(dispatched_at__isnull=True)

    def in_transit(self):
        return self.active().filter(dispatched_at__isnull=False)


class StockReservation(BaseModel):
    """
    Quantity promised to a transfer line.

    Pending reservations reduce the available quantity at the source.
    Once the transfer is dispatched the TRANSFER_OUT movement already
    removed the quantity, so the reservation only tracks what is in transit.
    """

    store = models.ForeignKey(
        'stores.Store',
        on_delete=models.PROTECT,
        related_name='stock_reservations',
        verbose_name=_('store'),
    )
    product = models.ForeignKey(
        'products.Product',
        on_delete=models.PROTECT,
        related_name='stock_reservations',
        verbose_name=_('product'),
    )
    transfert_line = models.OneToOneField(
        'transfers.TransfertLine',
        on_delete=models.CASCADE,
        related_name='reservation',
        verbose_name=_('transfer line'),
    )
    quantity = models.DecimalField(_('quantity'), max_digits=15, decimal_places=3)
    dispatched_at = models.DateTimeField(_('dispatched at'), null=True, blank=True)
    released_at = models.DateTimeField(_('released at'), null=True, blank=True, db_index=True)

    objects = StockReservationQuerySet.as_manager()

    class Meta:
        verbose_name = _('stock reservation')
        verbose_name_plural = _('stock reservations')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'product', 'released_at'], name='reservation_active_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name='reservation_quantity_positive',
            ),
        ]

    def __str__(self):
        return f'Reservation {self.quantity} product={self.product_id} store={self.store_id}'

    @property
    def is_active(self) -> bool:
        return self.released_at is None
