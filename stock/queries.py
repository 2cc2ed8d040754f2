"""
Stock — Ledger Query Layer

Typed aggregates over the movement ledger. Analytics and the variance
detector read stock exclusively through these functions; they are ORM
aggregates (no raw SQL) and never write.

All windows are half-open: ``start <= recorded_at < end``.

@file stock/queries.py
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from django.db.models import Q, Sum

from .models import StockMovement, StockReservation

ZERO = Decimal('0')

MovementType = StockMovement.MovementType
LossCategory = StockMovement.LossCategory


@dataclass(frozen=True)
class StockLevel:
    """Stock position of one product in one store, derived from the ledger."""

    store_id: UUID
    product_id: UUID
    quantity: Decimal
    reserved_quantity: Decimal = ZERO
    in_transit_quantity: Decimal = ZERO
    unit_cost: Decimal = field(default=ZERO, compare=False)

    @property
    def available_quantity(self) -> Decimal:
        return self.quantity - self.reserved_quantity

    @property
    def value(self) -> Decimal:
        return self.quantity * self.unit_cost


def _window(qs, start: datetime | None, end: datetime | None):
    if start is not None:
        qs = qs.filter(recorded_at__gte=start)
    if end is not None:
        qs = qs.filter(recorded_at__lt=end)
    return qs


def movements_for(store_id, *, product_id=None, start=None, end=None):
    qs = StockMovement.objects.filter(store_id=store_id)
    if product_id is not None:
        qs = qs.filter(product_id=product_id)
    return _window(qs, start, end)


def signed_quantity(store_id, product_id) -> Decimal:
    total = movements_for(store_id, product_id=product_id).aggregate(total=Sum('quantity'))['total']
    return total or ZERO


def quantities_by_product(store_id) -> dict:
    """{product_id: signed sum} for every product with at least one movement."""
    rows = (
        StockMovement.objects.filter(store_id=store_id)
        .values('product_id')
        .annotate(total=Sum('quantity'))
    )
    return {row['product_id']: row['total'] or ZERO for row in rows}


def reservation_totals(store_id, product_id=None) -> dict:
    """{product_id: (reserved, in_transit)} over active reservations."""
    qs = StockReservation.objects.active().filter(store_id=store_id)
    if product_id is not None:
        qs = qs.filter(product_id=product_id)
    rows = qs.values('product_id').annotate(
        reserved=Sum('quantity', filter=Q(dispatched_at__isnull=True)),
        in_transit=Sum('quantity', filter=Q(dispatched_at__isnull=False)),
    )
    return {
        row['product_id']: (row['reserved'] or ZERO, row['in_transit'] or ZERO)
        for row in rows
    }


def sum_by_type(store_id, start=None, end=None, *, product_id=None) -> dict:
    """{movement_type: signed sum} with every type present (zero when absent)."""
    rows = (
        movements_for(store_id, product_id=product_id, start=start, end=end)
        .values('movement_type')
        .annotate(total=Sum('quantity'))
    )
    totals = {choice: ZERO for choice in MovementType.values}
    for row in rows:
        totals[row['movement_type']] = row['total'] or ZERO
    return totals


def total_arrivals(store_id, start=None, end=None, *, product_id=None) -> Decimal:
    return sum_by_type(store_id, start, end, product_id=product_id)[MovementType.ARRIVAL]


def total_losses(store_id, start=None, end=None, *, product_id=None) -> Decimal:
    """Absolute quantity lost in the window."""
    return abs(sum_by_type(store_id, start, end, product_id=product_id)[MovementType.LOSS])


def losses_by_category(store_id, start=None, end=None, *, product_id=None) -> dict:
    """{loss_category: absolute quantity} with every category present."""
    rows = (
        movements_for(store_id, product_id=product_id, start=start, end=end)
        .filter(movement_type=MovementType.LOSS)
        .values('loss_category')
        .annotate(total=Sum('quantity'))
    )
    breakdown = {choice: ZERO for choice in LossCategory.values}
    for row in rows:
        if row['loss_category'] in breakdown:
            breakdown[row['loss_category']] = abs(row['total'] or ZERO)
    return breakdown


def total_outflow(store_id, start=None, end=None, *, product_id=None) -> Decimal:
    """Absolute sum of every negative movement (losses, transfers out, negative adjustments)."""
    total = (
        movements_for(store_id, product_id=product_id, start=start, end=end)
        .filter(quantity__lt=0)
        .aggregate(total=Sum('quantity'))['total']
    )
    return abs(total or ZERO)


def outflow_per_day(store_id, product_id, start: datetime, end: datetime) -> Decimal:
    """Mean daily depletion of a product over [start, end)."""
    days = Decimal((end - start).total_seconds()) / Decimal(86400)
    if days <= 0:
        return ZERO
    return total_outflow(store_id, start, end, product_id=product_id) / days


def days_of_stock(level: StockLevel, daily_outflow: Decimal) -> Decimal | None:
    """How many days the available quantity lasts at the given depletion rate."""
    if daily_outflow <= 0:
        return None
    return level.available_quantity / daily_outflow


def products_with_movements(store_id, start=None, end=None) -> list:
    return list(
        movements_for(store_id, start=start, end=end)
        .order_by()
        .values_list('product_id', flat=True)
        .distinct()
    )
