"""
Stock — Service Layer

Movement ledger: record_movement, get_movements, get_stock_level,
get_store_stock, plus the reservation helpers used by transfers.
Every append for a (store, product) pair runs under a transaction-level
advisory lock, so balance checks and inserts cannot interleave.
INSERT ONLY — never update or delete StockMovement.

@file stock/services.py
"""

import hashlib
import logging
from decimal import Decimal, InvalidOperation
from uuid import UUID

from django.db import connection, transaction
from django.utils import timezone

from core.constants import AUDIT_ACTION_CREATE
from core.exceptions import InsufficientStockError, ValidationError
from core.services import AuditService
from products.models import Product
from stores.models import Store
from users.policies import Action, StockPolicy

from . import queries
from .models import StockMovement, StockReservation
from .queries import StockLevel

logger = logging.getLogger('freshstock')

MovementType = StockMovement.MovementType

POSITIVE_TYPES = {MovementType.ARRIVAL, MovementType.TRANSFER_IN}
NEGATIVE_TYPES = {MovementType.LOSS, MovementType.TRANSFER_OUT}
# Transfer and count movements are only written by their workflows.
RECORDABLE_TYPES = (MovementType.ARRIVAL, MovementType.LOSS)
QUANTITY_EXPONENT = Decimal('0.001')


def _advisory_lock_key(store_id: UUID, product_id: UUID) -> int:
    """Stable bigint key for PostgreSQL advisory lock (same store+product = same key)."""
    raw = f'{store_id}:{product_id}'.encode()
    h = hashlib.sha256(raw).digest()[:8]
    return int.from_bytes(h, 'big') % (2**63)


def _lock_pair(store_id, product_id) -> None:
    if connection.vendor == 'postgresql':
        with connection.cursor() as cursor:
            cursor.execute('SELECT pg_advisory_xact_lock(%s)', [_advisory_lock_key(store_id, product_id)])


def to_quantity(value, field_name: str = 'quantity') -> Decimal:
    """Parse a quantity to Decimal with at most three decimal places."""
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(detail=f'{field_name} must be a number.')
    if not quantity.is_finite():
        raise ValidationError(detail=f'{field_name} must be a finite number.')
    if quantity != quantity.quantize(QUANTITY_EXPONENT):
        raise ValidationError(detail=f'{field_name} allows at most 3 decimal places.')
    return quantity.quantize(QUANTITY_EXPONENT)


def active_store(store_id) -> Store:
    store = Store.objects.filter(pk=store_id).first()
    if store is None:
        raise ValidationError(detail=f'Unknown store {store_id}.')
    if not store.is_active:
        raise ValidationError(detail=f'Store {store.code} is inactive.')
    return store


def active_product(product_id) -> Product:
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise ValidationError(detail=f'Unknown product {product_id}.')
    if not product.is_active:
        raise ValidationError(detail=f'Product {product.code} is inactive.')
    return product


def _validate_movement(movement_type: str, quantity: Decimal, loss_category) -> None:
    if movement_type not in MovementType.values:
        raise ValidationError(detail=f'Invalid movement_type: {movement_type}')
    if quantity == 0:
        raise ValidationError(detail='Quantity must not be zero.')
    if movement_type in POSITIVE_TYPES and quantity < 0:
        raise ValidationError(detail=f'{movement_type} quantity must be positive.')
    if movement_type in NEGATIVE_TYPES and quantity > 0:
        raise ValidationError(detail=f'{movement_type} quantity must be negative.')
    if movement_type == MovementType.LOSS:
        if not loss_category:
            raise ValidationError(detail='LOSS movements require a loss_category.')
        if loss_category not in StockMovement.LossCategory.values:
            raise ValidationError(detail=f'Invalid loss_category: {loss_category}')
    elif loss_category:
        raise ValidationError(detail='loss_category is only allowed on LOSS movements.')


class StockService:
    """Movement ledger: appends, stock levels and reservations."""

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    @staticmethod
    def get_stock_level(store_id, product_id) -> StockLevel:
        """Recompute the stock position of (store, product) from the ledger."""
        totals = queries.reservation_totals(store_id, product_id)
        reserved, in_transit = next(iter(totals.values()), (queries.ZERO, queries.ZERO))
        unit_cost = Product.objects.filter(pk=product_id).values_list('unit_cost', flat=True).first()
        return StockLevel(
            store_id=store_id,
            product_id=product_id,
            quantity=queries.signed_quantity(store_id, product_id),
            reserved_quantity=reserved,
            in_transit_quantity=in_transit,
            unit_cost=unit_cost or queries.ZERO,
        )

    @staticmethod
    def get_store_stock(store_id) -> list[StockLevel]:
        """StockLevel for every product with at least one movement in the store."""
        quantities = queries.quantities_by_product(store_id)
        reservations = queries.reservation_totals(store_id)
        costs = dict(
            Product.objects.filter(pk__in=quantities.keys()).values_list('id', 'unit_cost')
        )
        levels = []
        for product_id, quantity in quantities.items():
            reserved, in_transit = reservations.get(product_id, (queries.ZERO, queries.ZERO))
            levels.append(StockLevel(
                store_id=store_id,
                product_id=product_id,
                quantity=quantity,
                reserved_quantity=reserved,
                in_transit_quantity=in_transit,
                unit_cost=costs.get(product_id, queries.ZERO),
            ))
        return levels

    @staticmethod
    def get_movements(
        store_id,
        start=None,
        end=None,
        *,
        movement_type: str | None = None,
        loss_category: str | None = None,
        product_id=None,
        search: str = '',
    ):
        """
        Lazy iterator over the store's movements in [start, end), oldest first.
        ``search`` matches product name, code or category (case-insensitive).
        """
        return StockService.movement_queryset(
            store_id, start, end,
            movement_type=movement_type,
            loss_category=loss_category,
            product_id=product_id,
            search=search,
        ).iterator()

    @staticmethod
    def movement_queryset(
        store_id,
        start=None,
        end=None,
        *,
        movement_type=None,
        loss_category=None,
        product_id=None,
        search='',
    ):
        qs = queries.movements_for(store_id, product_id=product_id, start=start, end=end)
        if movement_type:
            qs = qs.filter(movement_type=movement_type)
        if loss_category:
            qs = qs.filter(loss_category=loss_category)
        if search:
            qs = qs.filter(product__in=Product.objects.search(search))
        return qs.select_related('product', 'recorded_by').order_by('recorded_at', 'id')

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def record_movement(
        store_id,
        product_id,
        movement_type: str,
        quantity,
        *,
        loss_category: str | None = None,
        reason: str = '',
        comment: str = '',
        actor,
        reference_id: UUID | None = None,
        reference_type: str = '',
    ) -> StockMovement:
        """
        Append one ARRIVAL or LOSS on behalf of ``actor``. A LOSS must fit
        within the available quantity.
        """
        StockPolicy.authorize(actor, Action.RECORD_MOVEMENT, store_id=store_id)
        if movement_type not in RECORDABLE_TYPES:
            raise ValidationError(
                detail=(
                    f'{movement_type} movements cannot be recorded directly; '
                    'use the transfer or inventory count workflow.'
                ),
            )
        return StockService.append_movement(
            store_id=store_id,
            product_id=product_id,
            movement_type=movement_type,
            quantity=quantity,
            loss_category=loss_category,
            reason=reason,
            comment=comment,
            actor=actor,
            reference_id=reference_id,
            reference_type=reference_type,
        )

    @staticmethod
    @transaction.atomic
    def append_movement(
        *,
        store_id,
        product_id,
        movement_type: str,
        quantity,
        loss_category: str | None = None,
        reason: str = '',
        comment: str = '',
        actor=None,
        reference_id: UUID | None = None,
        reference_type: str = '',
        enforce_available: bool = True,
    ) -> StockMovement:
        """
        Ledger append without the role check. Used by the transfer and count
        workflows at their commit points, after they authorized the caller.
        ``enforce_available=False`` skips the balance check for movements
        whose quantity was already secured (dispatched reservations,
        validated count adjustments).
        """
        quantity = to_quantity(quantity)
        loss_category = loss_category or ''
        _validate_movement(movement_type, quantity, loss_category)
        store = active_store(store_id)
        product = active_product(product_id)

        _lock_pair(store.pk, product.pk)

        if enforce_available and quantity < 0:
            level = StockService.get_stock_level(store.pk, product.pk)
            if movement_type == MovementType.COUNT_ADJUSTMENT:
                if level.quantity + quantity < 0:
                    raise InsufficientStockError(
                        detail=(
                            f'Adjustment would make stock negative: '
                            f'quantity={level.quantity}, adjustment={quantity}.'
                        ),
                    )
            elif -quantity > level.available_quantity:
                raise InsufficientStockError(
                    detail=(
                        f'Insufficient stock: available={level.available_quantity}, '
                        f'requested={-quantity}.'
                    ),
                )

        movement = StockMovement(
            store=store,
            product=product,
            movement_type=movement_type,
            quantity=quantity,
            loss_category=loss_category,
            reason=reason,
            comment=comment,
            reference_id=reference_id,
            reference_type=reference_type,
            recorded_by=actor,
        )
        movement.save()

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='StockMovement',
            object_id=str(movement.pk),
            new_values={
                'store_id': store.pk,
                'product_id': product.pk,
                'movement_type': movement_type,
                'quantity': quantity,
                'loss_category': loss_category,
                'reference_type': reference_type,
                'reference_id': reference_id,
            },
        )
        logger.info(
            'Movement recorded: %s %s %s store=%s product=%s ref=%s:%s',
            movement.pk, movement_type, quantity, store.code, product.code,
            reference_type, reference_id,
        )
        return movement

    # -----------------------------------------------------------------------
    # Reservations (transfers)
    # -----------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def reserve(*, store_id, product_id, quantity: Decimal, transfert_line) -> StockReservation:
        """Hold ``quantity`` at the source for a transfer line; fails if not available."""
        _lock_pair(store_id, product_id)
        level = StockService.get_stock_level(store_id, product_id)
        if quantity > level.available_quantity:
            raise InsufficientStockError(
                detail=(
                    f'Insufficient stock for transfer: available={level.available_quantity}, '
                    f'requested={quantity}.'
                ),
            )
        return StockReservation.objects.create(
            store_id=store_id,
            product_id=product_id,
            quantity=quantity,
            transfert_line=transfert_line,
        )

    @staticmethod
    def mark_dispatched(transfert_line_ids) -> int:
        return StockReservation.objects.pending().filter(
            transfert_line_id__in=transfert_line_ids,
        ).update(dispatched_at=timezone.now())

    @staticmethod
    def release(transfert_line_ids) -> int:
        return StockReservation.objects.active().filter(
            transfert_line_id__in=transfert_line_ids,
        ).update(released_at=timezone.now())
