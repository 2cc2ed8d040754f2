"""
Transfers — Service Layer

Transfer lifecycle: create (DRAFT, stock reserved at the source), dispatch
(TRANSFER_OUT at the source), receive (TRANSFER_IN at the destination with
the quantities that actually arrived), cancel (reservations released, and a
compensating TRANSFER_IN at the source when the goods had already left).

Ledger writes happen only at those transition points and inside the same
transaction as the status change.

@file transfers/services.py
"""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_STATUS_CHANGE
from core.exceptions import (
    ConcurrencyConflict,
    InvalidStateTransition,
    LedgerIntegrityError,
    ResourceNotFoundError,
    ValidationError,
)
from core.numbering import create_numbered
from core.services import AuditService
from stock.models import StockMovement
from stock.services import StockService, active_product, active_store, to_quantity
from users.policies import Action, StockPolicy

from .models import Transfert, TransfertLine
from .signals import transfer_received

logger = logging.getLogger('freshstock')

Status = Transfert.StatusChoices

# Valid status transitions: from_status -> set of allowed to_status
TRANSFERT_TRANSITIONS = {
    Status.DRAFT: {Status.IN_TRANSIT, Status.CANCELLED},
    Status.IN_TRANSIT: {Status.RECEIVED, Status.CANCELLED},
    Status.RECEIVED: set(),
    Status.CANCELLED: set(),
}

REFERENCE_TYPE = 'Transfert'


def _assert_transition(transfert: Transfert, new_status: str) -> None:
    allowed = TRANSFERT_TRANSITIONS.get(transfert.status, set())
    if new_status not in allowed:
        raise InvalidStateTransition(
            detail=f'Cannot transition transfer from {transfert.status} to {new_status}.',
        )


def _get_for_update(transfert_id) -> Transfert:
    try:
        return Transfert.objects.select_for_update().get(pk=transfert_id)
    except Transfert.DoesNotExist:
        raise ResourceNotFoundError(detail='Transfer not found.')


def _apply_transition(transfert: Transfert, new_status: str, *, actor, **fields) -> Transfert:
    """
    Check-and-set on (status, version); zero rows updated means a concurrent
    writer moved the transfer first.
    """
    _assert_transition(transfert, new_status)
    old_status = transfert.status
    updated = Transfert.objects.filter(
        pk=transfert.pk, status=old_status, version=transfert.version,
    ).update(
        status=new_status,
        version=transfert.version + 1,
        updated_by=actor,
        updated_at=timezone.now(),
        **fields,
    )
    if updated == 0:
        raise ConcurrencyConflict()
    transfert.refresh_from_db()
    AuditService.log(
        actor=actor,
        action=AUDIT_ACTION_STATUS_CHANGE,
        model_name='Transfert',
        object_id=str(transfert.pk),
        old_values={'status': old_status},
        new_values={'status': new_status, 'version': transfert.version},
    )
    logger.info('Transfer %s: %s -> %s', transfert.numero, old_status, new_status)
    return transfert


def _verify_movements(transfert: Transfert, store_id, movement_type: str, expected: int) -> None:
    written = StockMovement.objects.filter(
        reference_type=REFERENCE_TYPE,
        reference_id=transfert.pk,
        store_id=store_id,
        movement_type=movement_type,
    ).count()
    if written != expected:
        logger.critical(
            'Ledger integrity error on transfer %s: %s %s movements written, %s expected.',
            transfert.numero, written, movement_type, expected,
        )
        raise LedgerIntegrityError(
            detail=f'Transfer {transfert.numero}: {written} {movement_type} movements, expected {expected}.',
        )


def _parse_lines(lines: list[dict]) -> list[tuple]:
    if not lines:
        raise ValidationError(detail='A transfer needs at least one line.')
    parsed = []
    seen = set()
    for row in lines:
        product = active_product(row['product_id'])
        if product.pk in seen:
            raise ValidationError(detail=f'Product {product.code} appears more than once.')
        seen.add(product.pk)
        quantity = to_quantity(row['quantity'])
        if quantity <= 0:
            raise ValidationError(detail=f'Quantity for {product.code} must be positive.')
        parsed.append((product, quantity, row.get('comment', '')))
    return parsed


class TransfertService:
    """Transfer state machine and its ledger commit points."""

    @staticmethod
    @transaction.atomic
    def create_transfert(
        source_id,
        destination_id,
        lines: list[dict],
        *,
        actor,
        comment: str = '',
        dispatch: bool = True,
    ) -> Transfert:
        """
        Create a transfer and reserve each line at the source. With
        ``dispatch=True`` the goods leave immediately (IN_TRANSIT).
        """
        StockPolicy.authorize(actor, Action.CREATE_TRANSFERT, store_id=source_id)
        if str(source_id) == str(destination_id):
            raise ValidationError(detail='Source and destination stores must differ.')
        source = active_store(source_id)
        destination = active_store(destination_id)
        parsed = _parse_lines(lines)

        transfert = create_numbered(
            Transfert, 'TR',
            source_store=source,
            destination_store=destination,
            comment=comment,
            created_by=actor,
        )
        for product, quantity, line_comment in parsed:
            line = TransfertLine.objects.create(
                transfert=transfert,
                product=product,
                quantity_sent=quantity,
                comment=line_comment,
                created_by=actor,
            )
            StockService.reserve(
                store_id=source.pk,
                product_id=product.pk,
                quantity=quantity,
                transfert_line=line,
            )

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Transfert',
            object_id=str(transfert.pk),
            new_values={
                'numero': transfert.numero,
                'source_store_id': source.pk,
                'destination_store_id': destination.pk,
                'lines': len(parsed),
            },
        )
        logger.info(
            'Transfer %s created: %s -> %s, %d lines',
            transfert.numero, source.code, destination.code, len(parsed),
        )
        if dispatch:
            transfert = TransfertService._dispatch(transfert, actor=actor)
        return transfert

    @staticmethod
    @transaction.atomic
    def dispatch_transfert(transfert_id, *, actor) -> Transfert:
        transfert = _get_for_update(transfert_id)
        StockPolicy.authorize(actor, Action.DISPATCH_TRANSFERT, store_id=transfert.source_store_id)
        return TransfertService._dispatch(transfert, actor=actor)

    @staticmethod
    def _dispatch(transfert: Transfert, *, actor) -> Transfert:
        _assert_transition(transfert, Status.IN_TRANSIT)
        lines = list(transfert.lines.select_related('product'))
        for line in lines:
            # Quantity is already secured by the line's reservation.
            StockService.append_movement(
                store_id=transfert.source_store_id,
                product_id=line.product_id,
                movement_type=StockMovement.MovementType.TRANSFER_OUT,
                quantity=-line.quantity_sent,
                reason=f'Transfer {transfert.numero}',
                actor=actor,
                reference_id=transfert.pk,
                reference_type=REFERENCE_TYPE,
                enforce_available=False,
            )
        StockService.mark_dispatched([line.pk for line in lines])
        _verify_movements(transfert, transfert.source_store_id, StockMovement.MovementType.TRANSFER_OUT, len(lines))
        return _apply_transition(
            transfert, Status.IN_TRANSIT, actor=actor,
            dispatched_at=timezone.now(), dispatched_by=actor,
        )

    @staticmethod
    @transaction.atomic
    def receive_transfert(
        transfert_id,
        received_lines: list[dict],
        *,
        actor,
        comment: str = '',
    ) -> Transfert:
        """
        Record what arrived. ``received_lines`` holds one entry per line,
        keyed by ``line_id`` or ``product_id``, with ``quantity_received``
        and optional ``condition`` / ``comment``.
        """
        transfert = _get_for_update(transfert_id)
        StockPolicy.authorize(actor, Action.RECEIVE_TRANSFERT, store_id=transfert.destination_store_id)
        _assert_transition(transfert, Status.RECEIVED)

        lines = list(transfert.lines.select_related('product'))
        by_line = {str(line.pk): line for line in lines}
        by_product = {str(line.product_id): line for line in lines}

        received = {}
        for row in received_lines or []:
            key = row.get('line_id') or row.get('product_id')
            line = by_line.get(str(key)) or by_product.get(str(key))
            if line is None:
                raise ValidationError(detail=f'{key} is not part of transfer {transfert.numero}.')
            if line.pk in received:
                raise ValidationError(detail=f'Line {line.product.code} is received twice.')
            quantity = to_quantity(row['quantity_received'], 'quantity_received')
            if quantity < 0:
                raise ValidationError(detail='quantity_received must not be negative.')
            condition = row.get('condition') or ''
            if condition and condition not in TransfertLine.ConditionChoices.values:
                raise ValidationError(detail=f'Invalid condition: {condition}')
            received[line.pk] = (quantity, condition, row.get('comment', ''))

        missing = [line.product.code for line in lines if line.pk not in received]
        if missing:
            raise ValidationError(detail=f'Missing received quantities for: {", ".join(missing)}.')

        discrepancies = []
        expected_in = 0
        for line in lines:
            quantity, condition, line_comment = received[line.pk]
            line.quantity_received = quantity
            line.condition = condition
            if line_comment:
                line.comment = line_comment
            line.updated_by = actor
            line.save(update_fields=['quantity_received', 'condition', 'comment', 'updated_by', 'updated_at'])

            if quantity > 0:
                StockService.append_movement(
                    store_id=transfert.destination_store_id,
                    product_id=line.product_id,
                    movement_type=StockMovement.MovementType.TRANSFER_IN,
                    quantity=quantity,
                    reason=f'Transfer {transfert.numero}',
                    actor=actor,
                    reference_id=transfert.pk,
                    reference_type=REFERENCE_TYPE,
                )
                expected_in += 1
            if line.discrepancy:
                discrepancies.append({
                    'line_id': line.pk,
                    'product_id': line.product_id,
                    'quantity_sent': line.quantity_sent,
                    'quantity_received': quantity,
                    'discrepancy': line.discrepancy,
                    'condition': condition,
                })

        StockService.release([line.pk for line in lines])
        _verify_movements(transfert, transfert.destination_store_id, StockMovement.MovementType.TRANSFER_IN, expected_in)
        transfert = _apply_transition(
            transfert, Status.RECEIVED, actor=actor,
            received_at=timezone.now(), received_by=actor, reception_comment=comment,
        )

        if discrepancies:
            logger.warning(
                'Transfer %s received with %d discrepant lines.',
                transfert.numero, len(discrepancies),
            )
        transfer_received.send(
            sender=Transfert, transfert=transfert, discrepancies=discrepancies, actor=actor,
        )
        return transfert

    @staticmethod
    @transaction.atomic
    def cancel_transfert(transfert_id, *, actor, reason: str = '') -> Transfert:
        transfert = _get_for_update(transfert_id)
        StockPolicy.authorize(actor, Action.CANCEL_TRANSFERT, store_id=transfert.source_store_id)
        _assert_transition(transfert, Status.CANCELLED)

        lines = list(transfert.lines.all())
        if transfert.status == Status.IN_TRANSIT:
            for line in lines:
                StockService.append_movement(
                    store_id=transfert.source_store_id,
                    product_id=line.product_id,
                    movement_type=StockMovement.MovementType.TRANSFER_IN,
                    quantity=line.quantity_sent,
                    reason=f'Transfer {transfert.numero} cancelled',
                    comment=reason,
                    actor=actor,
                    reference_id=transfert.pk,
                    reference_type=REFERENCE_TYPE,
                )
            _verify_movements(transfert, transfert.source_store_id, StockMovement.MovementType.TRANSFER_IN, len(lines))
        StockService.release([line.pk for line in lines])
        return _apply_transition(
            transfert, Status.CANCELLED, actor=actor,
            cancelled_at=timezone.now(), cancelled_by=actor, cancel_reason=reason,
        )

    @staticmethod
    def get_transfert_stats(store_id=None, *, start=None, end=None) -> dict:
        """
        Totals over transfers touching ``store_id`` (either side), or the
        whole network when no store is given.
        """
        qs = Transfert.objects.all()
        if store_id is not None:
            qs = qs.filter(Q(source_store_id=store_id) | Q(destination_store_id=store_id))
        if start is not None:
            qs = qs.filter(created_at__gte=start)
        if end is not None:
            qs = qs.filter(created_at__lt=end)

        counts = qs.aggregate(
            total=Count('id'),
            draft=Count('id', filter=Q(status=Status.DRAFT)),
            in_transit=Count('id', filter=Q(status=Status.IN_TRANSIT)),
            received=Count('id', filter=Q(status=Status.RECEIVED)),
            cancelled=Count('id', filter=Q(status=Status.CANCELLED)),
        )
        lines = TransfertLine.objects.filter(transfert__in=qs)
        total_sent = lines.exclude(transfert__status=Status.CANCELLED).aggregate(
            total=Sum('quantity_sent'),
        )['total'] or Decimal('0')

        received_lines = lines.filter(
            transfert__status=Status.RECEIVED, quantity_received__isnull=False,
        ).only('transfert_id', 'quantity_sent', 'quantity_received')
        abs_discrepancies = []
        discrepant_transferts = set()
        for line in received_lines:
            abs_discrepancies.append(abs(line.discrepancy))
            if line.discrepancy:
                discrepant_transferts.add(line.transfert_id)
        mean_discrepancy = (
            sum(abs_discrepancies, Decimal('0')) / len(abs_discrepancies)
            if abs_discrepancies else Decimal('0')
        )

        return {
            **counts,
            'received_with_discrepancy': len(discrepant_transferts),
            'total_quantity_sent': total_sent,
            'mean_absolute_discrepancy': mean_discrepancy.quantize(Decimal('0.001')),
        }
