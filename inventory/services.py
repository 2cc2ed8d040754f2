"""
Inventory — Service Layer

Count lifecycle: create (theoretical snapshot), record_counts, submit
(variances computed), validate (director; COUNT_ADJUSTMENT per non-zero
variance, committed with the status change), reject (director; no ledger
write), resubmit (new count referencing the rejected one).

Validation and rejection use a check-and-set on (status, version):
two directors acting on the same version cannot both win, and a count
that is already decided answers ConcurrencyConflict so the caller reloads.

@file inventory/services.py
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from core.config import freshstock_setting
from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_STATUS_CHANGE
from core.exceptions import (
    ConcurrencyConflict,
    DuplicateResourceError,
    InvalidStateTransition,
    LedgerIntegrityError,
    ResourceNotFoundError,
    ValidationError,
)
from core.models import SeverityChoices
from core.numbering import create_numbered
from core.services import AuditService
from products.models import Product
from stock import queries
from stock.models import StockMovement
from stock.services import StockService, active_product, active_store, to_quantity
from users.policies import Action, StockPolicy

from .models import Inventaire, InventaireLine
from .signals import count_submitted

logger = logging.getLogger('freshstock')

Status = Inventaire.StatusChoices

INVENTAIRE_TRANSITIONS = {
    Status.IN_PROGRESS: {Status.PENDING_VALIDATION},
    Status.PENDING_VALIDATION: {Status.VALIDATED, Status.REJECTED},
    Status.VALIDATED: set(),
    Status.REJECTED: set(),
}

REFERENCE_TYPE = 'Inventaire'
VALUE_EXPONENT = Decimal('0.01')
DECIDED_STATUSES = (Status.VALIDATED, Status.REJECTED)


def line_severity(variance: Decimal, theoretical: Decimal, bands: dict | None = None) -> str:
    """
    Triage band of a count variance, in percent of the theoretical quantity.
    Any variance on a product expected to be absent is CRITICAL.
    """
    bands = bands or freshstock_setting('COUNT_SEVERITY_BANDS')
    if not variance:
        return SeverityChoices.LOW
    if not theoretical:
        return SeverityChoices.CRITICAL
    pct = abs(variance) / abs(theoretical) * Decimal('100')
    if pct < bands['low']:
        return SeverityChoices.LOW
    if pct < bands['medium']:
        return SeverityChoices.MEDIUM
    if pct < bands['high']:
        return SeverityChoices.HIGH
    return SeverityChoices.CRITICAL


def _assert_transition(inventaire: Inventaire, new_status: str) -> None:
    allowed = INVENTAIRE_TRANSITIONS.get(inventaire.status, set())
    if new_status not in allowed:
        raise InvalidStateTransition(
            detail=f'Cannot transition count from {inventaire.status} to {new_status}.',
        )


def _get(inventaire_id, *, for_update: bool = False) -> Inventaire:
    qs = Inventaire.objects.select_for_update() if for_update else Inventaire.objects
    try:
        return qs.get(pk=inventaire_id)
    except Inventaire.DoesNotExist:
        raise ResourceNotFoundError(detail='Inventory count not found.')


def _apply_transition(inventaire: Inventaire, new_status: str, *, actor, **fields) -> Inventaire:
    """Conditional UPDATE on (pk, status, version); 0 rows means someone else won."""
    _assert_transition(inventaire, new_status)
    old_status = inventaire.status
    updated = Inventaire.objects.filter(
        pk=inventaire.pk, status=old_status, version=inventaire.version,
    ).update(
        status=new_status,
        version=inventaire.version + 1,
        updated_by=actor,
        updated_at=timezone.now(),
        **fields,
    )
    if updated == 0:
        raise ConcurrencyConflict()
    inventaire.refresh_from_db()
    AuditService.log(
        actor=actor,
        action=AUDIT_ACTION_STATUS_CHANGE,
        model_name='Inventaire',
        object_id=str(inventaire.pk),
        old_values={'status': old_status},
        new_values={'status': new_status, 'version': inventaire.version},
    )
    logger.info('Inventory count %s: %s -> %s', inventaire.numero, old_status, new_status)
    return inventaire


def _check_version(inventaire: Inventaire, expected_version) -> None:
    if inventaire.status in DECIDED_STATUSES:
        raise ConcurrencyConflict(
            detail=f'Count {inventaire.numero} was already {inventaire.status}. Reload it.',
        )
    if expected_version is not None and int(expected_version) != inventaire.version:
        raise ConcurrencyConflict(
            detail=(
                f'Count {inventaire.numero} is at version {inventaire.version}, '
                f'expected {expected_version}. Reload it and retry.'
            ),
        )


class InventaireService:
    """Inventory count state machine."""

    @staticmethod
    @transaction.atomic
    def create_inventaire(
        store_id,
        *,
        actor,
        count_date=None,
        comment: str = '',
        resubmission_of=None,
    ) -> Inventaire:
        """
        Open a count for a store, snapshotting the current book quantity
        of every active product with non-zero stock. A store has at most
        one active count.
        """
        StockPolicy.authorize(actor, Action.CREATE_INVENTAIRE, store_id=store_id)
        return InventaireService._open(
            store_id, actor=actor, count_date=count_date,
            comment=comment, resubmission_of=resubmission_of,
        )

    @staticmethod
    def _open(store_id, *, actor, count_date=None, comment='', resubmission_of=None) -> Inventaire:
        store = active_store(store_id)
        if Inventaire.objects.filter(store=store, status__in=Inventaire.ACTIVE_STATUSES).exists():
            raise DuplicateResourceError(detail=f'Store {store.code} already has an active count.')

        # Number collisions are retried inside create_numbered.
        try:
            inventaire = create_numbered(
                Inventaire, 'INV',
                store=store,
                count_date=count_date or timezone.localdate(),
                comment=comment,
                resubmission_of=resubmission_of,
                created_by=actor,
            )
        except IntegrityError:
            raise DuplicateResourceError(detail=f'Store {store.code} already has an active count.')

        book = {
            level.product_id: level.quantity
            for level in StockService.get_store_stock(store.pk)
            if level.quantity != 0
        }
        products = Product.objects.active().in_bulk(list(book))
        lines = [
            InventaireLine(
                inventaire=inventaire,
                product=product,
                theoretical_qty=book[product.pk],
                unit_cost=product.unit_cost,
                created_by=actor,
            )
            for product in products.values()
        ]
        InventaireLine.objects.bulk_create(lines)

        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='Inventaire',
            object_id=str(inventaire.pk),
            new_values={
                'numero': inventaire.numero,
                'store_id': store.pk,
                'lines': len(lines),
                'resubmission_of': resubmission_of.pk if resubmission_of else None,
            },
        )
        logger.info('Inventory count %s opened for %s with %d lines', inventaire.numero, store.code, len(lines))
        return inventaire

    @staticmethod
    @transaction.atomic
    def record_counts(inventaire_id, lines: list[dict], *, actor) -> Inventaire:
        """
        Capture physical quantities while the count is IN_PROGRESS. Partial
        input is fine; a product missing from the snapshot gets a new line.
        """
        inventaire = _get(inventaire_id, for_update=True)
        StockPolicy.authorize(actor, Action.RECORD_COUNTS, store_id=inventaire.store_id)
        InventaireService._record(inventaire, lines, actor=actor)
        return inventaire

    @staticmethod
    def _record(inventaire: Inventaire, lines: list[dict], *, actor) -> None:
        if inventaire.status != Status.IN_PROGRESS:
            raise InvalidStateTransition(detail=f'Count {inventaire.numero} is {inventaire.status}; counts are closed.')
        existing = {line.product_id: line for line in inventaire.lines.all()}
        for row in lines:
            product = active_product(row['product_id'])
            physical = to_quantity(row['physical_qty'], 'physical_qty')
            if physical < 0:
                raise ValidationError(detail=f'physical_qty for {product.code} must not be negative.')
            line = existing.get(product.pk)
            if line is None:
                line = InventaireLine(
                    inventaire=inventaire,
                    product=product,
                    theoretical_qty=queries.signed_quantity(inventaire.store_id, product.pk),
                    unit_cost=product.unit_cost,
                    created_by=actor,
                )
                existing[product.pk] = line
            line.physical_qty = physical
            if row.get('comment'):
                line.comment = row['comment']
            line.updated_by = actor
            line.save()
        logger.debug('Inventory count %s: %d lines recorded', inventaire.numero, len(lines))

    @staticmethod
    @transaction.atomic
    def submit_count(inventaire_id, lines: list[dict] | None = None, *, actor) -> Inventaire:
        """
        IN_PROGRESS → PENDING_VALIDATION. Every line must carry a physical
        quantity; variances, values and severities are frozen here.
        """
        inventaire = _get(inventaire_id, for_update=True)
        StockPolicy.authorize(actor, Action.SUBMIT_COUNT, store_id=inventaire.store_id)
        _assert_transition(inventaire, Status.PENDING_VALIDATION)
        if lines:
            InventaireService._record(inventaire, lines, actor=actor)

        count_lines = list(inventaire.lines.select_related('product'))
        uncounted = [line.product.code for line in count_lines if line.physical_qty is None]
        if uncounted:
            raise ValidationError(detail=f'Missing physical quantities for: {", ".join(uncounted)}.')

        bands = freshstock_setting('COUNT_SEVERITY_BANDS')
        total_variance = Decimal('0')
        total_value = Decimal('0')
        for line in count_lines:
            line.variance = line.physical_qty - line.theoretical_qty
            line.variance_value = (line.variance * line.unit_cost).quantize(VALUE_EXPONENT, rounding=ROUND_HALF_UP)
            line.severity = line_severity(line.variance, line.theoretical_qty, bands)
            total_variance += line.variance
            total_value += line.variance_value
        InventaireLine.objects.bulk_update(count_lines, ['variance', 'variance_value', 'severity'])

        inventaire = _apply_transition(
            inventaire, Status.PENDING_VALIDATION, actor=actor,
            submitted_at=timezone.now(), submitted_by=actor,
            total_variance=total_variance, variance_value=total_value,
        )
        discrepant = [line for line in count_lines if line.variance]
        if discrepant:
            logger.warning(
                'Inventory count %s submitted with %d discrepant lines (value %s).',
                inventaire.numero, len(discrepant), total_value,
            )
        count_submitted.send(sender=Inventaire, inventaire=inventaire, actor=actor)
        return inventaire

    @staticmethod
    @transaction.atomic
    def validate_inventaire(inventaire_id, *, actor, expected_version=None) -> Inventaire:
        """
        PENDING_VALIDATION → VALIDATED. Writes one COUNT_ADJUSTMENT per line
        with a non-zero variance in the same transaction, then checks the
        written set; any mismatch rolls everything back.
        """
        inventaire = _get(inventaire_id)
        StockPolicy.authorize(actor, Action.VALIDATE_INVENTAIRE, store_id=inventaire.store_id)
        _check_version(inventaire, expected_version)

        inventaire = _apply_transition(
            inventaire, Status.VALIDATED, actor=actor,
            validated_at=timezone.now(), validated_by=actor,
        )

        adjustments = [line for line in inventaire.lines.select_related('product') if line.variance]
        for line in adjustments:
            StockService.append_movement(
                store_id=inventaire.store_id,
                product_id=line.product_id,
                movement_type=StockMovement.MovementType.COUNT_ADJUSTMENT,
                quantity=line.variance,
                reason=f'Count {inventaire.numero}',
                comment=line.comment,
                actor=actor,
                reference_id=inventaire.pk,
                reference_type=REFERENCE_TYPE,
                enforce_available=False,
            )
        InventaireService._verify_adjustments(inventaire, adjustments)
        return inventaire

    @staticmethod
    def _verify_adjustments(inventaire: Inventaire, adjustments: list[InventaireLine]) -> None:
        written = StockMovement.objects.filter(
            reference_type=REFERENCE_TYPE,
            reference_id=inventaire.pk,
            movement_type=StockMovement.MovementType.COUNT_ADJUSTMENT,
        )
        count = written.count()
        total = written.aggregate(total=Sum('quantity'))['total'] or Decimal('0')
        expected_total = sum((line.variance for line in adjustments), Decimal('0'))
        if count != len(adjustments) or total != expected_total:
            logger.critical(
                'Ledger integrity error on count %s: %d adjustments totalling %s written, '
                '%d totalling %s expected.',
                inventaire.numero, count, total, len(adjustments), expected_total,
            )
            raise LedgerIntegrityError(
                detail=f'Count {inventaire.numero}: adjustments do not match the validated variances.',
            )

    @staticmethod
    @transaction.atomic
    def reject_inventaire(inventaire_id, *, actor, reason: str, expected_version=None) -> Inventaire:
        """PENDING_VALIDATION → REJECTED. The ledger is left untouched."""
        inventaire = _get(inventaire_id)
        StockPolicy.authorize(actor, Action.REJECT_INVENTAIRE, store_id=inventaire.store_id)
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError(detail='A rejection reason is required.')
        _check_version(inventaire, expected_version)
        return _apply_transition(
            inventaire, Status.REJECTED, actor=actor,
            rejected_at=timezone.now(), rejected_by=actor, rejection_reason=reason,
        )

    @staticmethod
    @transaction.atomic
    def resubmit_inventaire(inventaire_id, *, actor) -> Inventaire:
        """
        Redo a rejected count: a new IN_PROGRESS count with a fresh snapshot,
        pre-filled with the physical quantities of the rejected one.
        """
        rejected = _get(inventaire_id, for_update=True)
        StockPolicy.authorize(actor, Action.RESUBMIT_INVENTAIRE, store_id=rejected.store_id)
        if rejected.status != Status.REJECTED:
            raise InvalidStateTransition(detail='Only REJECTED counts can be resubmitted.')
        if rejected.resubmissions.exists():
            raise DuplicateResourceError(detail=f'Count {rejected.numero} was already resubmitted.')

        inventaire = InventaireService._open(
            rejected.store_id, actor=actor,
            comment=rejected.comment, resubmission_of=rejected,
        )
        previous = [
            {'product_id': line.product_id, 'physical_qty': line.physical_qty, 'comment': line.comment}
            for line in rejected.lines.select_related('product')
            if line.physical_qty is not None and line.product.is_active
        ]
        if previous:
            InventaireService._record(inventaire, previous, actor=actor)
        logger.info('Inventory count %s resubmitted as %s', rejected.numero, inventaire.numero)
        return inventaire
