"""
Tests — InventaireService: snapshot, counting, submission variances,
validation adjustments, rejection, resubmission and the concurrency
guards around them.

@file inventory/tests/test_services.py
"""

from decimal import Decimal
from unittest import mock

import pytest

from alerts.models import VarianceAlert
from core.exceptions import (
    ConcurrencyConflict,
    DuplicateResourceError,
    InvalidStateTransition,
    LedgerIntegrityError,
    PermissionDeniedError,
    ValidationError,
)
from core.models import SeverityChoices
from inventory.models import Inventaire
from inventory.services import InventaireService, line_severity
from stock.models import StockMovement
from stock.services import StockService
from tests.factories import InventaireFactory, ProductFactory, StockMovementFactory, make_director


pytestmark = pytest.mark.django_db

Status = Inventaire.StatusChoices


def _submitted(store, product, manager, physical='97'):
    inventaire = InventaireService.create_inventaire(store.pk, actor=manager)
    return InventaireService.submit_count(
        inventaire.pk, [{'product_id': product.pk, 'physical_qty': physical}], actor=manager,
    )


class TestLineSeverity:
    @pytest.mark.parametrize('variance,theoretical,expected', [
        ('0', '100', SeverityChoices.LOW),
        ('-0.5', '100', SeverityChoices.LOW),
        ('-1', '100', SeverityChoices.MEDIUM),
        ('4.99', '100', SeverityChoices.MEDIUM),
        ('-5', '100', SeverityChoices.HIGH),
        ('10', '100', SeverityChoices.CRITICAL),
        ('3', '0', SeverityChoices.CRITICAL),
    ])
    def test_bands(self, variance, theoretical, expected):
        assert line_severity(Decimal(variance), Decimal(theoretical)) == expected


class TestCreateInventaire:
    def test_snapshot_of_book_quantities(self, store, product, stocked, manager):
        StockMovementFactory(store=store, quantity=Decimal('0.5'))
        inventaire = InventaireService.create_inventaire(store.pk, actor=manager)
        assert inventaire.status == Status.IN_PROGRESS
        assert inventaire.numero.startswith('INV-')
        lines = {line.product_id: line for line in inventaire.lines.all()}
        assert len(lines) == 2
        assert lines[product.pk].theoretical_qty == Decimal('100')
        assert lines[product.pk].unit_cost == Decimal('2.00')

    def test_one_active_count_per_store(self, store, stocked, manager):
        InventaireService.create_inventaire(store.pk, actor=manager)
        with pytest.raises(DuplicateResourceError):
            InventaireService.create_inventaire(store.pk, actor=manager)

    def test_number_taken_concurrently_is_retried(self, store, stocked, manager):
        InventaireFactory(numero='INV-2031-0001')
        with mock.patch(
            'core.numbering.next_document_number', side_effect=['INV-2031-0001', 'INV-2031-0002'],
        ):
            inventaire = InventaireService.create_inventaire(store.pk, actor=manager)
        assert inventaire.numero == 'INV-2031-0002'
        assert inventaire.status == Status.IN_PROGRESS

    def test_clerk_cannot_open_count(self, store, clerk):
        with pytest.raises(PermissionDeniedError):
            InventaireService.create_inventaire(store.pk, actor=clerk)


class TestRecordAndSubmit:
    def test_clerk_records_counts(self, store, product, stocked, manager, clerk):
        inventaire = InventaireService.create_inventaire(store.pk, actor=manager)
        InventaireService.record_counts(
            inventaire.pk, [{'product_id': product.pk, 'physical_qty': '98.250'}], actor=clerk,
        )
        assert inventaire.lines.get().physical_qty == Decimal('98.250')

    def test_unexpected_product_gets_a_line(self, store, stocked, manager):
        inventaire = InventaireService.create_inventaire(store.pk, actor=manager)
        found = ProductFactory()
        InventaireService.record_counts(
            inventaire.pk, [{'product_id': found.pk, 'physical_qty': '4'}], actor=manager,
        )
        line = inventaire.lines.get(product=found)
        assert line.theoretical_qty == 0
        assert line.physical_qty == Decimal('4')

    def test_negative_count_rejected(self, store, product, stocked, manager):
        inventaire = InventaireService.create_inventaire(store.pk, actor=manager)
        with pytest.raises(ValidationError):
            InventaireService.record_counts(
                inventaire.pk, [{'product_id': product.pk, 'physical_qty': '-1'}], actor=manager,
            )

    def test_submit_computes_variances(self, store, product, stocked, manager):
        inventaire = _submitted(store, product, manager)
        assert inventaire.status == Status.PENDING_VALIDATION
        assert inventaire.version == 2
        assert inventaire.total_variance == Decimal('-3')
        assert inventaire.variance_value == Decimal('-6.00')
        line = inventaire.lines.get()
        assert line.variance == Decimal('-3')
        assert line.severity == SeverityChoices.MEDIUM
        # Submission never touches the ledger.
        assert StockService.get_stock_level(store.pk, product.pk).quantity == Decimal('100')

    def test_submit_requires_every_line(self, store, product, stocked, manager):
        StockMovementFactory(store=store, quantity=Decimal('3'))
        inventaire = InventaireService.create_inventaire(store.pk, actor=manager)
        with pytest.raises(ValidationError):
            InventaireService.submit_count(
                inventaire.pk, [{'product_id': product.pk, 'physical_qty': '100'}], actor=manager,
            )

    def test_counts_closed_after_submission(self, store, product, stocked, manager):
        inventaire = _submitted(store, product, manager)
        with pytest.raises(InvalidStateTransition):
            InventaireService.record_counts(
                inventaire.pk, [{'product_id': product.pk, 'physical_qty': '1'}], actor=manager,
            )

    def test_large_variance_raises_alert(self, store, product, stocked, manager):
        inventaire = _submitted(store, product, manager, physical='80')
        alert = VarianceAlert.objects.get()
        assert alert.alert_type == VarianceAlert.AlertType.INVENTORY_DISCREPANCY
        assert alert.severity == SeverityChoices.CRITICAL
        assert alert.reference_id == inventaire.pk
        assert alert.product == product

    def test_small_variance_raises_no_alert(self, store, product, stocked, manager):
        _submitted(store, product, manager, physical='97')
        assert not VarianceAlert.objects.exists()


class TestValidate:
    def test_validation_writes_adjustments(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager)
        inventaire = InventaireService.validate_inventaire(inventaire.pk, actor=director, expected_version=2)
        assert inventaire.status == Status.VALIDATED
        assert inventaire.validated_by == director
        adjustment = StockMovement.objects.get(reference_id=inventaire.pk)
        assert adjustment.movement_type == StockMovement.MovementType.COUNT_ADJUSTMENT
        assert adjustment.quantity == Decimal('-3')
        assert StockService.get_stock_level(store.pk, product.pk).quantity == Decimal('97')

    def test_zero_variance_lines_not_adjusted(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager, physical='100')
        InventaireService.validate_inventaire(inventaire.pk, actor=director)
        assert not StockMovement.objects.filter(reference_id=inventaire.pk).exists()

    def test_manager_cannot_validate(self, store, product, stocked, manager):
        inventaire = _submitted(store, product, manager)
        with pytest.raises(PermissionDeniedError):
            InventaireService.validate_inventaire(inventaire.pk, actor=manager)
        inventaire.refresh_from_db()
        assert inventaire.status == Status.PENDING_VALIDATION

    def test_second_director_loses(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager)
        other = make_director()
        InventaireService.validate_inventaire(inventaire.pk, actor=director, expected_version=2)
        with pytest.raises(ConcurrencyConflict):
            InventaireService.validate_inventaire(inventaire.pk, actor=other, expected_version=2)
        with pytest.raises(ConcurrencyConflict):
            InventaireService.reject_inventaire(inventaire.pk, actor=other, reason='late', expected_version=2)
        assert StockMovement.objects.filter(reference_id=inventaire.pk).count() == 1

    def test_second_validation_without_version_conflicts(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager)
        InventaireService.validate_inventaire(inventaire.pk, actor=director)
        with pytest.raises(ConcurrencyConflict):
            InventaireService.validate_inventaire(inventaire.pk, actor=make_director())
        adjustments = StockMovement.objects.filter(reference_id=inventaire.pk)
        assert adjustments.count() == 1
        assert adjustments.get().quantity == Decimal('-3')
        assert StockService.get_stock_level(store.pk, product.pk).quantity == Decimal('97')

    def test_validated_cannot_be_rejected(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager)
        InventaireService.validate_inventaire(inventaire.pk, actor=director)
        with pytest.raises(ConcurrencyConflict):
            InventaireService.reject_inventaire(inventaire.pk, actor=director, reason='changed my mind')
        inventaire.refresh_from_db()
        assert inventaire.status == Status.VALIDATED

    def test_rejected_cannot_be_validated(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager)
        InventaireService.reject_inventaire(inventaire.pk, actor=director, reason='recount aisle 3')
        with pytest.raises(ConcurrencyConflict):
            InventaireService.validate_inventaire(inventaire.pk, actor=director)
        assert not StockMovement.objects.filter(reference_id=inventaire.pk).exists()

    def test_in_progress_cannot_be_validated(self, store, stocked, manager, director):
        inventaire = InventaireService.create_inventaire(store.pk, actor=manager)
        with pytest.raises(InvalidStateTransition):
            InventaireService.validate_inventaire(inventaire.pk, actor=director)

    def test_failed_adjustment_rolls_back_status(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager)
        with mock.patch(
            'inventory.services.StockService.append_movement',
            side_effect=LedgerIntegrityError(),
        ):
            with pytest.raises(LedgerIntegrityError):
                InventaireService.validate_inventaire(inventaire.pk, actor=director)
        inventaire.refresh_from_db()
        assert inventaire.status == Status.PENDING_VALIDATION
        assert inventaire.version == 2

    def test_adjustment_can_empty_stock(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager, physical='0')
        InventaireService.validate_inventaire(inventaire.pk, actor=director)
        assert StockService.get_stock_level(store.pk, product.pk).quantity == 0


class TestRejectAndResubmit:
    def test_reject_leaves_ledger_untouched(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager)
        inventaire = InventaireService.reject_inventaire(inventaire.pk, actor=director, reason='Recount the cold room')
        assert inventaire.status == Status.REJECTED
        assert inventaire.rejection_reason == 'Recount the cold room'
        assert not StockMovement.objects.filter(reference_id=inventaire.pk).exists()

    def test_reject_requires_reason(self, store, product, stocked, manager, director):
        inventaire = _submitted(store, product, manager)
        with pytest.raises(ValidationError):
            InventaireService.reject_inventaire(inventaire.pk, actor=director, reason='  ')

    def test_resubmit_creates_linked_count(self, store, product, stocked, manager, director):
        rejected = _submitted(store, product, manager)
        InventaireService.reject_inventaire(rejected.pk, actor=director, reason='Recount')
        redo = InventaireService.resubmit_inventaire(rejected.pk, actor=manager)
        assert redo.pk != rejected.pk
        assert redo.status == Status.IN_PROGRESS
        assert redo.resubmission_of_id == rejected.pk
        assert redo.lines.get().physical_qty == Decimal('97')

    def test_resubmit_only_once(self, store, product, stocked, manager, director):
        rejected = _submitted(store, product, manager)
        InventaireService.reject_inventaire(rejected.pk, actor=director, reason='Recount')
        InventaireService.resubmit_inventaire(rejected.pk, actor=manager)
        with pytest.raises(DuplicateResourceError):
            InventaireService.resubmit_inventaire(rejected.pk, actor=manager)

    def test_only_rejected_can_be_resubmitted(self, store, product, stocked, manager):
        inventaire = _submitted(store, product, manager)
        with pytest.raises(InvalidStateTransition):
            InventaireService.resubmit_inventaire(inventaire.pk, actor=manager)
