"""
Tests — VarianceDetector rules over a controlled ledger.

@file alerts/tests/test_detector.py
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.test import override_settings
from django.utils import timezone

from alerts.detector import (
    VarianceDetector,
    end_of_day,
    loss_excess_severity,
)
from alerts.models import StockThreshold, VarianceAlert
from core.models import SeverityChoices
from tests.factories import LossFactory, StockMovementFactory, StockThresholdFactory


pytestmark = pytest.mark.django_db

DAY = timedelta(days=1)

HIGH_CRITICAL_LINE = {'LOSS_RATE_THRESHOLDS': {'acceptable': '5', 'warning': '10', 'critical': '60'}}


def _arrival(store, product, qty, ago=timedelta(0)):
    return StockMovementFactory(store=store, product=product, quantity=Decimal(qty), recorded_at=timezone.now() - ago)


def _loss(store, product, qty, ago=timedelta(0), category='SPOILAGE'):
    return LossFactory(
        store=store, product=product, quantity=-Decimal(qty),
        loss_category=category, recorded_at=timezone.now() - ago,
    )


class TestHelpers:
    def test_end_of_day_is_stable_within_a_day(self):
        now = timezone.now()
        local_midnight = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)
        assert end_of_day(now) == local_midnight + DAY
        assert end_of_day(local_midnight) == end_of_day(local_midnight + timedelta(hours=23))

    @pytest.mark.parametrize('excess,expected', [
        (Decimal('0.1'), SeverityChoices.LOW),
        (Decimal('5'), SeverityChoices.MEDIUM),
        (Decimal('12'), SeverityChoices.HIGH),
        (Decimal('20'), SeverityChoices.CRITICAL),
    ])
    def test_loss_excess_severity(self, excess, expected):
        assert loss_excess_severity(excess) == expected


class TestAbnormalLoss:
    def test_no_history_uses_warning_threshold(self, store, product):
        _arrival(store, product, '100')
        _loss(store, product, '30')
        candidates = VarianceDetector(store).abnormal_loss()
        assert len(candidates) == 2
        store_wide = next(c for c in candidates if c.product_id is None)
        assert store_wide.current_value == Decimal('30.00')
        assert store_wide.expected_value == Decimal('10')
        assert store_wide.threshold == Decimal('15')
        # 30% is past the 15% critical line
        assert store_wide.severity == SeverityChoices.CRITICAL
        assert store_wide.alert_type == VarianceAlert.AlertType.ABNORMAL_LOSS

    def test_history_raises_the_baseline(self, store, product):
        _arrival(store, product, '100', ago=10 * DAY)
        _loss(store, product, '20', ago=10 * DAY)
        _arrival(store, product, '100')
        _loss(store, product, '30')
        with override_settings(FRESHSTOCK=HIGH_CRITICAL_LINE):
            candidates = VarianceDetector(store).abnormal_loss()
        store_wide = next(c for c in candidates if c.product_id is None)
        assert store_wide.expected_value == Decimal('20')
        assert store_wide.threshold == Decimal('25')
        assert store_wide.severity == SeverityChoices.MEDIUM

    def test_severity_follows_excess_below_the_critical_line(self, store, product):
        _arrival(store, product, '100')
        _loss(store, product, '30')
        with override_settings(FRESHSTOCK=HIGH_CRITICAL_LINE):
            candidates = VarianceDetector(store).abnormal_loss()
        store_wide = next(c for c in candidates if c.product_id is None)
        assert store_wide.severity == SeverityChoices.HIGH

    def test_rate_past_critical_line_is_critical_despite_history(self, store, product):
        _arrival(store, product, '100', ago=10 * DAY)
        _loss(store, product, '14', ago=10 * DAY)
        _arrival(store, product, '100')
        _loss(store, product, '20')
        candidates = VarianceDetector(store).abnormal_loss()
        store_wide = next(c for c in candidates if c.product_id is None)
        # 1 point above the 19% threshold, but 20% is past the 15% critical line
        assert store_wide.threshold == Decimal('19')
        assert store_wide.severity == SeverityChoices.CRITICAL

    def test_usual_rate_is_quiet(self, store, product):
        _arrival(store, product, '100')
        _loss(store, product, '8')
        assert VarianceDetector(store).abnormal_loss() == []

    def test_no_arrivals_is_quiet(self, store, product):
        _loss(store, product, '8')
        assert VarianceDetector(store).abnormal_loss() == []


class TestSpoilageShare:
    def test_spoilage_dominates(self, store, product):
        _loss(store, product, '8', category='SPOILAGE')
        _loss(store, product, '2', category='PROMOTION')
        (candidate,) = VarianceDetector(store).spoilage_share()
        assert candidate.current_value == Decimal('80.00')
        assert candidate.severity == SeverityChoices.HIGH

    def test_mixed_losses_are_quiet(self, store, product):
        _loss(store, product, '5', category='SPOILAGE')
        _loss(store, product, '5', category='DAMAGE')
        assert VarianceDetector(store).spoilage_share() == []


class TestDailyLoss:
    def test_spike_against_daily_average(self, store, product):
        for days in (5, 10, 20):
            _loss(store, product, '10', ago=days * DAY)
        _loss(store, product, '4')
        (candidate,) = VarianceDetector(store).daily_loss()
        assert candidate.expected_value == Decimal('1')
        assert candidate.threshold == Decimal('3')
        assert candidate.severity == SeverityChoices.HIGH

    def test_large_spike_is_critical(self, store, product):
        for days in (5, 10, 20):
            _loss(store, product, '10', ago=days * DAY)
        _loss(store, product, '9')
        (candidate,) = VarianceDetector(store).daily_loss()
        assert candidate.severity == SeverityChoices.CRITICAL

    def test_no_history_is_quiet(self, store, product):
        _loss(store, product, '50')
        assert VarianceDetector(store).daily_loss() == []


class TestUnusualFlow:
    def test_faster_depletion(self, store, product):
        _loss(store, product, '30', ago=20 * DAY)
        _loss(store, product, '21')
        (candidate,) = VarianceDetector(store).unusual_flow()
        assert candidate.product_id == product.pk
        assert candidate.severity == SeverityChoices.HIGH
        assert 'faster' in candidate.message

    def test_slower_depletion(self, store, product):
        _loss(store, product, '30', ago=20 * DAY)
        (candidate,) = VarianceDetector(store).unusual_flow()
        assert 'slower' in candidate.message

    def test_product_without_history_is_skipped(self, store, product):
        _loss(store, product, '21')
        assert VarianceDetector(store).unusual_flow() == []


class TestThresholds:
    def test_stock_below_threshold(self, store, product):
        _arrival(store, product, '3')
        threshold = StockThresholdFactory(store=store, product=product)
        (candidate,) = VarianceDetector(store).thresholds_exceeded()
        assert candidate.alert_type == VarianceAlert.AlertType.THRESHOLD_EXCEEDED
        assert candidate.rule == f'threshold:{threshold.pk}'
        assert candidate.current_value == Decimal('3')
        assert candidate.severity == SeverityChoices.HIGH

    def test_stock_above_threshold_is_quiet(self, store, product):
        _arrival(store, product, '30')
        StockThresholdFactory(store=store, product=product)
        assert VarianceDetector(store).thresholds_exceeded() == []

    def test_inactive_threshold_ignored(self, store, product):
        _arrival(store, product, '3')
        StockThresholdFactory(store=store, product=product, is_active=False)
        assert VarianceDetector(store).thresholds_exceeded() == []

    def test_daily_losses_above(self, store, product):
        _loss(store, product, '12')
        StockThresholdFactory(
            store=store, product=None,
            metric=StockThreshold.Metric.DAILY_LOSSES,
            operator=StockThreshold.Operator.ABOVE,
            value=Decimal('10'),
        )
        (candidate,) = VarianceDetector(store).thresholds_exceeded()
        assert candidate.product_id is None
        assert candidate.current_value == Decimal('12')


class TestRun:
    def test_failing_rule_is_logged_and_skipped(self, store, product):
        _loss(store, product, '8', category='SPOILAGE')

        def broken(self):
            raise RuntimeError('boom')

        with mock.patch.object(VarianceDetector, 'abnormal_loss', broken), \
                mock.patch('alerts.detector.logger') as logger:
            candidates = VarianceDetector(store).run()
        logger.exception.assert_called_once()
        assert [c.rule for c in candidates] == ['spoilage_share']
