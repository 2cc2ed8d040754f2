"""
Tests — LossRateService: loss rate formula, status bands, trend.

@file analytics/tests/test_services.py
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from analytics.services import LossRateService, LossRateStatus, TrendDirection, percentage
from core.exceptions import ValidationError
from tests.factories import LossFactory, ProductFactory, StockMovementFactory, StoreFactory


THRESHOLDS_5_10 = {'acceptable': Decimal('5'), 'warning': Decimal('10'), 'critical': Decimal('15')}
THRESHOLDS_10_15 = {'acceptable': Decimal('10'), 'warning': Decimal('15'), 'critical': Decimal('20')}


class TestClassify:
    def test_rate_at_acceptable_bound_is_acceptable(self):
        assert LossRateService.classify(Decimal('5.0'), THRESHOLDS_5_10) == LossRateStatus.ACCEPTABLE

    def test_rate_at_warning_bound_is_warning(self):
        assert LossRateService.classify(Decimal('10'), THRESHOLDS_5_10) == LossRateStatus.WARNING

    def test_rate_above_warning_is_critical(self):
        assert LossRateService.classify(Decimal('10.01'), THRESHOLDS_5_10) == LossRateStatus.CRITICAL

    def test_bands_follow_configured_thresholds(self):
        assert LossRateService.classify(Decimal('10.01'), THRESHOLDS_10_15) != LossRateStatus.ACCEPTABLE
        assert LossRateService.classify(Decimal('12'), THRESHOLDS_10_15) == LossRateStatus.WARNING

    def test_percentage_of_zero_is_zero(self):
        assert percentage(Decimal('3'), Decimal('0')) == 0


@pytest.mark.django_db
class TestCalculateLossRates:
    def test_loss_rate_over_week(self):
        store = StoreFactory()
        end = timezone.now()
        StockMovementFactory(store=store, quantity=Decimal('200'), recorded_at=end - timedelta(days=2))
        LossFactory(store=store, quantity=Decimal('-10'), recorded_at=end - timedelta(days=1))
        LossFactory(store=store, quantity=Decimal('-6'), loss_category='DAMAGE', recorded_at=end - timedelta(days=1))
        # Outside the week.
        LossFactory(store=store, quantity=Decimal('-50'), recorded_at=end - timedelta(days=8))

        report = LossRateService.calculate_loss_rates(store.pk, 'week', end=end, thresholds=THRESHOLDS_5_10)
        assert report.total_arrivals == Decimal('200')
        assert report.total_losses == Decimal('16')
        assert report.loss_rate == Decimal('8.00')
        assert report.status == LossRateStatus.WARNING
        assert report.breakdown['SPOILAGE'] == Decimal('10')
        assert report.breakdown['DAMAGE'] == Decimal('6')

    def test_twelve_lost_out_of_a_hundred(self):
        store = StoreFactory()
        end = timezone.now()
        StockMovementFactory(store=store, quantity=Decimal('100'), recorded_at=end - timedelta(days=3))
        LossFactory(store=store, quantity=Decimal('-12'), recorded_at=end - timedelta(days=1))

        report = LossRateService.calculate_loss_rates(store.pk, 'week', end=end, thresholds=THRESHOLDS_10_15)
        assert report.loss_rate == Decimal('12.00')
        assert report.status == LossRateStatus.WARNING
        # settings thresholds are 5 / 10
        default = LossRateService.calculate_loss_rates(store.pk, 'week', end=end)
        assert default.loss_rate == Decimal('12.00')
        assert default.status == LossRateStatus.CRITICAL

    def test_no_arrivals_means_zero_rate(self):
        store = StoreFactory()
        end = timezone.now()
        LossFactory(store=store, quantity=Decimal('-4'), recorded_at=end - timedelta(days=1))
        report = LossRateService.calculate_loss_rates(store.pk, 'week', end=end)
        assert report.loss_rate == 0
        assert report.status == LossRateStatus.ACCEPTABLE

    def test_month_window_is_thirty_days(self):
        store = StoreFactory()
        end = timezone.now()
        StockMovementFactory(store=store, quantity=Decimal('10'), recorded_at=end - timedelta(days=29))
        report = LossRateService.calculate_loss_rates(store.pk, 'month', end=end)
        assert report.total_arrivals == Decimal('10')
        assert report.start == end - timedelta(days=30)

    def test_same_snapshot_same_report(self):
        store = StoreFactory()
        end = timezone.now()
        StockMovementFactory(store=store, quantity=Decimal('50'), recorded_at=end - timedelta(days=1))
        LossFactory(store=store, quantity=Decimal('-5'), recorded_at=end - timedelta(days=1))
        first = LossRateService.calculate_loss_rates(store.pk, 'week', end=end)
        second = LossRateService.calculate_loss_rates(store.pk, 'week', end=end)
        assert first == second

    def test_product_filter(self):
        store = StoreFactory()
        product = ProductFactory()
        end = timezone.now()
        StockMovementFactory(store=store, product=product, quantity=Decimal('10'), recorded_at=end - timedelta(days=1))
        LossFactory(store=store, product=product, quantity=Decimal('-5'), recorded_at=end - timedelta(days=1))
        LossFactory(store=store, quantity=Decimal('-5'), recorded_at=end - timedelta(days=1))
        report = LossRateService.calculate_loss_rates(store.pk, 'week', product_id=product.pk, end=end)
        assert report.loss_rate == Decimal('50.00')

    def test_unknown_period(self):
        with pytest.raises(ValidationError):
            LossRateService.calculate_loss_rates(StoreFactory().pk, 'year')

    def test_product_reports_sorted_by_rate(self):
        store = StoreFactory()
        end = timezone.now()
        low, high = ProductFactory(), ProductFactory()
        for product, lost in ((low, '-1'), (high, '-5')):
            StockMovementFactory(store=store, product=product, quantity=Decimal('10'), recorded_at=end - timedelta(days=1))
            LossFactory(store=store, product=product, quantity=Decimal(lost), recorded_at=end - timedelta(days=1))
        reports = LossRateService.calculate_product_loss_rates(store.pk, 'week', end=end)
        assert [r.product_id for r in reports] == [high.pk, low.pk]


@pytest.mark.django_db
class TestTrend:
    def _week(self, store, end, weeks_ago, arrivals, losses):
        at = end - timedelta(days=7 * weeks_ago + 1)
        StockMovementFactory(store=store, quantity=Decimal(arrivals), recorded_at=at)
        LossFactory(store=store, quantity=-Decimal(losses), recorded_at=at)

    def test_improving(self):
        store = StoreFactory()
        end = timezone.now()
        self._week(store, end, 1, '100', '20')
        self._week(store, end, 0, '100', '10')
        trend = LossRateService.calculate_trend(store.pk, 'week', end=end)
        assert trend.previous.loss_rate == Decimal('20.00')
        assert trend.current.loss_rate == Decimal('10.00')
        assert trend.change_percentage == Decimal('-50.00')
        assert trend.direction == TrendDirection.IMPROVING

    def test_worsening(self):
        store = StoreFactory()
        end = timezone.now()
        self._week(store, end, 1, '100', '10')
        self._week(store, end, 0, '100', '20')
        assert LossRateService.calculate_trend(store.pk, 'week', end=end).direction == TrendDirection.WORSENING

    def test_stable_within_band(self):
        store = StoreFactory()
        end = timezone.now()
        self._week(store, end, 1, '100', '10')
        self._week(store, end, 0, '1000', '102')
        trend = LossRateService.calculate_trend(store.pk, 'week', end=end, stable_band=Decimal('5'))
        assert trend.direction == TrendDirection.STABLE

    def test_no_previous_losses_is_stable(self):
        store = StoreFactory()
        end = timezone.now()
        self._week(store, end, 0, '100', '10')
        trend = LossRateService.calculate_trend(store.pk, 'week', end=end)
        assert trend.change_percentage == 0
        assert trend.direction == TrendDirection.STABLE
