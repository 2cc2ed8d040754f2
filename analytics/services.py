"""
Analytics — Loss-Rate Analyzer

Loss rates are derived on demand from the movement ledger and never
persisted. For a window [end - length, end):

    total_arrivals = sum of ARRIVAL quantities
    total_losses   = |sum of LOSS quantities|
    loss_rate      = total_losses / total_arrivals * 100   (0 when no arrivals)

With an explicit ``end`` the result depends only on the ledger contents,
so two calls over the same snapshot give equal reports.

@file analytics/services.py
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from django.utils import timezone

from core.config import freshstock_setting
from core.exceptions import ValidationError
from stock import queries

logger = logging.getLogger('freshstock')

ZERO = Decimal('0')
HUNDRED = Decimal('100')
RATE_EXPONENT = Decimal('0.01')

PERIOD_DAYS = {
    'week': 7,
    'month': 30,
}


class LossRateStatus:
    ACCEPTABLE = 'ACCEPTABLE'
    WARNING = 'WARNING'
    CRITICAL = 'CRITICAL'


class TrendDirection:
    IMPROVING = 'IMPROVING'
    STABLE = 'STABLE'
    WORSENING = 'WORSENING'


@dataclass(frozen=True)
class LossRateReport:
    store_id: object
    product_id: object
    period: str
    start: datetime
    end: datetime
    total_arrivals: Decimal
    total_losses: Decimal
    loss_rate: Decimal
    breakdown: dict
    status: str
    generated_at: datetime = field(default_factory=timezone.now, compare=False)


@dataclass(frozen=True)
class LossRateTrend:
    current: LossRateReport
    previous: LossRateReport
    change_percentage: Decimal
    direction: str


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100, rounded to 2 places; 0 when whole is 0."""
    if not whole:
        return ZERO
    return (Decimal(part) / Decimal(whole) * HUNDRED).quantize(RATE_EXPONENT, rounding=ROUND_HALF_UP)


def period_window(period: str, end: datetime | None = None) -> tuple[datetime, datetime]:
    if period not in PERIOD_DAYS:
        raise ValidationError(detail=f'Unknown period {period!r}; expected one of {sorted(PERIOD_DAYS)}.')
    end = end or timezone.now()
    return end - timedelta(days=PERIOD_DAYS[period]), end


class LossRateService:
    """Loss-rate reports, period-over-period trend and status classification."""

    @staticmethod
    def classify(loss_rate: Decimal, thresholds: dict | None = None) -> str:
        thresholds = thresholds or freshstock_setting('LOSS_RATE_THRESHOLDS')
        loss_rate = Decimal(loss_rate)
        if loss_rate <= Decimal(thresholds['acceptable']):
            return LossRateStatus.ACCEPTABLE
        if loss_rate <= Decimal(thresholds['warning']):
            return LossRateStatus.WARNING
        return LossRateStatus.CRITICAL

    @staticmethod
    def report_for_window(
        store_id,
        start: datetime,
        end: datetime,
        *,
        period: str = 'custom',
        product_id=None,
        thresholds: dict | None = None,
    ) -> LossRateReport:
        arrivals = queries.total_arrivals(store_id, start, end, product_id=product_id)
        losses = queries.total_losses(store_id, start, end, product_id=product_id)
        loss_rate = percentage(losses, arrivals)
        return LossRateReport(
            store_id=store_id,
            product_id=product_id,
            period=period,
            start=start,
            end=end,
            total_arrivals=arrivals,
            total_losses=losses,
            loss_rate=loss_rate,
            breakdown=queries.losses_by_category(store_id, start, end, product_id=product_id),
            status=LossRateService.classify(loss_rate, thresholds),
        )

    @staticmethod
    def calculate_loss_rates(
        store_id,
        period: str,
        *,
        product_id=None,
        end: datetime | None = None,
        thresholds: dict | None = None,
    ) -> LossRateReport:
        """Loss-rate report over the week (7 days) or month (30 days) ending at ``end``."""
        start, end = period_window(period, end)
        report = LossRateService.report_for_window(
            store_id, start, end,
            period=period, product_id=product_id, thresholds=thresholds,
        )
        logger.debug(
            'Loss rate store=%s product=%s period=%s rate=%s%%',
            store_id, product_id, period, report.loss_rate,
        )
        return report

    @staticmethod
    def calculate_product_loss_rates(
        store_id,
        period: str,
        *,
        end: datetime | None = None,
        thresholds: dict | None = None,
    ) -> list[LossRateReport]:
        """One report per product that moved in the window, highest loss rate first."""
        start, end = period_window(period, end)
        reports = [
            LossRateService.report_for_window(
                store_id, start, end,
                period=period, product_id=product_id, thresholds=thresholds,
            )
            for product_id in queries.products_with_movements(store_id, start, end)
        ]
        return sorted(reports, key=lambda r: r.loss_rate, reverse=True)

    @staticmethod
    def calculate_trend(
        store_id,
        period: str,
        *,
        product_id=None,
        end: datetime | None = None,
        stable_band: Decimal | None = None,
    ) -> LossRateTrend:
        """
        Compare the window ending at ``end`` with the immediately preceding
        window of the same length. A falling loss rate is an improvement.
        """
        current = LossRateService.calculate_loss_rates(store_id, period, product_id=product_id, end=end)
        previous = LossRateService.calculate_loss_rates(
            store_id, period, product_id=product_id, end=current.start,
        )
        band = Decimal(stable_band) if stable_band is not None else freshstock_setting('TREND_STABLE_BAND')

        if previous.loss_rate:
            change = percentage(current.loss_rate - previous.loss_rate, previous.loss_rate)
        else:
            change = ZERO

        if abs(change) < band:
            direction = TrendDirection.STABLE
        elif change < 0:
            direction = TrendDirection.IMPROVING
        else:
            direction = TrendDirection.WORSENING

        return LossRateTrend(
            current=current,
            previous=previous,
            change_percentage=change,
            direction=direction,
        )
