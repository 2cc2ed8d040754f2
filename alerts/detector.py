"""
Alerts — Variance/Anomaly Detector

Each rule looks at one store through the ledger query layer and yields
AlertCandidate objects; persisting them (and de-duplicating) is the job of
AlertService. Rules are independent: one that fails is logged and skipped
while the others still run.

Windows are anchored on the end of the current local day (``as_of``), so
repeated runs during the same day produce the same window_start and the
de-duplication key stays stable.

@file alerts/detector.py
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from django.utils import timezone

from analytics.services import LossRateService, percentage
from core.config import freshstock_setting
from core.models import SeverityChoices
from inventory.models import Inventaire
from inventory.services import line_severity
from stock import queries
from stock.services import StockService
from transfers.models import Transfert

from .models import StockThreshold, VarianceAlert

logger = logging.getLogger('freshstock')

ZERO = Decimal('0')
AlertType = VarianceAlert.AlertType
Severity = SeverityChoices

RULE_ABNORMAL_LOSS = 'abnormal_loss'
RULE_SPOILAGE_SHARE = 'spoilage_share'
RULE_DAILY_LOSS = 'daily_loss'
RULE_UNUSUAL_FLOW = 'unusual_flow'
RULE_COUNT_DISCREPANCY = 'count_discrepancy'
RULE_TRANSFER_DISCREPANCY = 'transfer_discrepancy'
RULE_THRESHOLD = 'threshold'

RECOMMENDED_ACTIONS = {
    RULE_ABNORMAL_LOSS: [
        'Review the loss entries recorded this week',
        'Check storage conditions and rotation (first in, first out)',
        'Adjust order quantities to actual sales',
    ],
    RULE_SPOILAGE_SHARE: [
        'Inspect cold chain and storage temperatures',
        'Reduce order quantities on fast-spoiling products',
        'Plan markdowns before products reach end of life',
    ],
    RULE_DAILY_LOSS: [
        "Verify today's loss entries with the store manager",
        'Look for a one-off incident (equipment failure, delivery damage)',
    ],
    RULE_UNUSUAL_FLOW: [
        'Compare recent outflow with sales and transfers',
        'Check for unrecorded losses or input errors',
        'Adjust replenishment to the new depletion rate',
    ],
    RULE_COUNT_DISCREPANCY: [
        'Recount the product before validating',
        'Review movements since the count was opened',
    ],
    RULE_TRANSFER_DISCREPANCY: [
        'Confirm quantities with the sending store',
        'Check transport conditions for damaged or spoiled goods',
    ],
    RULE_THRESHOLD: [
        'Review the configured threshold and current stock',
        'Replenish or redistribute stock if needed',
    ],
}


@dataclass
class AlertCandidate:
    alert_type: str
    severity: str
    rule: str
    title: str
    message: str
    current_value: Decimal
    expected_value: Decimal
    threshold: Decimal
    window_start: datetime
    window_end: datetime
    product_id: object = None
    reference_type: str = ''
    reference_id: object = None
    recommended_actions: list = field(default_factory=list)

    def __post_init__(self):
        if not self.recommended_actions:
            self.recommended_actions = list(RECOMMENDED_ACTIONS.get(self.rule, []))

    @property
    def variance(self) -> Decimal:
        return self.current_value - self.expected_value

    @property
    def variance_percentage(self) -> Decimal:
        return percentage(self.variance, self.expected_value)


def end_of_day(moment: datetime | None = None) -> datetime:
    """Start of the next local day."""
    local = timezone.localtime(moment or timezone.now())
    start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return start + timedelta(days=1)


def loss_excess_severity(excess: Decimal) -> str:
    """Severity by how many points the loss rate exceeds its threshold."""
    if excess < 5:
        return Severity.LOW
    if excess < 10:
        return Severity.MEDIUM
    if excess < 20:
        return Severity.HIGH
    return Severity.CRITICAL


def count_line_candidates(inventaire: Inventaire, config: dict | None = None) -> list[AlertCandidate]:
    """Count lines whose variance crosses the value or percentage threshold."""
    config = config or freshstock_setting('INVENTORY_DISCREPANCY')
    window_start = inventaire.submitted_at or inventaire.created_at
    candidates = []
    for line in inventaire.lines.select_related('product'):
        if not line.variance:
            continue
        value = abs(line.variance_value or ZERO)
        pct = line.variance_percentage
        over_value = value >= config['value_threshold']
        over_pct = pct is None or pct >= config['percentage_threshold']
        if not (over_value or over_pct):
            continue
        severity = line.severity or line_severity(line.variance, line.theoretical_qty)
        if over_value and severity in (Severity.LOW, Severity.MEDIUM):
            severity = Severity.HIGH
        candidates.append(AlertCandidate(
            alert_type=AlertType.INVENTORY_DISCREPANCY,
            severity=severity,
            rule=RULE_COUNT_DISCREPANCY,
            title=f'Count variance on {line.product.name}',
            message=(
                f'Count {inventaire.numero}: book {line.theoretical_qty}, counted {line.physical_qty} '
                f'(variance {line.variance}, value {line.variance_value}).'
            ),
            current_value=line.physical_qty,
            expected_value=line.theoretical_qty,
            threshold=config['percentage_threshold'],
            window_start=window_start,
            window_end=window_start,
            product_id=line.product_id,
            reference_type='Inventaire',
            reference_id=inventaire.pk,
        ))
    return candidates


def transfer_line_candidates(transfert: Transfert) -> list[AlertCandidate]:
    """Received transfer lines where the quantity received differs from the quantity sent."""
    window_start = transfert.received_at or transfert.updated_at
    candidates = []
    for line in transfert.lines.select_related('product'):
        if not line.discrepancy:
            continue
        condition = f', condition {line.condition}' if line.condition else ''
        candidates.append(AlertCandidate(
            alert_type=AlertType.INVENTORY_DISCREPANCY,
            severity=line_severity(line.discrepancy, line.quantity_sent),
            rule=RULE_TRANSFER_DISCREPANCY,
            title=f'Transfer discrepancy on {line.product.name}',
            message=(
                f'Transfer {transfert.numero}: sent {line.quantity_sent}, '
                f'received {line.quantity_received}{condition}.'
            ),
            current_value=line.quantity_received,
            expected_value=line.quantity_sent,
            threshold=ZERO,
            window_start=window_start,
            window_end=window_start,
            product_id=line.product_id,
            reference_type='Transfert',
            reference_id=transfert.pk,
        ))
    return candidates


class VarianceDetector:
    """Runs every rule for one store and collects the candidates."""

    def __init__(self, store, *, as_of: datetime | None = None):
        self.store = store
        self.as_of = end_of_day(as_of)
        self.today = self.as_of - timedelta(days=1)
        self.week_start = self.as_of - timedelta(days=7)

    @property
    def rules(self):
        return [
            self.abnormal_loss,
            self.spoilage_share,
            self.daily_loss,
            self.unusual_flow,
            self.inventory_discrepancies,
            self.thresholds_exceeded,
        ]

    def run(self) -> list[AlertCandidate]:
        candidates = []
        for rule in self.rules:
            try:
                candidates.extend(rule())
            except Exception:
                logger.exception('Variance rule %s failed for store %s', rule.__name__, self.store.code)
        return candidates

    # -----------------------------------------------------------------------
    # Loss rules
    # -----------------------------------------------------------------------

    def _loss_baseline(self, product_id=None) -> Decimal | None:
        """Mean weekly loss rate over the weeks before the current one (weeks without arrivals skipped)."""
        config = freshstock_setting('ABNORMAL_LOSS')
        rates = []
        for week in range(1, int(config['history_weeks']) + 1):
            end = self.as_of - timedelta(days=7 * week)
            report = LossRateService.report_for_window(
                self.store.pk, end - timedelta(days=7), end, period='week', product_id=product_id,
            )
            if report.total_arrivals:
                rates.append(report.loss_rate)
        if not rates:
            return None
        return sum(rates, ZERO) / len(rates)

    def abnormal_loss(self) -> list[AlertCandidate]:
        config = freshstock_setting('ABNORMAL_LOSS')
        thresholds = freshstock_setting('LOSS_RATE_THRESHOLDS')
        targets = [None] + queries.products_with_movements(self.store.pk, self.week_start, self.as_of)
        candidates = []
        for product_id in targets:
            current = LossRateService.report_for_window(
                self.store.pk, self.week_start, self.as_of, period='week', product_id=product_id,
            )
            if current.total_arrivals < config['min_arrivals']:
                continue
            baseline = self._loss_baseline(product_id)
            if baseline is None:
                baseline = thresholds['warning']
            threshold = baseline + config['margin_points']
            if current.loss_rate <= threshold:
                continue
            severity = loss_excess_severity(current.loss_rate - threshold)
            if current.loss_rate > thresholds['critical']:
                severity = Severity.CRITICAL
            scope = 'store-wide' if product_id is None else 'product'
            candidates.append(AlertCandidate(
                alert_type=AlertType.ABNORMAL_LOSS,
                severity=severity,
                rule=RULE_ABNORMAL_LOSS,
                title=f'Abnormal {scope} loss rate at {self.store.code}',
                message=(
                    f'Loss rate {current.loss_rate}% this week against a usual {baseline:.2f}% '
                    f'(threshold {threshold:.2f}%).'
                ),
                current_value=current.loss_rate,
                expected_value=baseline,
                threshold=threshold,
                window_start=self.week_start,
                window_end=self.as_of,
                product_id=product_id,
            ))
        return candidates

    def spoilage_share(self) -> list[AlertCandidate]:
        config = freshstock_setting('SPOILAGE_SHARE')
        breakdown = queries.losses_by_category(self.store.pk, self.week_start, self.as_of)
        total = sum(breakdown.values(), ZERO)
        if not total:
            return []
        share = percentage(breakdown['SPOILAGE'], total)
        if share <= config['threshold']:
            return []
        return [AlertCandidate(
            alert_type=AlertType.ABNORMAL_LOSS,
            severity=Severity.HIGH,
            rule=RULE_SPOILAGE_SHARE,
            title=f'Spoilage dominates losses at {self.store.code}',
            message=f'Spoilage is {share}% of losses this week ({breakdown["SPOILAGE"]} of {total}).',
            current_value=share,
            expected_value=config['expected'],
            threshold=config['threshold'],
            window_start=self.week_start,
            window_end=self.as_of,
        )]

    def daily_loss(self) -> list[AlertCandidate]:
        config = freshstock_setting('DAILY_LOSS')
        days = int(config['history_days'])
        today_losses = queries.total_losses(self.store.pk, self.today, self.as_of)
        history = queries.total_losses(self.store.pk, self.today - timedelta(days=days), self.today)
        average = history / days
        if not average:
            return []
        threshold = average * config['multiplier']
        if today_losses <= threshold:
            return []
        severity = Severity.CRITICAL if today_losses > threshold * Decimal('1.5') else Severity.HIGH
        return [AlertCandidate(
            alert_type=AlertType.ABNORMAL_LOSS,
            severity=severity,
            rule=RULE_DAILY_LOSS,
            title=f'Excessive losses today at {self.store.code}',
            message=f'{today_losses} lost today against a daily average of {average:.3f}.',
            current_value=today_losses,
            expected_value=average,
            threshold=threshold,
            window_start=self.today,
            window_end=self.as_of,
        )]

    # -----------------------------------------------------------------------
    # Flow rule
    # -----------------------------------------------------------------------

    def unusual_flow(self) -> list[AlertCandidate]:
        config = freshstock_setting('UNUSUAL_FLOW')
        recent_start = self.as_of - timedelta(days=int(config['recent_days']))
        history_start = recent_start - timedelta(days=int(config['history_days']))
        candidates = []
        for product_id in queries.products_with_movements(self.store.pk, history_start, self.as_of):
            recent = queries.outflow_per_day(self.store.pk, product_id, recent_start, self.as_of)
            usual = queries.outflow_per_day(self.store.pk, product_id, history_start, recent_start)
            if not usual:
                continue
            deviation = percentage(recent - usual, usual)
            if abs(deviation) <= config['variance_percentage']:
                continue
            direction = 'faster' if deviation > 0 else 'slower'
            candidates.append(AlertCandidate(
                alert_type=AlertType.UNUSUAL_FLOW,
                severity=Severity.HIGH if abs(deviation) > config['high_percentage'] else Severity.MEDIUM,
                rule=RULE_UNUSUAL_FLOW,
                title=f'Unusual stock flow at {self.store.code}',
                message=(
                    f'Stock is depleting {abs(deviation)}% {direction} than usual '
                    f'({recent:.3f}/day against {usual:.3f}/day).'
                ),
                current_value=recent,
                expected_value=usual,
                threshold=config['variance_percentage'],
                window_start=recent_start,
                window_end=self.as_of,
                product_id=product_id,
            ))
        return candidates

    # -----------------------------------------------------------------------
    # Count / transfer discrepancies
    # -----------------------------------------------------------------------

    def inventory_discrepancies(self) -> list[AlertCandidate]:
        candidates = []
        counts = Inventaire.objects.filter(
            store=self.store,
            status__in=[Inventaire.StatusChoices.PENDING_VALIDATION, Inventaire.StatusChoices.VALIDATED],
            submitted_at__gte=self.week_start,
        )
        for inventaire in counts:
            candidates.extend(count_line_candidates(inventaire))
        transferts = Transfert.objects.filter(
            destination_store=self.store,
            status=Transfert.StatusChoices.RECEIVED,
            received_at__gte=self.week_start,
        )
        for transfert in transferts:
            candidates.extend(transfer_line_candidates(transfert))
        return candidates

    # -----------------------------------------------------------------------
    # Configured thresholds
    # -----------------------------------------------------------------------

    def _observe(self, threshold: StockThreshold) -> Decimal:
        metric = StockThreshold.Metric
        if threshold.metric == metric.STOCK_LEVEL:
            return StockService.get_stock_level(self.store.pk, threshold.product_id).quantity
        if threshold.metric == metric.AVAILABLE_QUANTITY:
            return StockService.get_stock_level(self.store.pk, threshold.product_id).available_quantity
        if threshold.metric == metric.LOSS_RATE:
            return LossRateService.report_for_window(
                self.store.pk, self.week_start, self.as_of, product_id=threshold.product_id,
            ).loss_rate
        return queries.total_losses(self.store.pk, self.today, self.as_of, product_id=threshold.product_id)

    def thresholds_exceeded(self) -> list[AlertCandidate]:
        candidates = []
        active = StockThreshold.objects.filter(store=self.store, is_active=True).select_related('product')
        for threshold in active:
            if threshold.metric in StockThreshold.PRODUCT_METRICS and threshold.product_id is None:
                logger.warning('Threshold %s needs a product; skipped.', threshold.pk)
                continue
            observed = self._observe(threshold)
            if not threshold.is_crossed(observed):
                continue
            target = threshold.product.name if threshold.product_id else self.store.code
            candidates.append(AlertCandidate(
                alert_type=AlertType.THRESHOLD_EXCEEDED,
                severity=threshold.severity,
                rule=f'{RULE_THRESHOLD}:{threshold.pk}',
                title=f'{threshold.get_metric_display()} {threshold.get_operator_display().lower()} threshold for {target}',
                message=f'{threshold.get_metric_display()} is {observed}, threshold {threshold.operator} {threshold.value}.',
                current_value=observed,
                expected_value=threshold.value,
                threshold=threshold.value,
                window_start=self.today,
                window_end=self.as_of,
                product_id=threshold.product_id,
                reference_type='StockThreshold',
                reference_id=threshold.pk,
                recommended_actions=list(RECOMMENDED_ACTIONS[RULE_THRESHOLD]),
            ))
        return candidates
