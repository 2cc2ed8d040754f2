"""
Alerts — Service Layer

Persistence and lifecycle of variance alerts: running the detector for a
store, raising alerts from count/transfer discrepancies, listing,
resolving, statistics, and threshold configuration.

An alert already active for the same (store, product, type, rule,
window_start) is never raised twice; a partial unique constraint backs
the check. Runs for one store never overlap: manual and scheduled runs
share a cache lock and a run that finds it held is refused.

@file alerts/services.py
"""

import logging
from contextlib import contextmanager
from datetime import timedelta
from decimal import Decimal

from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils import timezone

from core.config import freshstock_setting
from core.constants import AUDIT_ACTION_CREATE, AUDIT_ACTION_STATUS_CHANGE, AUDIT_ACTION_UPDATE
from core.exceptions import AnalysisAlreadyRunning, InvalidStateTransition, ResourceNotFoundError, ValidationError
from core.models import SeverityChoices
from core.services import AuditService
from stores.models import Store
from users.policies import Action, StockPolicy

from .detector import AlertCandidate, VarianceDetector, count_line_candidates, transfer_line_candidates
from .models import StockThreshold, VarianceAlert

logger = logging.getLogger('freshstock')


def _get_store(store_id) -> Store:
    try:
        return Store.objects.get(pk=store_id)
    except (Store.DoesNotExist, ValueError):
        raise ResourceNotFoundError(detail='Store not found.')


def analysis_lock_key(store_id) -> str:
    return f'freshstock:variance-analysis:{store_id}'


@contextmanager
def analysis_lock(store_id):
    """Yields True when the lock was taken, False when another run holds it."""
    timeout = freshstock_setting('ANALYSIS_SCHEDULE')['lock_timeout_seconds']
    key = analysis_lock_key(store_id)
    acquired = cache.add(key, 'running', timeout=timeout)
    try:
        yield acquired
    finally:
        if acquired:
            cache.delete(key)


class AlertService:
    """Variance alert lifecycle."""

    @staticmethod
    def run_variance_analysis(store_id, *, actor=None, as_of=None) -> list[VarianceAlert]:
        """
        Run every detector rule for the store and persist the new alerts.
        ``actor`` is None for scheduled runs. Raises AnalysisAlreadyRunning
        while another run holds the store's lock.
        """
        StockPolicy.authorize(actor, Action.RUN_VARIANCE_ANALYSIS, store_id=store_id)
        store = _get_store(store_id)
        with analysis_lock(store.pk) as acquired:
            if not acquired:
                logger.warning('Variance analysis for %s already running; skipped.', store.code)
                raise AnalysisAlreadyRunning()
            with transaction.atomic():
                candidates = VarianceDetector(store, as_of=as_of).run()
                alerts = AlertService.raise_alerts(store, candidates)
        logger.info(
            'Variance analysis for %s: %d candidates, %d new alerts',
            store.code, len(candidates), len(alerts),
        )
        return alerts

    @staticmethod
    def raise_alerts(store: Store, candidates: list[AlertCandidate]) -> list[VarianceAlert]:
        created = []
        for candidate in candidates:
            duplicate = VarianceAlert.objects.active().filter(
                store=store,
                product_id=candidate.product_id,
                alert_type=candidate.alert_type,
                rule=candidate.rule,
                window_start=candidate.window_start,
            ).exists()
            if duplicate:
                continue
            try:
                with transaction.atomic():
                    alert = VarianceAlert.objects.create(
                        store=store,
                        product_id=candidate.product_id,
                        alert_type=candidate.alert_type,
                        severity=candidate.severity,
                        rule=candidate.rule,
                        title=candidate.title[:255],
                        message=candidate.message,
                        current_value=candidate.current_value,
                        expected_value=candidate.expected_value,
                        variance=candidate.variance,
                        variance_percentage=candidate.variance_percentage,
                        threshold=candidate.threshold,
                        window_start=candidate.window_start,
                        window_end=candidate.window_end,
                        recommended_actions=candidate.recommended_actions,
                        reference_type=candidate.reference_type,
                        reference_id=candidate.reference_id,
                    )
            except IntegrityError:
                logger.info(
                    'Alert %s/%s for store %s raised concurrently; skipped.',
                    candidate.alert_type, candidate.rule, store.code,
                )
                continue
            logger.warning(
                'Alert raised [%s] %s store=%s product=%s rule=%s',
                alert.severity, alert.alert_type, store.code, alert.product_id, alert.rule,
            )
            created.append(alert)
        return created

    @staticmethod
    def raise_count_discrepancies(inventaire) -> list[VarianceAlert]:
        return AlertService.raise_alerts(inventaire.store, count_line_candidates(inventaire))

    @staticmethod
    def raise_transfer_discrepancies(transfert) -> list[VarianceAlert]:
        return AlertService.raise_alerts(transfert.destination_store, transfer_line_candidates(transfert))

    @staticmethod
    def get_active_alerts(store_id):
        """Unresolved alerts, critical first, newest first within a severity."""
        return VarianceAlert.objects.active().filter(store_id=store_id).select_related('product').by_severity()

    @staticmethod
    @transaction.atomic
    def resolve_alert(alert_id, *, actor, note: str = '') -> VarianceAlert:
        try:
            alert = VarianceAlert.objects.select_for_update().get(pk=alert_id)
        except VarianceAlert.DoesNotExist:
            raise ResourceNotFoundError(detail='Alert not found.')
        StockPolicy.authorize(actor, Action.RESOLVE_ALERT, store_id=alert.store_id)
        if alert.is_resolved:
            raise InvalidStateTransition(detail='Alert is already resolved.')

        alert.is_resolved = True
        alert.resolved_by = actor
        alert.resolved_at = timezone.now()
        alert.resolution_note = note
        alert.updated_by = actor
        alert.save(update_fields=[
            'is_resolved', 'resolved_by', 'resolved_at', 'resolution_note', 'updated_by', 'updated_at',
        ])
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_STATUS_CHANGE,
            model_name='VarianceAlert',
            object_id=str(alert.pk),
            old_values={'is_resolved': False},
            new_values={'is_resolved': True, 'resolution_note': note},
        )
        logger.info('Alert %s resolved by %s', alert.pk, getattr(actor, 'pk', None))
        return alert

    @staticmethod
    def get_alert_statistics(store_id, window_days: int = 30) -> dict:
        """Counts over alerts detected in the last ``window_days`` days."""
        since = timezone.now() - timedelta(days=window_days)
        qs = VarianceAlert.objects.filter(store_id=store_id, detected_at__gte=since)

        by_type = {choice: 0 for choice in VarianceAlert.AlertType.values}
        for row in qs.values('alert_type').annotate(n=Count('id')).order_by():
            by_type[row['alert_type']] = row['n']
        by_severity = {choice: 0 for choice in SeverityChoices.values}
        for row in qs.values('severity').annotate(n=Count('id')).order_by():
            by_severity[row['severity']] = row['n']

        resolved = list(qs.filter(is_resolved=True).values_list('detected_at', 'resolved_at'))
        durations = [
            (resolved_at - detected_at).total_seconds() / 3600
            for detected_at, resolved_at in resolved
            if resolved_at is not None
        ]
        total = sum(by_type.values())
        return {
            'window_days': window_days,
            'total': total,
            'active': total - len(resolved),
            'resolved': len(resolved),
            'by_type': by_type,
            'by_severity': by_severity,
            'mean_resolution_hours': (
                Decimal(str(round(sum(durations) / len(durations), 2))) if durations else None
            ),
        }


class ThresholdService:
    """Director-managed StockThreshold configuration."""

    @staticmethod
    def _validate(metric: str, product) -> None:
        if metric in StockThreshold.PRODUCT_METRICS and product is None:
            raise ValidationError(detail=f'{metric} thresholds need a product.')

    @staticmethod
    @transaction.atomic
    def create_threshold(*, store_id, actor, **data) -> StockThreshold:
        StockPolicy.authorize(actor, Action.MANAGE_THRESHOLDS, store_id=store_id)
        ThresholdService._validate(data.get('metric'), data.get('product'))
        threshold = StockThreshold.objects.create(store_id=store_id, created_by=actor, **data)
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_CREATE,
            model_name='StockThreshold',
            object_id=str(threshold.pk),
            new_values={
                'product_id': threshold.product_id,
                'metric': threshold.metric,
                'operator': threshold.operator,
                'value': threshold.value,
                'severity': threshold.severity,
            },
        )
        return threshold

    @staticmethod
    @transaction.atomic
    def update_threshold(threshold_id, *, actor, **data) -> StockThreshold:
        try:
            threshold = StockThreshold.objects.select_for_update().get(pk=threshold_id)
        except StockThreshold.DoesNotExist:
            raise ResourceNotFoundError(detail='Threshold not found.')
        StockPolicy.authorize(actor, Action.MANAGE_THRESHOLDS, store_id=threshold.store_id)
        old = {field: getattr(threshold, field) for field in ('metric', 'operator', 'value', 'severity', 'is_active')}
        for field, value in data.items():
            setattr(threshold, field, value)
        ThresholdService._validate(threshold.metric, threshold.product)
        threshold.updated_by = actor
        threshold.save()
        AuditService.log(
            actor=actor,
            action=AUDIT_ACTION_UPDATE,
            model_name='StockThreshold',
            object_id=str(threshold.pk),
            old_values=old,
            new_values={field: getattr(threshold, field) for field in old},
        )
        return threshold
