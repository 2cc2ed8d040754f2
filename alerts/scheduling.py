"""
Alerts — Analysis Scheduling

Explicit start / stop / cancel of the periodic variance analysis of a
store, stored as a django-celery-beat PeriodicTask so the schedule
survives restarts and is visible in the admin.

  start  — create or re-enable the periodic task (interval in minutes)
  stop   — disable it, keeping its configuration
  cancel — delete it

@file alerts/scheduling.py
"""

import json
import logging

from django.db import transaction
from django_celery_beat.models import IntervalSchedule, PeriodicTask

from core.config import freshstock_setting
from core.exceptions import ResourceNotFoundError, ValidationError
from stores.models import Store
from users.policies import Action, StockPolicy

from .tasks import TASK_NAME

logger = logging.getLogger('freshstock')


class VarianceAnalysisSchedule:

    @staticmethod
    def task_name(store_id) -> str:
        return f'variance-analysis:{store_id}'

    @staticmethod
    @transaction.atomic
    def start(store_id, *, actor, interval_minutes: int | None = None) -> PeriodicTask:
        StockPolicy.authorize(actor, Action.MANAGE_SCHEDULE, store_id=store_id)
        if not Store.objects.filter(pk=store_id).exists():
            raise ResourceNotFoundError(detail='Store not found.')
        interval_minutes = interval_minutes or freshstock_setting('ANALYSIS_SCHEDULE')['interval_minutes']
        if int(interval_minutes) <= 0:
            raise ValidationError(detail='interval_minutes must be positive.')

        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=int(interval_minutes),
            period=IntervalSchedule.MINUTES,
        )
        task, created = PeriodicTask.objects.update_or_create(
            name=VarianceAnalysisSchedule.task_name(store_id),
            defaults={
                'task': TASK_NAME,
                'interval': schedule,
                'args': json.dumps([str(store_id)]),
                'enabled': True,
            },
        )
        logger.info(
            'Variance analysis %s for store %s every %s minutes',
            'scheduled' if created else 'restarted', store_id, interval_minutes,
        )
        return task

    @staticmethod
    def stop(store_id, *, actor) -> PeriodicTask:
        StockPolicy.authorize(actor, Action.MANAGE_SCHEDULE, store_id=store_id)
        task = VarianceAnalysisSchedule._get(store_id)
        task.enabled = False
        task.save(update_fields=['enabled'])
        logger.info('Variance analysis stopped for store %s', store_id)
        return task

    @staticmethod
    def cancel(store_id, *, actor) -> None:
        StockPolicy.authorize(actor, Action.MANAGE_SCHEDULE, store_id=store_id)
        VarianceAnalysisSchedule._get(store_id).delete()
        logger.info('Variance analysis schedule cancelled for store %s', store_id)

    @staticmethod
    def status(store_id) -> dict | None:
        task = PeriodicTask.objects.filter(
            name=VarianceAnalysisSchedule.task_name(store_id),
        ).select_related('interval').first()
        if task is None:
            return None
        return {
            'enabled': task.enabled,
            'interval_minutes': task.interval.every if task.interval else None,
            'last_run_at': task.last_run_at,
            'total_run_count': task.total_run_count,
        }

    @staticmethod
    def _get(store_id) -> PeriodicTask:
        task = PeriodicTask.objects.filter(name=VarianceAnalysisSchedule.task_name(store_id)).first()
        if task is None:
            raise ResourceNotFoundError(detail='No analysis schedule for this store.')
        return task
