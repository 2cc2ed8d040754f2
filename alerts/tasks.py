"""
Alerts — Celery Tasks

Scheduled variance analysis. Runs for the same store never overlap: the
service takes the store's analysis lock (shared with manual runs) and a
run that finds it held is skipped.

@file alerts/tasks.py
"""

import logging

from celery import shared_task

from core.exceptions import AnalysisAlreadyRunning

logger = logging.getLogger('freshstock')

TASK_NAME = 'alerts.run_variance_analysis'


@shared_task(name=TASK_NAME)
def run_variance_analysis_task(store_id):
    """Detector run for one store, triggered by django-celery-beat."""
    from .services import AlertService

    try:
        alerts = AlertService.run_variance_analysis(store_id, actor=None)
    except AnalysisAlreadyRunning:
        return {'store_id': str(store_id), 'skipped': True, 'created': 0}

    logger.info('run_variance_analysis_task completed for %s: %d alerts.', store_id, len(alerts))
    return {'store_id': str(store_id), 'skipped': False, 'created': len(alerts)}
