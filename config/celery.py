"""
FreshStock — Celery Application

Worker:  celery -A config worker -l info
Beat:    celery -A config beat -l info   (DatabaseScheduler, see settings)

@file config/celery.py
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('freshstock')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
