"""
FreshStock — Development Settings

    DJANGO_SETTINGS_MODULE=config.settings.development

Set CELERY_EAGER=1 to run scheduled analyses inline without a worker.

@file config/settings/development.py
"""

from .base import *  # noqa: F401, F403

DEBUG = True
ALLOWED_HOSTS = ['*']

INSTALLED_APPS += [  # noqa: F405
    'django_extensions',
]

CELERY_TASK_ALWAYS_EAGER = env.bool('CELERY_EAGER', default=False)  # noqa: F405

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []  # noqa: F405

LOGGING['loggers']['freshstock']['level'] = 'DEBUG'  # noqa: F405
