"""
FreshStock — Test Settings

SQLite, in-process cache and eager Celery. Activated by pytest through
pyproject.toml (DJANGO_SETTINGS_MODULE=config.settings.test).

@file config/settings/test.py
"""

from .base import *  # noqa: F401, F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []  # noqa: F405
REST_FRAMEWORK['DEFAULT_RENDERER_CLASSES'] = (  # noqa: F405
    'core.renderers.StandardJSONRenderer',
)

FRESHSTOCK = {
    'LOSS_RATE_THRESHOLDS': {
        'acceptable': '5',
        'warning': '10',
        'critical': '15',
    },
}

LOGGING['loggers']['freshstock']['level'] = 'WARNING'  # noqa: F405
