"""
FreshStock — Production Settings

    DJANGO_SETTINGS_MODULE=config.settings.production

SECRET_KEY, ALLOWED_HOSTS and DATABASE_URL must come from the
environment; there are no fallbacks here.

@file config/settings/production.py
"""

from .base import *  # noqa: F401, F403

DEBUG = False
SECRET_KEY = env('SECRET_KEY')  # noqa: F405
ALLOWED_HOSTS = env.list('ALLOWED_HOSTS')  # noqa: F405
DATABASES = {'default': env.db('DATABASE_URL')}  # noqa: F405
DATABASES['default']['CONN_MAX_AGE'] = 600
DATABASES['default']['CONN_HEALTH_CHECKS'] = True

SECURE_SSL_REDIRECT = env.bool('SECURE_SSL_REDIRECT', default=True)  # noqa: F405
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

REST_FRAMEWORK['DEFAULT_RENDERER_CLASSES'] = (  # noqa: F405
    'core.renderers.StandardJSONRenderer',
)

LOGGING['loggers']['freshstock']['level'] = env('FRESHSTOCK_LOG_LEVEL', default='INFO')  # noqa: F405
