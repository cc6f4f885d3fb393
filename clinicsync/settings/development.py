"""
Development settings for clinicsync project.
These settings are optimized for local development and testing.
"""

from .base import *
from decouple import config

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

ALLOWED_HOSTS = ['localhost', '127.0.0.1', '0.0.0.0']

# SQLite for development simplicity
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}

LOG_DIR.mkdir(parents=True, exist_ok=True)

# Development logging - more verbose
LOGGING['handlers']['console'] = {
    'level': 'DEBUG',
    'class': 'logging.StreamHandler',
    'formatter': 'verbose',
}

LOGGING['root']['handlers'].append('console')
LOGGING['loggers']['django']['handlers'].append('console')
LOGGING['loggers']['clinicsync']['handlers'].append('console')
LOGGING['loggers']['apps.reconciliation']['handlers'].append('console')
LOGGING['loggers']['apps.reconciliation']['level'] = 'DEBUG'

# Local memory cache so the backup throttle works without Redis
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'clinicsync-dev',
    }
}

# Celery settings for development (if using Redis locally)
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default='redis://localhost:6379/0')
CELERY_TASK_ALWAYS_EAGER = True  # Execute tasks synchronously in development
