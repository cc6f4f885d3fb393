"""
Production settings for clinicsync project.
These settings are optimized for production deployment.
"""

from .base import *

# Production security
DEBUG = False

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='').split(',')

# Database - PostgreSQL
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME'),
        'USER': config('DB_USER'),
        'PASSWORD': config('DB_PASSWORD'),
        'HOST': config('DB_HOST', default='localhost'),
        'PORT': config('DB_PORT', default='5432'),
        'OPTIONS': {
            'sslmode': 'require',  # Require SSL for production
        },
        'CONN_MAX_AGE': 60,
    }
}

# Celery settings for production
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default='redis://127.0.0.1:6379/0')
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default='redis://127.0.0.1:6379/0')

# Enhanced logging for production
LOGGING['handlers']['file']['filename'] = '/var/log/clinicsync/django.log'
LOGGING['handlers']['reconciliation'] = {
    'level': 'INFO',
    'class': 'logging.FileHandler',
    'filename': '/var/log/clinicsync/reconciliation.log',
    'formatter': 'verbose',
}

# Every merge decision lands in its own audit file
LOGGING['loggers']['apps.reconciliation']['handlers'].append('reconciliation')
