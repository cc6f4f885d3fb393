"""
Test settings for the reconciliation engine.

Optimizes settings for fast, isolated tests: in-memory database and cache,
eager Celery, and quiet logging.
"""

import tempfile
from pathlib import Path

from .base import *

# Test Database Configuration
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

# Disable migrations for faster testing
class DisableMigrations:
    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None

MIGRATION_MODULES = DisableMigrations()

# Cache Configuration for Testing
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'clinicsync-test',
    }
}

# Celery Test Configuration
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

# Security Settings (relaxed for testing)
SECRET_KEY = 'test-secret-key-not-for-production'
DEBUG = True
ALLOWED_HOSTS = ['*']

# Logging Configuration for Testing
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'ERROR',  # Reduce log noise during tests
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'ERROR',
        },
        'apps.reconciliation': {
            'handlers': ['console'],
            'level': 'INFO',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'ERROR',
    },
}

# Stores point at a throwaway directory; individual tests override them
TEST_STORE_ROOT = Path(tempfile.gettempdir()) / 'clinicsync_test'
RECONCILIATION_REMOTE_ROOT = TEST_STORE_ROOT / 'remote'
RECONCILIATION_LOCAL_SNAPSHOT = TEST_STORE_ROOT / 'local_data.json'

RECONCILIATION_BACKUP_ENABLED = True

# Test Environment Flags
TESTING = True
