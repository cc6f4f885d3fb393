"""
Base Django settings for clinicsync project.
Common settings that apply to all environments.
"""

from pathlib import Path
from decouple import config

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = config('SECRET_KEY', default='django-insecure-q8#v2n!t0r5k@clinicsync-dev-only-key-7m$w1x^z')

# Application definition
DJANGO_APPS = [
    'django.contrib.contenttypes',
]

THIRD_PARTY_APPS = []

LOCAL_APPS = [
    'apps.reconciliation',
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = []

ROOT_URLCONF = 'clinicsync.urls'

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = config('TIME_ZONE', default='Asia/Jakarta')
USE_I18N = True
USE_TZ = True

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ============================================================================
# CELERY CONFIGURATION
# ============================================================================

# Redis Configuration
REDIS_URL = config('REDIS_URL', default='redis://localhost:6379/0')

# Celery Settings
CELERY_BROKER_URL = REDIS_URL
CELERY_RESULT_BACKEND = REDIS_URL

# Celery JSON serialization (snapshots travel as plain JSON)
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'

# Celery timezone configuration
CELERY_TIMEZONE = TIME_ZONE
CELERY_ENABLE_UTC = True

# Task result expiration
CELERY_RESULT_EXPIRES = 3600  # 1 hour

# Task routing for different queues
CELERY_TASK_ROUTES = {
    'apps.reconciliation.tasks.*': {'queue': 'snapshot_backups'},
}

# Worker configuration
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_WORKER_MAX_TASKS_PER_CHILD = 50

# Task time limits (a full clinic snapshot with attachments can be large)
CELERY_TASK_TIME_LIMIT = 300  # 5 minutes
CELERY_TASK_SOFT_TIME_LIMIT = 270

# Cache backend configuration - Redis holds the backup throttle labels so
# every worker sees the same "last hourly / last daily backup" state
CACHES = {
    'default': {
        'BACKEND': 'django_redis.cache.RedisCache',
        'LOCATION': REDIS_URL,
        'TIMEOUT': 3600,
        'OPTIONS': {
            'CLIENT_CLASS': 'django_redis.client.DefaultClient',
            'SERIALIZER': 'django_redis.serializers.json.JSONSerializer',
            'CONNECTION_POOL_KWARGS': {
                'max_connections': 20,
                'retry_on_timeout': True,
            }
        },
        'KEY_PREFIX': 'clinicsync',
        'VERSION': 1,
    },
}

# ============================================================================
# END CELERY CONFIGURATION
# ============================================================================

# Logging Configuration
LOG_DIR = Path(config('LOG_DIR', default=str(BASE_DIR / 'logs')))

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'file': {
            'level': 'INFO',
            'class': 'logging.FileHandler',
            'filename': LOG_DIR / 'clinicsync.log',
            'formatter': 'verbose',
            'delay': True,
        },
    },
    'root': {
        'handlers': ['file'],
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['file'],
            'level': 'INFO',
            'propagate': False,
        },
        'clinicsync': {
            'handlers': ['file'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps.reconciliation': {
            'handlers': ['file'],
            'level': 'INFO',
            'propagate': False,
        },
        'celery': {
            'handlers': ['file'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

# ============================================================================
# RECONCILIATION CONFIGURATION
# ============================================================================

# Remote store (a synced "drive" folder holding the shared dataset)
RECONCILIATION_REMOTE_ROOT = Path(config('RECONCILIATION_REMOTE_ROOT', default=str(BASE_DIR / 'remote_store')))
RECONCILIATION_REMOTE_FILENAME = config('RECONCILIATION_REMOTE_FILENAME', default='clinic_data.json')
RECONCILIATION_REMOTE_ACCOUNT = config('RECONCILIATION_REMOTE_ACCOUNT', default='')
RECONCILIATION_REMOTE_ACCESS_TOKEN = config('RECONCILIATION_REMOTE_ACCESS_TOKEN', default='filesystem')

# Local snapshot written by the offline client
RECONCILIATION_LOCAL_SNAPSHOT = Path(config('RECONCILIATION_LOCAL_SNAPSHOT', default=str(BASE_DIR / 'local_data.json')))

# Sync-safety gate thresholds
RECONCILIATION_SYNC_MIN_RATIO = config('RECONCILIATION_SYNC_MIN_RATIO', default=0.8, cast=float)
RECONCILIATION_LOAD_FROM_REMOTE_RATIO = config('RECONCILIATION_LOAD_FROM_REMOTE_RATIO', default=1.2, cast=float)

# Versioned backups (hourly/daily snapshots next to the remote dataset)
RECONCILIATION_BACKUP_ENABLED = config('RECONCILIATION_BACKUP_ENABLED', default=True, cast=bool)
RECONCILIATION_MAX_HOURLY_BACKUPS = config('RECONCILIATION_MAX_HOURLY_BACKUPS', default=24, cast=int)
RECONCILIATION_MAX_DAILY_BACKUPS = config('RECONCILIATION_MAX_DAILY_BACKUPS', default=7, cast=int)
RECONCILIATION_BACKUP_STATE_TIMEOUT = config('RECONCILIATION_BACKUP_STATE_TIMEOUT', default=3600 * 48, cast=int)
