import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'insecure-dev-key')
DEBUG = os.getenv('DJANGO_DEBUG', '0') == '1'
ALLOWED_HOSTS = os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost').split(',')

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'subsync.apps.SubsyncConfig',
]

MIDDLEWARE = [
    'subsync.middleware.SyncLifecycleMiddleware',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.getenv('DATABASE_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
USE_TZ = True
TIME_ZONE = 'UTC'

# Remote catalog
CATALOG_API_BASE_URL = os.getenv('CATALOG_API_BASE_URL', 'https://api.example.com/v1')
CATALOG_API_KEY = os.getenv('CATALOG_API_KEY', '')
CATALOG_API_TIMEOUT = int(os.getenv('CATALOG_API_TIMEOUT', '30'))
CATALOG_API_RATE_LIMIT = int(os.getenv('CATALOG_API_RATE_LIMIT', '5'))
STORE_CURRENCY = os.getenv('STORE_CURRENCY', 'USD')
SUBSYNC_MIGRATION_BATCH_SIZE = int(os.getenv('SUBSYNC_MIGRATION_BATCH_SIZE', '100'))

# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_TASK_IGNORE_RESULT = True
CELERY_BEAT_SCHEDULE = {
    'schedule-pending-catalog-migrations': {
        'task': 'subsync.schedule_pending_migrations',
        'schedule': 3600.0,
    },
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {'format': '[%(asctime)s][%(levelname)s] %(name)s: %(message)s'},
    },
    'handlers': {
        'console': {'class': 'logging.StreamHandler', 'formatter': 'simple'},
    },
    'loggers': {
        'subsync': {
            'handlers': ['console'],
            'level': os.getenv('SUBSYNC_LOG_LEVEL', 'INFO'),
        },
    },
}
