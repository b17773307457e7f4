"""
Django settings for the affiliate commission backend.

Values are read from the environment (and an optional .env file at the
project root) through django-environ.
"""
import os
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1']),
)
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

SECRET_KEY = env('SECRET_KEY', default='dev-only-secret-key-change-me-in-production-0123456789')
DEBUG = env('DEBUG')
ALLOWED_HOSTS = env('ALLOWED_HOSTS')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'rest_framework_simplejwt',
    'rest_framework_simplejwt.token_blacklist',
    'users',
    'hierarchy',
    'commissions',
    'wallets',
    'activity',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'affiliate_backend.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTHENTICATION_BACKENDS = [
    'users.backends.EmailOrUsernameModelBackend',
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'Asia/Kolkata'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

# =============================================================================
# REST Framework
# =============================================================================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 50,
    'EXCEPTION_HANDLER': 'affiliate_backend.exception_handler.engine_exception_handler',
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=env.int('JWT_ACCESS_MINUTES', default=60)),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=env.int('JWT_REFRESH_DAYS', default=7)),
    'ROTATE_REFRESH_TOKENS': True,
    'BLACKLIST_AFTER_ROTATION': True,
}

# =============================================================================
# Commission engine
# =============================================================================

# Used when the rate registry has no row for a role type.
COMMISSION_DEFAULT_RATES = {
    'affiliate': Decimal(env('COMMISSION_DEFAULT_AFFILIATE_RATE', default='70')),
    'branch_direct': Decimal(env('COMMISSION_DEFAULT_BRANCH_DIRECT_RATE', default='15')),
    'branch': Decimal(env('COMMISSION_DEFAULT_BRANCH_RATE', default='15')),
    'area': Decimal(env('COMMISSION_DEFAULT_AREA_RATE', default='10')),
    'state': Decimal(env('COMMISSION_DEFAULT_STATE_RATE', default='5')),
}

# 'live' recomputes override earnings with the current rate,
# 'snapshot' sums the override rows written at sale time.
COMMISSION_OVERRIDE_MODE = env('COMMISSION_OVERRIDE_MODE', default='live')

# Legacy rows without entry_kind: affiliate_rate above this is a direct sale.
COMMISSION_LEGACY_DIRECT_RATE_THRESHOLD = Decimal(
    env('COMMISSION_LEGACY_DIRECT_RATE_THRESHOLD', default='20')
)

# Shared secret expected in the X-Webhook-Secret header. Empty disables the check.
COMMISSION_WEBHOOK_SECRET = env('COMMISSION_WEBHOOK_SECRET', default='')

WITHDRAWAL_MIN_AMOUNT = Decimal(env('WITHDRAWAL_MIN_AMOUNT', default='20.00'))
WITHDRAWAL_GST_PERCENTAGE = Decimal(env('WITHDRAWAL_GST_PERCENTAGE', default='18.00'))

# =============================================================================
# Logging
# =============================================================================

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': env('LOG_LEVEL', default='INFO'),
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
    },
}
