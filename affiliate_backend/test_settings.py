"""Test settings - in-memory SQLite, fast hashing, quiet logs."""
from .settings import *  # noqa: F401,F403

DEBUG = True

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

COMMISSION_OVERRIDE_MODE = 'live'
COMMISSION_WEBHOOK_SECRET = 'test-webhook-secret'

LOGGING['root']['level'] = 'WARNING'  # noqa: F405
