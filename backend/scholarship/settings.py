"""
Django settings for the scholarship onboarding & milestone backend.

Single settings module; the deployment profile is picked by DJANGO_ENV
(local / staging / production) at the bottom of this file.
"""

import os
from pathlib import Path
from celery.schedules import crontab

LOG_JSON = os.getenv("LOG_JSON", "1") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# BASE_DIR points to /backend
BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-unsafe")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]
CSRF_TRUSTED_ORIGINS = [o.strip() for o in os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if o.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # project apps
    "accounts",
    "audit",
    "calls",
    "applications",
    "onboarding",
    "ops",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "ops.middleware.RequestLogMiddleware",
]

# Templates (needed for Django admin)
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",   # admin needs this
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

ROOT_URLCONF = "scholarship.urls"
WSGI_APPLICATION = "scholarship.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.mysql"),
        "NAME": os.getenv("MYSQL_DATABASE", "scholarship"),
        "USER": os.getenv("MYSQL_USER", "scholarship"),
        "PASSWORD": os.getenv("MYSQL_PASSWORD", "scholarship"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": int(os.getenv("DB_PORT", "3306")),
        "OPTIONS": {
            "charset": "utf8mb4",
            "use_unicode": True,
        },
    }
}

AUTH_USER_MODEL = "accounts.User"
AUTHENTICATION_BACKENDS = ["django.contrib.auth.backends.ModelBackend"]

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Admin URL (harden in staging/prod)
ADMIN_URL = os.getenv("ADMIN_URL", "admin")

# --- Onboarding ---
INVITE_CODE_PEPPER = os.getenv("INVITE_CODE_PEPPER", "")
INVITE_CODE_HASHER = os.getenv("INVITE_CODE_HASHER", "onboarding.hashers.HmacCodeHasher")
INVITE_TTL_DAYS = int(os.getenv("INVITE_TTL_DAYS", "30"))
INVITE_CODE_LENGTH = int(os.getenv("INVITE_CODE_LENGTH", "8"))
# no 0/O/1/I/L so codes can be read out over the phone
INVITE_CODE_ALPHABET = os.getenv("INVITE_CODE_ALPHABET", "23456789ABCDEFGHJKMNPQRSTUVWXYZ")
INVITE_EMAIL_PROVIDER = os.getenv("INVITE_EMAIL_PROVIDER", "mock")
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "becas@localhost")
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")

RATELIMIT_ENABLED = os.getenv("RATELIMIT_ENABLED", "1") == "1"
RATELIMIT_REDIS_URL = os.getenv("RATELIMIT_REDIS_URL") or os.getenv("CELERY_BROKER_URL") or "redis://127.0.0.1:6379/0"
INVITE_REDEEM_PER_IP_PER_HOUR = int(os.getenv("INVITE_REDEEM_PER_IP_PER_HOUR", "20"))

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/1")
CELERY_TIMEZONE = TIME_ZONE

# Reconciliation is never scheduled; run it through the management commands
# or applications.tasks.run_reconciliation.
CELERY_BEAT_SCHEDULE = {
    "calls-update-statuses-hourly": {
        "task": "calls.tasks.update_call_statuses_task",
        "schedule": crontab(minute=5),
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
        "json": {"format": '{"ts": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "msg": "%(message)s"}'},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json" if LOG_JSON else "plain",
        },
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "request": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# ------------------------------------------------------------------------------
# Environment profile
# ------------------------------------------------------------------------------
DJANGO_ENV = (os.getenv("DJANGO_ENV") or "local").lower()

if DJANGO_ENV == "local":
    DEBUG = True
elif DJANGO_ENV in {"staging", "production"}:
    DEBUG = False
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_SSL_REDIRECT = True
    SECURE_HSTS_SECONDS = 3600
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True
    if not INVITE_CODE_PEPPER:
        raise RuntimeError("INVITE_CODE_PEPPER must be set outside local development")
