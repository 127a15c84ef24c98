# teamcaps/settings.py
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-teamcaps-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "drf_spectacular",
    "common",
    "designs",
    "orders",
    "fulfillment",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "teamcaps.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

DATABASES = {
    "default": {
        "ENGINE": os.environ.get("DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.environ.get("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.environ.get("DB_USER", ""),
        "PASSWORD": os.environ.get("DB_PASSWORD", ""),
        "HOST": os.environ.get("DB_HOST", ""),
        "PORT": os.environ.get("DB_PORT", ""),
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "teamcaps",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"

STATIC_URL = "static/"
MEDIA_URL = "media/"
MEDIA_ROOT = BASE_DIR / "media"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "common.exceptions.custom_exception_handler",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Teamcaps API",
    "DESCRIPTION": "Custom product orders and print-on-demand fulfillment",
    "VERSION": "1.0.0",
}

# Fulfillment provider (Printify)
FULFILLMENT_PRINTIFY_API_TOKEN = os.environ.get("PRINTIFY_API_TOKEN", "")
FULFILLMENT_PRINTIFY_SHOP_ID = os.environ.get("PRINTIFY_SHOP_ID", "")
FULFILLMENT_PRINTIFY_BASE_URL = os.environ.get("PRINTIFY_BASE_URL", "https://api.printify.com/v1")
FULFILLMENT_ORDER_MODE = os.environ.get("FULFILLMENT_ORDER_MODE", "inline")
FULFILLMENT_REQUEST_TIMEOUT = float(os.environ.get("FULFILLMENT_REQUEST_TIMEOUT", "15"))
FULFILLMENT_CATALOG_CACHE_TTL = int(os.environ.get("FULFILLMENT_CATALOG_CACHE_TTL", "900"))
FULFILLMENT_CLAIM_TIMEOUT = int(os.environ.get("FULFILLMENT_CLAIM_TIMEOUT", "300"))
FULFILLMENT_SHIPPING_METHOD = int(os.environ.get("FULFILLMENT_SHIPPING_METHOD", "1"))
FULFILLMENT_DEFAULT_COUNTRY = os.environ.get("FULFILLMENT_DEFAULT_COUNTRY", "US")

# Stripe webhook signing secret
FULFILLMENT_PAYMENT_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
FULFILLMENT_PAYMENT_WEBHOOK_TOLERANCE = int(os.environ.get("STRIPE_WEBHOOK_TOLERANCE", "300"))

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
