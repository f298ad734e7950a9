import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# Переменные окружения можно положить в .env рядом с manage.py
load_dotenv(BASE_DIR / ".env")


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    raw = _env_str(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


SECRET_KEY = _env_str(
    "DJANGO_SECRET_KEY",
    "django-insecure-7w$3m+plant-detection-dev-key-change-me",
)

DEBUG = _env_bool("DJANGO_DEBUG", True)

ALLOWED_HOSTS = _env_list("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1")


# Приложения

INSTALLED_APPS = [
    # наши приложения
    "plants",

    # стандартные django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]


MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"


# Шаблоны (нужны только админке)

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"


# База данных: PostgreSQL, если задан POSTGRES_DB, иначе SQLite

if os.getenv("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB"),
            "USER": _env_str("POSTGRES_USER", "postgres"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
            "HOST": _env_str("POSTGRES_HOST", "localhost"),
            "PORT": _env_str("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }


# Локаль

LANGUAGE_CODE = "en-us"

TIME_ZONE = _env_str("DJANGO_TIME_ZONE", "UTC")

USE_I18N = True

USE_TZ = True


# Статика

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Распознавание растений (Gemini)

GEMINI_API_KEY = _env_str("GEMINI_API_KEY", "")
GEMINI_API_URL = _env_str("GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta/models")
GEMINI_MODEL = _env_str("GEMINI_MODEL", "gemini-2.0-flash")
GEMINI_TIMEOUT = _env_str("GEMINI_TIMEOUT", "30")
GEMINI_TEMPERATURE = _env_str("GEMINI_TEMPERATURE", "0.4")
GEMINI_MAX_OUTPUT_TOKENS = _env_str("GEMINI_MAX_OUTPUT_TOKENS", "2048")

# 10 MB, как у загрузки на фронтенде
PLANT_MAX_IMAGE_SIZE = _env_str("PLANT_MAX_IMAGE_SIZE", str(10 * 1024 * 1024))


# Логирование

LOG_LEVEL = _env_str("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "{asctime} {levelname} {name}: {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}
