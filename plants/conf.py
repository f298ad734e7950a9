from dataclasses import dataclass

from django.conf import settings


def _settings_int(name: str, default: int) -> int:
    value = getattr(settings, name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _settings_float(name: str, default: float) -> float:
    value = getattr(settings, name, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _settings_str(name: str, default: str) -> str:
    value = getattr(settings, name, None)
    if value is None:
        return default
    value = str(value).strip()
    return value or default


@dataclass(frozen=True)
class IdentificationConfig:
    api_key: str = ""
    api_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    model: str = "gemini-2.0-flash"
    timeout: float = 30.0
    temperature: float = 0.4
    max_output_tokens: int = 2048
    max_image_size: int = 10 * 1024 * 1024

    @property
    def endpoint(self) -> str:
        return f"{self.api_url.rstrip('/')}/{self.model}:generateContent"

    @classmethod
    def from_settings(cls) -> "IdentificationConfig":
        defaults = cls()
        return cls(
            api_key=(getattr(settings, "GEMINI_API_KEY", "") or "").strip(),
            api_url=_settings_str("GEMINI_API_URL", defaults.api_url),
            model=_settings_str("GEMINI_MODEL", defaults.model),
            timeout=_settings_float("GEMINI_TIMEOUT", defaults.timeout),
            temperature=_settings_float("GEMINI_TEMPERATURE", defaults.temperature),
            max_output_tokens=_settings_int("GEMINI_MAX_OUTPUT_TOKENS", defaults.max_output_tokens),
            max_image_size=_settings_int("PLANT_MAX_IMAGE_SIZE", defaults.max_image_size),
        )
