import base64
import logging

import requests

from .conf import IdentificationConfig
from .exceptions import UpstreamError

logger = logging.getLogger(__name__)

IDENTIFY_PROMPT = (
    "Identify this plant. Please provide the following information: "
    "1. Scientific name (Latin name) "
    "2. Common name "
    "3. Plant family "
    "4. Brief description "
    "5. Growing conditions "
    "6. Care tips"
)


def _upstream_message(response: requests.Response) -> str:
    """Берет error.message из ответа Gemini, если он есть."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return f"Identification service returned HTTP {response.status_code}"


def _text_parts(payload) -> list[str]:
    try:
        parts = payload["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        raise UpstreamError("Unexpected response from identification service")
    if not isinstance(parts, list):
        raise UpstreamError("Unexpected response from identification service")
    texts = []
    for part in parts:
        text = part.get("text") if isinstance(part, dict) else None
        if isinstance(text, str) and text:
            texts.append(text)
    return texts


class GeminiClient:
    """Один запрос generateContent на одно изображение, без повторов."""

    def __init__(self, config: IdentificationConfig, session: requests.Session | None = None):
        self.config = config
        # Без переданной сессии на каждый запрос открывается и закрывается своя
        self.session = session

    def build_payload(self, image_bytes: bytes, mime_type: str, prompt: str) -> dict:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(image_bytes).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generation_config": {
                "temperature": self.config.temperature,
                "max_output_tokens": self.config.max_output_tokens,
            },
        }

    def describe_image(self, image_bytes: bytes, mime_type: str, prompt: str = IDENTIFY_PROMPT) -> list[str]:
        if not self.config.api_key:
            raise UpstreamError("GEMINI_API_KEY is not configured")

        payload = self.build_payload(image_bytes, mime_type, prompt)
        # Ключ идет в заголовке, не в URL: текст ошибок requests содержит URL
        request_kwargs = {
            "json": payload,
            "headers": {
                "Content-Type": "application/json",
                "x-goog-api-key": self.config.api_key,
            },
            "timeout": self.config.timeout,
        }
        try:
            if self.session is not None:
                response = self.session.post(self.config.endpoint, **request_kwargs)
            else:
                with requests.Session() as session:
                    response = session.post(self.config.endpoint, **request_kwargs)
        except requests.Timeout as exc:
            logger.error(f"Gemini не ответил за {self.config.timeout} c ({type(exc).__name__})")
            raise UpstreamError("Identification service timed out") from exc
        except requests.RequestException as exc:
            logger.error(f"Ошибка соединения с Gemini: {type(exc).__name__}")
            raise UpstreamError("Identification service is unreachable") from exc

        if not response.ok:
            message = _upstream_message(response)
            logger.error(f"Gemini вернул {response.status_code}: {response.text[:500]}")
            raise UpstreamError(message)

        try:
            data = response.json()
        except ValueError as exc:
            logger.error(f"Gemini вернул не JSON: {response.text[:500]}")
            raise UpstreamError("Unexpected response from identification service") from exc

        return _text_parts(data)

    def identify(self, image_bytes: bytes, mime_type: str) -> str:
        """Склеивает текстовые части ответа через перевод строки."""
        return "\n".join(self.describe_image(image_bytes, mime_type))
