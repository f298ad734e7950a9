import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from django.urls import reverse
from django.utils import timezone

from .conf import IdentificationConfig
from .exceptions import NotFoundError, ValidationError
from .extraction import extract_plant_data
from .gemini import GeminiClient
from .store import DatabaseDetectionStore, DetectionRecord, DetectionStore

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


def image_url(pk) -> str:
    return reverse("detection_image", args=[str(pk)])


@dataclass(frozen=True)
class DetectionResult:
    id: uuid.UUID
    raw_text: str
    scientific_name: str
    common_name: str
    image_url: str

    def as_dict(self) -> dict:
        return {
            "plantInfo": self.raw_text,
            "id": str(self.id),
            "scientificName": self.scientific_name,
            "commonName": self.common_name,
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class DetectionSummary:
    id: uuid.UUID
    original_image_name: str
    detected_at: datetime
    scientific_name: str
    common_name: str
    image_url: str

    def as_dict(self) -> dict:
        return {
            "id": str(self.id),
            "originalImageName": self.original_image_name,
            "detectedAt": self.detected_at,
            "scientificName": self.scientific_name,
            "commonName": self.common_name,
            "imageUrl": self.image_url,
        }


@dataclass(frozen=True)
class DetectionDetail:
    id: uuid.UUID
    original_image_name: str
    mime_type: str
    detected_at: datetime
    plant_info: str
    scientific_name: str
    common_name: str
    image_url: str

    def as_dict(self) -> dict:
        return {
            "id": str(self.id),
            "originalImageName": self.original_image_name,
            "mimeType": self.mime_type,
            "detectedAt": self.detected_at,
            "plantInfo": self.plant_info,
            "scientificName": self.scientific_name,
            "commonName": self.common_name,
            "imageUrl": self.image_url,
        }


class DetectionService:
    """
    Связывает загрузку, запрос к Gemini, разбор текста и хранилище.
    Состояния между запросами не держит.
    """

    def __init__(
        self,
        config: IdentificationConfig,
        client: GeminiClient | None = None,
        store: DetectionStore | None = None,
    ):
        self.config = config
        self.client = client or GeminiClient(config)
        self.store = store or DatabaseDetectionStore()

    def validate_size(self, size: int) -> None:
        if size > self.config.max_image_size:
            limit_mb = self.config.max_image_size / (1024 * 1024)
            raise ValidationError(f"Image is too large (max {limit_mb:g} MB)")

    def validate_upload(self, image_bytes: bytes, mime_type: str) -> None:
        if not image_bytes:
            raise ValidationError("No image file uploaded")
        if not (mime_type or "").startswith("image/"):
            raise ValidationError("Only image files are allowed")
        self.validate_size(len(image_bytes))

    def identify(self, image_bytes: bytes, mime_type: str, original_name: str = "") -> DetectionResult:
        """
        1. Проверяет файл.
        2. Отправляет изображение в Gemini (один запрос, без повторов).
        3. Достает названия из текста.
        4. Сохраняет запись целиком.
        """
        self.validate_upload(image_bytes, mime_type)

        logger.info(f"Запуск распознавания: {original_name!r} ({mime_type}, {len(image_bytes)} байт)")
        raw_text = self.client.identify(image_bytes, mime_type)
        names = extract_plant_data(raw_text)

        record = DetectionRecord(
            id=uuid.uuid4(),
            original_image_name=(original_name or "")[:255],
            image_data=bytes(image_bytes),
            mime_type=mime_type,
            detected_at=timezone.now(),
            plant_info=raw_text,
            scientific_name=names.scientific_name,
            common_name=names.common_name,
        )
        pk = self.store.put(record)
        logger.info(f"Распознавание {pk} сохранено: {names.scientific_name or '-'} / {names.common_name or '-'}")

        return DetectionResult(
            id=pk,
            raw_text=raw_text,
            scientific_name=names.scientific_name,
            common_name=names.common_name,
            image_url=image_url(pk),
        )

    def list(self) -> list[DetectionSummary]:
        return [
            DetectionSummary(
                id=record.id,
                original_image_name=record.original_image_name,
                detected_at=record.detected_at,
                scientific_name=record.scientific_name,
                common_name=record.common_name,
                image_url=image_url(record.id),
            )
            for record in self.store.list()
        ]

    def get(self, pk) -> DetectionDetail:
        record = self.store.get(pk)
        return DetectionDetail(
            id=record.id,
            original_image_name=record.original_image_name,
            mime_type=record.mime_type,
            detected_at=record.detected_at,
            plant_info=record.plant_info,
            scientific_name=record.scientific_name,
            common_name=record.common_name,
            image_url=image_url(record.id),
        )

    def get_image(self, pk) -> tuple[bytes, str]:
        try:
            record = self.store.get(pk)
        except NotFoundError:
            raise NotFoundError("Image not found")
        if not record.image_data:
            raise NotFoundError("Image not found")
        return record.image_data, record.mime_type or DEFAULT_MIME_TYPE


def get_detection_service() -> DetectionService:
    return DetectionService(IdentificationConfig.from_settings())
