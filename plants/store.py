import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction

from .exceptions import NotFoundError, StorageError
from .models import PlantDetection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionRecord:
    """Одна завершенная попытка распознавания. После записи не меняется."""

    id: uuid.UUID
    original_image_name: str
    image_data: bytes
    mime_type: str
    detected_at: datetime
    plant_info: str
    scientific_name: str = ""
    common_name: str = ""


def _parse_id(pk) -> uuid.UUID:
    if isinstance(pk, uuid.UUID):
        return pk
    try:
        return uuid.UUID(str(pk))
    except (TypeError, ValueError, AttributeError):
        raise NotFoundError()


class DetectionStore:
    """
    Хранилище только на добавление: put / get / list.
    Обновления и удаления нет намеренно.
    """

    def put(self, record: DetectionRecord) -> uuid.UUID:
        raise NotImplementedError

    def get(self, pk) -> DetectionRecord:
        raise NotImplementedError

    def list(self) -> list[DetectionRecord]:
        raise NotImplementedError


class DatabaseDetectionStore(DetectionStore):
    @staticmethod
    def _to_record(row: PlantDetection, with_image: bool = True) -> DetectionRecord:
        return DetectionRecord(
            id=row.id,
            original_image_name=row.original_image_name,
            # BinaryField на postgres отдает memoryview
            image_data=bytes(row.image_data) if with_image and row.image_data is not None else b"",
            mime_type=row.mime_type,
            detected_at=row.detected_at,
            plant_info=row.plant_info,
            scientific_name=row.scientific_name,
            common_name=row.common_name,
        )

    def put(self, record: DetectionRecord) -> uuid.UUID:
        try:
            with transaction.atomic():
                PlantDetection.objects.create(
                    id=record.id,
                    original_image_name=record.original_image_name,
                    image_data=record.image_data,
                    mime_type=record.mime_type,
                    detected_at=record.detected_at,
                    plant_info=record.plant_info,
                    scientific_name=record.scientific_name,
                    common_name=record.common_name,
                )
        except DatabaseError as exc:
            logger.error(f"Не удалось сохранить распознавание {record.id}: {exc}")
            raise StorageError() from exc
        return record.id

    def get(self, pk) -> DetectionRecord:
        pk = _parse_id(pk)
        try:
            row = PlantDetection.objects.get(pk=pk)
        except (PlantDetection.DoesNotExist, DjangoValidationError):
            raise NotFoundError()
        except DatabaseError as exc:
            logger.error(f"Ошибка чтения распознавания {pk}: {exc}")
            raise StorageError("Failed to fetch plant detection") from exc
        return self._to_record(row)

    def list(self) -> list[DetectionRecord]:
        try:
            rows = list(PlantDetection.objects.defer("image_data").order_by("-detected_at"))
        except DatabaseError as exc:
            logger.error(f"Ошибка чтения списка распознаваний: {exc}")
            raise StorageError("Failed to fetch plant detections") from exc
        return [self._to_record(row, with_image=False) for row in rows]


class InMemoryDetectionStore(DetectionStore):
    """Хранилище в памяти процесса. Для тестов и запуска без БД."""

    def __init__(self):
        self._records: dict[uuid.UUID, DetectionRecord] = {}

    def put(self, record: DetectionRecord) -> uuid.UUID:
        if record.id in self._records:
            raise StorageError(f"Duplicate detection id {record.id}")
        self._records[record.id] = record
        return record.id

    def get(self, pk) -> DetectionRecord:
        record = self._records.get(_parse_id(pk))
        if record is None:
            raise NotFoundError()
        return record

    def list(self) -> list[DetectionRecord]:
        return sorted(self._records.values(), key=lambda r: r.detected_at, reverse=True)
