import uuid

from django.db import models
from django.utils import timezone


class PlantDetection(models.Model):
    # id генерируется приложением, а не последовательностью БД
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    original_image_name = models.CharField(max_length=255, blank=True)
    image_data = models.BinaryField()
    mime_type = models.CharField(max_length=100)
    detected_at = models.DateTimeField(default=timezone.now, db_index=True)
    plant_info = models.TextField(blank=True)
    scientific_name = models.TextField(blank=True)
    common_name = models.TextField(blank=True)

    class Meta:
        ordering = ["-detected_at"]

    def __str__(self):
        name = self.scientific_name or self.common_name or "unknown"
        return f"{name} - {self.detected_at:%Y-%m-%d %H:%M:%S}"
