import uuid

from django.db import migrations, models
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PlantDetection",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("original_image_name", models.CharField(blank=True, max_length=255)),
                ("image_data", models.BinaryField()),
                ("mime_type", models.CharField(max_length=100)),
                ("detected_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("plant_info", models.TextField(blank=True)),
                ("scientific_name", models.TextField(blank=True)),
                ("common_name", models.TextField(blank=True)),
            ],
            options={
                "ordering": ["-detected_at"],
            },
        ),
    ]
