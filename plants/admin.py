from django.contrib import admin

from .models import PlantDetection


@admin.register(PlantDetection)
class PlantDetectionAdmin(admin.ModelAdmin):
    list_display = ("scientific_name", "common_name", "original_image_name", "detected_at")
    search_fields = ("scientific_name", "common_name", "original_image_name")
    exclude = ("image_data",)
    readonly_fields = (
        "id",
        "original_image_name",
        "mime_type",
        "detected_at",
        "plant_info",
        "scientific_name",
        "common_name",
    )

    # Записи только добавляются через API
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
