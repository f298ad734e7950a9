from django import forms


class DetectionUploadForm(forms.Form):
    # Тип и размер проверяет DetectionService, здесь только наличие файла
    image = forms.FileField(
        required=True,
        allow_empty_file=True,
        error_messages={"required": "No image file uploaded"},
    )
