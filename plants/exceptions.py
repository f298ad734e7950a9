class DetectionError(Exception):
    """Базовая ошибка распознавания. Во views превращается в JSON {"error": ...}."""

    status_code = 500
    default_message = "Failed to detect plant"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DetectionError):
    status_code = 400
    default_message = "Invalid image upload"


class UpstreamError(DetectionError):
    status_code = 500
    default_message = "Identification service failed"


class StorageError(DetectionError):
    status_code = 500
    default_message = "Failed to store plant detection"


class NotFoundError(DetectionError):
    status_code = 404
    default_message = "Plant detection not found"
