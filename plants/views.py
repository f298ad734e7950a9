import logging
from functools import wraps

from django.http import HttpResponse, JsonResponse
from django.views.decorators.cache import cache_control
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .exceptions import DetectionError
from .forms import DetectionUploadForm
from .services import get_detection_service

logger = logging.getLogger(__name__)

IMAGE_MAX_AGE = 86400


def _error_response(exc: DetectionError) -> JsonResponse:
    return JsonResponse({"error": exc.message}, status=exc.status_code)


def detection_errors(view_func):
    """Ошибки распознавания превращаются в JSON-ответ, процесс не падает."""

    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except DetectionError as exc:
            if exc.status_code >= 500:
                logger.error(f"{request.method} {request.path}: {exc.message}")
            return _error_response(exc)

    return _wrapped


@csrf_exempt
@require_POST
@detection_errors
def detect_plant(request):
    form = DetectionUploadForm(request.POST, request.FILES)
    if not form.is_valid():
        return JsonResponse({"error": "No image file uploaded"}, status=400)

    upload = form.cleaned_data["image"]
    service = get_detection_service()
    # Размер известен до чтения, большой файл не грузим в память
    service.validate_size(upload.size)
    result = service.identify(
        upload.read(),
        upload.content_type or "",
        upload.name or "",
    )
    return JsonResponse(result.as_dict())


@require_GET
@detection_errors
def detections_list(request):
    detections = get_detection_service().list()
    return JsonResponse([item.as_dict() for item in detections], safe=False)


@require_GET
@detection_errors
def detection_detail(request, pk):
    detail = get_detection_service().get(pk)
    return JsonResponse(detail.as_dict())


@require_GET
@detection_errors
@cache_control(max_age=IMAGE_MAX_AGE)
def detection_image(request, pk):
    data, mime_type = get_detection_service().get_image(pk)
    return HttpResponse(data, content_type=mime_type)
