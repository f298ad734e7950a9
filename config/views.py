from django.conf import settings
from django.db import connection
from django.http import JsonResponse


def _check_db():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1;")
        cursor.fetchone()


def healthz(request):
    checks = {
        "status": "ok",
        "db": "ok",
        "gemini": "ok" if getattr(settings, "GEMINI_API_KEY", "") else "missing api key",
        "debug": settings.DEBUG,
    }

    try:
        _check_db()
    except Exception as exc:
        checks["status"] = "fail"
        checks["db"] = f"fail: {type(exc).__name__}: {exc}"

    # Без ключа сервис жив, но распознавание вернет ошибку
    code = 200 if checks["status"] == "ok" else 500
    return JsonResponse(checks, status=code)
