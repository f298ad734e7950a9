import mimetypes
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from plants.exceptions import DetectionError
from plants.services import get_detection_service


class Command(BaseCommand):
    help = "Распознает растение на локальном изображении и сохраняет результат"

    def add_arguments(self, parser):
        parser.add_argument("path", help="Путь к файлу изображения")
        parser.add_argument(
            "--mime-type",
            dest="mime_type",
            default=None,
            help="MIME-тип, если его нельзя определить по расширению",
        )
        parser.add_argument(
            "--show-text",
            action="store_true",
            help="Напечатать полный ответ модели",
        )

    def handle(self, *args, **options):
        path = Path(options["path"])
        if not path.is_file():
            raise CommandError(f"Файл не найден: {path}")

        mime_type = options["mime_type"] or mimetypes.guess_type(path.name)[0] or ""
        self.stdout.write(f"Отправляю {path.name} ({mime_type or 'unknown type'})...")

        try:
            result = get_detection_service().identify(path.read_bytes(), mime_type, path.name)
        except DetectionError as exc:
            raise CommandError(exc.message) from exc

        self.stdout.write(self.style.SUCCESS(f"Сохранено: {result.id}"))
        self.stdout.write(f"Scientific name: {result.scientific_name or '-'}")
        self.stdout.write(f"Common name: {result.common_name or '-'}")
        self.stdout.write(f"Image URL: {result.image_url}")
        if options["show_text"]:
            self.stdout.write("")
            self.stdout.write(result.raw_text)
