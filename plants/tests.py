import base64
import tempfile
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from io import StringIO
from pathlib import Path
from unittest import mock

import requests
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import CommandError, call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from .conf import IdentificationConfig
from .exceptions import NotFoundError, StorageError, UpstreamError, ValidationError
from .extraction import extract_plant_data
from .gemini import IDENTIFY_PROMPT, GeminiClient
from .models import PlantDetection
from .services import DetectionService
from .store import DatabaseDetectionStore, DetectionRecord, InMemoryDetectionStore

FIG_TEXT = "1. Scientific name: Ficus benjamina\n2. Common name: Weeping fig\n3. Family: Moraceae"
# Небольшой "файл" с нулевыми и старшими байтами, чтобы ловить перекодирование
IMAGE_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x02\x00\x80\xfe\xff\xd9"


class StubClient:
    def __init__(self, text: str = FIG_TEXT, error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls = 0

    def identify(self, image_bytes: bytes, mime_type: str) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text


def _record(detected_at=None, **kwargs) -> DetectionRecord:
    values = {
        "id": uuid.uuid4(),
        "original_image_name": "leaf.jpg",
        "image_data": IMAGE_BYTES,
        "mime_type": "image/jpeg",
        "detected_at": detected_at or timezone.now(),
        "plant_info": FIG_TEXT,
        "scientific_name": "Ficus benjamina",
        "common_name": "Weeping fig",
    }
    values.update(kwargs)
    return DetectionRecord(**values)


class ExtractPlantDataTests(SimpleTestCase):
    def test_numbered_answer(self):
        names = extract_plant_data(FIG_TEXT)
        self.assertEqual(names.scientific_name, "Ficus benjamina")
        self.assertEqual(names.common_name, "Weeping fig")

    def test_no_labels_gives_empty_strings(self):
        names = extract_plant_data("This looks like a houseplant with glossy leaves.")
        self.assertEqual(names.scientific_name, "")
        self.assertEqual(names.common_name, "")

    def test_empty_and_none_input(self):
        self.assertEqual(extract_plant_data(""), ("", ""))
        self.assertEqual(extract_plant_data(None), ("", ""))

    def test_label_suffix_before_colon(self):
        names = extract_plant_data("Scientific name (Latin name): Monstera deliciosa\n")
        self.assertEqual(names.scientific_name, "Monstera deliciosa")

    def test_order_of_labels_does_not_matter(self):
        text = "Common name:  Swiss cheese plant  \nScientific name: Monstera deliciosa"
        names = extract_plant_data(text)
        self.assertEqual(names.scientific_name, "Monstera deliciosa")
        self.assertEqual(names.common_name, "Swiss cheese plant")

    def test_labels_are_case_insensitive(self):
        names = extract_plant_data("SCIENTIFIC NAME: Rosa canina\ncommon name: Dog rose")
        self.assertEqual(names.scientific_name, "Rosa canina")
        self.assertEqual(names.common_name, "Dog rose")

    def test_non_ascii_letters_do_not_form_a_name(self):
        self.assertEqual(extract_plant_data("Scientific name: Kırmızı gül").scientific_name, "")
        text = "Scientific name: \N{KELVIN SIGN}alanchoe blossfeldiana"
        self.assertEqual(extract_plant_data(text).scientific_name, "")

    def test_unicode_space_after_colon(self):
        names = extract_plant_data("Scientific name:\N{NO-BREAK SPACE}Ficus benjamina")
        self.assertEqual(names.scientific_name, "Ficus benjamina")

    def test_first_match_wins(self):
        text = "Scientific name: Ficus benjamina\nScientific name: Ficus elastica\nCommon name: A\nCommon name: B"
        names = extract_plant_data(text)
        self.assertEqual(names.scientific_name, "Ficus benjamina")
        self.assertEqual(names.common_name, "A")

    def test_only_two_tokens_are_captured(self):
        names = extract_plant_data("Scientific name: Rosa canina var. lutetiana")
        self.assertEqual(names.scientific_name, "Rosa canina")

    def test_markdown_wrapped_name_is_missed(self):
        names = extract_plant_data("**Scientific name:** *Ficus benjamina*")
        self.assertEqual(names.scientific_name, "")

    def test_common_name_stops_at_newline(self):
        names = extract_plant_data("Common name: Weeping fig, Ficus tree\nFamily: Moraceae")
        self.assertEqual(names.common_name, "Weeping fig, Ficus tree")

    def test_is_deterministic(self):
        self.assertEqual(extract_plant_data(FIG_TEXT), extract_plant_data(FIG_TEXT))


class DetectionServiceTests(SimpleTestCase):
    def setUp(self):
        self.config = IdentificationConfig(api_key="test-key")
        self.client = StubClient()
        self.store = InMemoryDetectionStore()
        self.service = DetectionService(self.config, client=self.client, store=self.store)

    def test_identify_stores_extracted_names(self):
        result = self.service.identify(IMAGE_BYTES, "image/jpeg", "fig.jpg")

        expected = extract_plant_data(FIG_TEXT)
        self.assertEqual(result.scientific_name, expected.scientific_name)
        self.assertEqual(result.common_name, expected.common_name)
        self.assertEqual(result.raw_text, FIG_TEXT)
        self.assertEqual(result.image_url, reverse("detection_image", args=[str(result.id)]))

        record = self.store.get(result.id)
        self.assertEqual(record.plant_info, FIG_TEXT)
        self.assertEqual(record.image_data, IMAGE_BYTES)
        self.assertEqual(record.mime_type, "image/jpeg")
        self.assertEqual(record.original_image_name, "fig.jpg")

    def test_identify_without_labels_still_persists(self):
        self.client.text = "A leafy green plant."
        result = self.service.identify(IMAGE_BYTES, "image/png", "plant.png")

        self.assertEqual(result.scientific_name, "")
        self.assertEqual(result.common_name, "")
        self.assertEqual(self.store.get(result.id).plant_info, "A leafy green plant.")

    def test_result_dict_uses_api_field_names(self):
        result = self.service.identify(IMAGE_BYTES, "image/jpeg", "fig.jpg")
        data = result.as_dict()
        self.assertEqual(set(data), {"plantInfo", "id", "scientificName", "commonName", "imageUrl"})
        self.assertEqual(data["id"], str(result.id))

    def test_non_image_mime_type_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.identify(b"%PDF-1.4", "application/pdf", "doc.pdf")
        self.assertEqual(self.client.calls, 0)
        self.assertEqual(self.store.list(), [])

    def test_empty_upload_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.identify(b"", "image/jpeg", "empty.jpg")
        self.assertEqual(self.client.calls, 0)

    def test_oversized_upload_is_rejected(self):
        service = DetectionService(
            IdentificationConfig(api_key="test-key", max_image_size=8),
            client=self.client,
            store=self.store,
        )
        with self.assertRaises(ValidationError):
            service.identify(b"123456789", "image/jpeg", "big.jpg")
        self.assertEqual(self.client.calls, 0)
        self.assertEqual(self.store.list(), [])

    def test_upload_at_size_limit_is_accepted(self):
        service = DetectionService(
            IdentificationConfig(api_key="test-key", max_image_size=8),
            client=self.client,
            store=self.store,
        )
        service.identify(b"12345678", "image/jpeg", "ok.jpg")
        self.assertEqual(len(self.store.list()), 1)

    def test_upstream_error_stores_nothing(self):
        self.client.error = UpstreamError("quota exceeded")
        with self.assertRaisesMessage(UpstreamError, "quota exceeded"):
            self.service.identify(IMAGE_BYTES, "image/jpeg", "fig.jpg")
        self.assertEqual(self.client.calls, 1)
        self.assertEqual(self.store.list(), [])

    def test_storage_error_is_propagated(self):
        store = mock.Mock()
        store.put.side_effect = StorageError()
        service = DetectionService(self.config, client=self.client, store=store)
        with self.assertRaises(StorageError):
            service.identify(IMAGE_BYTES, "image/jpeg", "fig.jpg")

    def test_list_is_newest_first_regardless_of_insertion(self):
        now = timezone.now()
        older = _record(detected_at=now - timedelta(hours=2))
        newest = _record(detected_at=now)
        middle = _record(detected_at=now - timedelta(hours=1))
        for record in (older, newest, middle):
            self.store.put(record)

        summaries = self.service.list()

        self.assertEqual([s.id for s in summaries], [newest.id, middle.id, older.id])
        dates = [s.detected_at for s in summaries]
        self.assertEqual(dates, sorted(dates, reverse=True))
        self.assertNotIn("plantInfo", summaries[0].as_dict())

    def test_get_returns_detail_without_image_bytes(self):
        record = _record()
        self.store.put(record)

        detail = self.service.get(str(record.id))

        self.assertEqual(detail.plant_info, FIG_TEXT)
        self.assertEqual(detail.image_url, reverse("detection_image", args=[str(record.id)]))
        self.assertNotIn("imageData", detail.as_dict())

    def test_get_unknown_id(self):
        with self.assertRaises(NotFoundError):
            self.service.get(uuid.uuid4())
        with self.assertRaises(NotFoundError):
            self.service.get("not-a-uuid")

    def test_get_image_unknown_id(self):
        with self.assertRaisesMessage(NotFoundError, "Image not found"):
            self.service.get_image(uuid.uuid4())

    def test_get_image_returns_bytes_and_mime_type(self):
        record = _record(mime_type="image/webp")
        self.store.put(record)
        self.assertEqual(self.service.get_image(record.id), (IMAGE_BYTES, "image/webp"))

    def test_get_image_without_bytes_is_not_found(self):
        record = _record(image_data=b"")
        self.store.put(record)
        with self.assertRaises(NotFoundError):
            self.service.get_image(record.id)

    def test_get_image_defaults_mime_type(self):
        record = _record(mime_type="")
        self.store.put(record)
        self.assertEqual(self.service.get_image(record.id)[1], "image/jpeg")

    def test_concurrent_identify_calls_get_distinct_ids(self):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(
                pool.map(
                    lambda i: self.service.identify(IMAGE_BYTES, "image/jpeg", f"{i}.jpg"),
                    range(16),
                )
            )

        ids = {result.id for result in results}
        self.assertEqual(len(ids), 16)
        for result in results:
            self.assertEqual(self.store.get(result.id).id, result.id)


class GeminiClientTests(SimpleTestCase):
    def setUp(self):
        self.config = IdentificationConfig(api_key="secret", timeout=5)
        self.session = mock.Mock()
        self.client = GeminiClient(self.config, session=self.session)

    def _response(self, status=200, payload=None, text=""):
        response = mock.Mock()
        response.status_code = status
        response.ok = status < 400
        response.text = text
        if payload is None:
            response.json.side_effect = ValueError("no json")
        else:
            response.json.return_value = payload
        return response

    def test_joins_text_parts_with_newline(self):
        self.session.post.return_value = self._response(
            payload={
                "candidates": [
                    {"content": {"parts": [{"text": "Scientific name: Ficus benjamina"}, {"inline_data": {}}, {"text": "Common name: Weeping fig"}]}}
                ]
            }
        )

        text = self.client.identify(IMAGE_BYTES, "image/jpeg")

        self.assertEqual(text, "Scientific name: Ficus benjamina\nCommon name: Weeping fig")

    def test_request_carries_prompt_image_and_timeout(self):
        self.session.post.return_value = self._response(payload={"candidates": [{"content": {"parts": []}}]})

        self.client.identify(IMAGE_BYTES, "image/png")

        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], self.config.endpoint)
        self.assertTrue(args[0].endswith("/gemini-2.0-flash:generateContent"))
        self.assertNotIn("params", kwargs)
        self.assertNotIn("secret", args[0])
        self.assertEqual(kwargs["headers"]["x-goog-api-key"], "secret")
        self.assertEqual(kwargs["timeout"], 5)
        parts = kwargs["json"]["contents"][0]["parts"]
        self.assertEqual(parts[0]["text"], IDENTIFY_PROMPT)
        self.assertEqual(parts[1]["inline_data"]["mime_type"], "image/png")
        self.assertEqual(base64.b64decode(parts[1]["inline_data"]["data"]), IMAGE_BYTES)
        self.assertEqual(kwargs["json"]["generation_config"], {"temperature": 0.4, "max_output_tokens": 2048})

    def test_prompt_asks_for_all_fields(self):
        for field in ("Scientific name", "Common name", "family", "description", "Growing conditions", "Care tips"):
            self.assertIn(field, IDENTIFY_PROMPT)

    def test_upstream_error_message_is_surfaced(self):
        self.session.post.return_value = self._response(
            status=429,
            payload={"error": {"code": 429, "message": "Resource has been exhausted"}},
        )
        with self.assertRaisesMessage(UpstreamError, "Resource has been exhausted"):
            self.client.identify(IMAGE_BYTES, "image/jpeg")

    def test_http_error_without_json_body(self):
        self.session.post.return_value = self._response(status=502, text="Bad gateway")
        with self.assertRaisesMessage(UpstreamError, "HTTP 502"):
            self.client.identify(IMAGE_BYTES, "image/jpeg")

    def test_missing_candidates_is_upstream_error(self):
        self.session.post.return_value = self._response(payload={"promptFeedback": {"blockReason": "SAFETY"}})
        with self.assertRaises(UpstreamError):
            self.client.identify(IMAGE_BYTES, "image/jpeg")

    def test_non_json_success_is_upstream_error(self):
        self.session.post.return_value = self._response(status=200, text="<html>")
        with self.assertRaises(UpstreamError):
            self.client.identify(IMAGE_BYTES, "image/jpeg")

    def test_timeout_is_upstream_error(self):
        self.session.post.side_effect = requests.Timeout("read timed out")
        with self.assertRaisesMessage(UpstreamError, "timed out"):
            self.client.identify(IMAGE_BYTES, "image/jpeg")

    def test_connection_error_is_upstream_error(self):
        self.session.post.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(UpstreamError):
            self.client.identify(IMAGE_BYTES, "image/jpeg")

    def test_connection_error_does_not_expose_api_key(self):
        self.session.post.side_effect = requests.ConnectionError(
            "Max retries exceeded with url: /v1beta/models/gemini-2.0-flash:generateContent?key=secret"
        )
        with self.assertLogs("plants.gemini", level="ERROR") as logs:
            with self.assertRaises(UpstreamError) as ctx:
                self.client.identify(IMAGE_BYTES, "image/jpeg")

        self.assertEqual(ctx.exception.message, "Identification service is unreachable")
        self.assertNotIn("secret", "\n".join(logs.output))

    def test_non_string_text_parts_are_skipped(self):
        self.session.post.return_value = self._response(
            payload={"candidates": [{"content": {"parts": [{"text": 5}, {"text": None}, {"text": "Common name: Fig"}]}}]}
        )
        self.assertEqual(self.client.identify(IMAGE_BYTES, "image/jpeg"), "Common name: Fig")

    @mock.patch("plants.gemini.requests.Session")
    def test_own_session_is_closed_after_call(self, session_cls):
        session = session_cls.return_value.__enter__.return_value
        session.post.return_value = self._response(payload={"candidates": [{"content": {"parts": [{"text": "ok"}]}}]})
        client = GeminiClient(self.config)

        self.assertEqual(client.identify(IMAGE_BYTES, "image/jpeg"), "ok")
        self.assertTrue(session_cls.return_value.__exit__.called)

    def test_missing_api_key(self):
        client = GeminiClient(IdentificationConfig(api_key=""), session=self.session)
        with self.assertRaises(UpstreamError):
            client.identify(IMAGE_BYTES, "image/jpeg")
        self.session.post.assert_not_called()


class IdentificationConfigTests(SimpleTestCase):
    @override_settings(
        GEMINI_API_KEY=" key ",
        GEMINI_MODEL="gemini-1.5-pro",
        GEMINI_TIMEOUT="12",
        PLANT_MAX_IMAGE_SIZE="1024",
    )
    def test_from_settings(self):
        config = IdentificationConfig.from_settings()
        self.assertEqual(config.api_key, "key")
        self.assertEqual(config.model, "gemini-1.5-pro")
        self.assertEqual(config.timeout, 12.0)
        self.assertEqual(config.max_image_size, 1024)

    @override_settings(GEMINI_TIMEOUT="soon", PLANT_MAX_IMAGE_SIZE=None)
    def test_bad_values_fall_back_to_defaults(self):
        config = IdentificationConfig.from_settings()
        self.assertEqual(config.timeout, 30.0)
        self.assertEqual(config.max_image_size, 10 * 1024 * 1024)


class DatabaseDetectionStoreTests(TestCase):
    def setUp(self):
        self.store = DatabaseDetectionStore()

    def test_put_and_get_preserve_bytes_and_text(self):
        text = FIG_TEXT + "\n\n**Care tips:** water weekly  \n"
        record = _record(plant_info=text)

        pk = self.store.put(record)
        stored = self.store.get(str(pk))

        self.assertEqual(pk, record.id)
        self.assertEqual(stored.image_data, IMAGE_BYTES)
        self.assertEqual(stored.plant_info, text)
        self.assertEqual(stored, record)

    def test_list_is_ordered_and_skips_image(self):
        now = timezone.now()
        older = _record(detected_at=now - timedelta(days=1))
        newer = _record(detected_at=now)
        self.store.put(older)
        self.store.put(newer)

        records = self.store.list()

        self.assertEqual([r.id for r in records], [newer.id, older.id])
        self.assertEqual(records[0].image_data, b"")

    def test_get_unknown_or_malformed_id(self):
        with self.assertRaises(NotFoundError):
            self.store.get(uuid.uuid4())
        with self.assertRaises(NotFoundError):
            self.store.get("123")

    def test_database_failure_becomes_storage_error(self):
        with mock.patch.object(PlantDetection.objects, "create", side_effect=DatabaseError("disk full")):
            with self.assertRaises(StorageError):
                self.store.put(_record())
        self.assertFalse(PlantDetection.objects.exists())


@override_settings(GEMINI_API_KEY="test-key")
class DetectionApiTests(TestCase):
    def _upload(self, content=IMAGE_BYTES, name="fig.jpg", content_type="image/jpeg"):
        return self.client.post(
            reverse("detect_plant"),
            {"image": SimpleUploadedFile(name, content, content_type=content_type)},
        )

    @mock.patch.object(GeminiClient, "identify", return_value=FIG_TEXT)
    def test_detect_plant(self, identify):
        response = self._upload()

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["plantInfo"], FIG_TEXT)
        self.assertEqual(data["scientificName"], "Ficus benjamina")
        self.assertEqual(data["commonName"], "Weeping fig")
        self.assertEqual(data["imageUrl"], f"/api/images/{data['id']}/")

        detection = PlantDetection.objects.get(pk=data["id"])
        self.assertEqual(bytes(detection.image_data), IMAGE_BYTES)
        self.assertEqual(detection.original_image_name, "fig.jpg")
        identify.assert_called_once_with(IMAGE_BYTES, "image/jpeg")

    @mock.patch.object(GeminiClient, "identify", return_value=FIG_TEXT)
    def test_non_image_upload_is_rejected(self, identify):
        response = self._upload(content=b"hello", name="notes.txt", content_type="text/plain")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Only image files are allowed")
        self.assertFalse(PlantDetection.objects.exists())
        identify.assert_not_called()

    def test_missing_file(self):
        response = self.client.post(reverse("detect_plant"), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "No image file uploaded")

    @mock.patch.object(GeminiClient, "identify", side_effect=UpstreamError("API key not valid"))
    def test_upstream_failure(self, identify):
        response = self._upload()

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "API key not valid")
        self.assertFalse(PlantDetection.objects.exists())

    @override_settings(GEMINI_API_KEY="SUPERSECRET123", GEMINI_API_URL="http://127.0.0.1:9/v1beta/models")
    def test_unreachable_service_does_not_leak_api_key(self):
        error = requests.ConnectionError(
            "HTTPConnectionPool(host='127.0.0.1', port=9): Max retries exceeded with url: "
            "/v1beta/models/gemini-2.0-flash:generateContent?key=SUPERSECRET123"
        )
        with mock.patch.object(requests.Session, "post", side_effect=error) as post:
            response = self._upload()

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Identification service is unreachable")
        self.assertNotIn("SUPERSECRET123", response.content.decode())
        self.assertNotIn("SUPERSECRET123", post.call_args.args[0])
        self.assertNotIn("params", post.call_args.kwargs)
        self.assertFalse(PlantDetection.objects.exists())

    @override_settings(PLANT_MAX_IMAGE_SIZE=8)
    @mock.patch.object(GeminiClient, "identify", return_value=FIG_TEXT)
    def test_oversized_upload_is_rejected(self, identify):
        response = self._upload()

        self.assertEqual(response.status_code, 400)
        self.assertIn("too large", response.json()["error"])
        self.assertFalse(PlantDetection.objects.exists())
        identify.assert_not_called()

    @mock.patch.object(GeminiClient, "identify", return_value=FIG_TEXT)
    def test_storage_failure(self, identify):
        with mock.patch.object(PlantDetection.objects, "create", side_effect=DatabaseError("disk full")):
            response = self._upload()

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Failed to store plant detection")
        self.assertFalse(PlantDetection.objects.exists())

    def test_detect_plant_requires_post(self):
        response = self.client.get(reverse("detect_plant"))
        self.assertEqual(response.status_code, 405)

    def test_detections_list(self):
        now = timezone.now()
        old = PlantDetection.objects.create(
            original_image_name="old.jpg",
            image_data=IMAGE_BYTES,
            mime_type="image/jpeg",
            detected_at=now - timedelta(days=3),
            plant_info="Common name: Old",
            common_name="Old",
        )
        new = PlantDetection.objects.create(
            original_image_name="new.png",
            image_data=IMAGE_BYTES,
            mime_type="image/png",
            detected_at=now,
            plant_info=FIG_TEXT,
            scientific_name="Ficus benjamina",
            common_name="Weeping fig",
        )

        response = self.client.get(reverse("detections_list"))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual([item["id"] for item in data], [str(new.id), str(old.id)])
        self.assertEqual(
            set(data[0]),
            {"id", "originalImageName", "detectedAt", "scientificName", "commonName", "imageUrl"},
        )
        self.assertEqual(data[1]["imageUrl"], f"/api/images/{old.id}/")

    def test_detection_detail(self):
        detection = PlantDetection.objects.create(
            original_image_name="fig.jpg",
            image_data=IMAGE_BYTES,
            mime_type="image/jpeg",
            plant_info=FIG_TEXT,
            scientific_name="Ficus benjamina",
            common_name="Weeping fig",
        )

        response = self.client.get(reverse("detection_detail", args=[detection.pk]))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["plantInfo"], FIG_TEXT)
        self.assertEqual(data["mimeType"], "image/jpeg")
        self.assertNotIn("imageData", data)
        self.assertEqual(data["imageUrl"], f"/api/images/{detection.pk}/")

    def test_detection_detail_not_found(self):
        response = self.client.get(reverse("detection_detail", args=[uuid.uuid4()]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Plant detection not found")

        response = self.client.get(reverse("detection_detail", args=["abc"]))
        self.assertEqual(response.status_code, 404)

    def test_detection_image(self):
        detection = PlantDetection.objects.create(
            original_image_name="fig.webp",
            image_data=IMAGE_BYTES,
            mime_type="image/webp",
            plant_info="",
        )

        response = self.client.get(reverse("detection_image", args=[detection.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, IMAGE_BYTES)
        self.assertEqual(response["Content-Type"], "image/webp")
        self.assertIn("max-age=86400", response["Cache-Control"])

    def test_detection_image_not_found(self):
        response = self.client.get(reverse("detection_image", args=[uuid.uuid4()]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Image not found")
        self.assertFalse(response.has_header("Cache-Control"))

    @mock.patch.object(GeminiClient, "identify", return_value=FIG_TEXT)
    def test_uploaded_image_is_served_back(self, identify):
        data = self._upload(name="leaf.png", content_type="image/png").json()

        response = self.client.get(data["imageUrl"])

        self.assertEqual(response.content, IMAGE_BYTES)
        self.assertEqual(response["Content-Type"], "image/png")

    def test_healthz(self):
        response = self.client.get(reverse("healthz"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["db"], "ok")
        self.assertEqual(response.json()["gemini"], "ok")


@override_settings(GEMINI_API_KEY="test-key")
class IdentifyImageCommandTests(TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.path = Path(tmp.name) / "fig.jpg"
        self.path.write_bytes(IMAGE_BYTES)

    @mock.patch.object(GeminiClient, "identify", return_value=FIG_TEXT)
    def test_identifies_local_file(self, identify):
        out = StringIO()
        call_command("identify_image", str(self.path), stdout=out)

        detection = PlantDetection.objects.get()
        self.assertEqual(detection.scientific_name, "Ficus benjamina")
        self.assertEqual(detection.mime_type, "image/jpeg")
        self.assertIn(str(detection.pk), out.getvalue())
        self.assertIn("Weeping fig", out.getvalue())

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command("identify_image", str(self.path.with_name("nope.jpg")), stdout=StringIO())

    def test_unknown_type_is_rejected(self):
        path = self.path.with_suffix(".bin")
        path.write_bytes(IMAGE_BYTES)
        with self.assertRaisesMessage(CommandError, "Only image files are allowed"):
            call_command("identify_image", str(path), stdout=StringIO())
        self.assertFalse(PlantDetection.objects.exists())
