import base64
from types import SimpleNamespace

import pytest
from google.genai import errors as genai_errors

from conftest import JPEG_BYTES, PNG_BYTES
from fabricshoot.services.gemini_image import (
    GeminiImageService,
    ImageSuccess,
    LabelDetectionError,
    LabelParseError,
    NoImage,
    ReferenceImage,
    parse_image_response,
)
from fabricshoot.workers.base import (
    InvalidRequestError,
    UpstreamQuotaExhaustedError,
    UpstreamRateLimitedError,
    retry_until,
)


def image_response(data=PNG_BYTES, mime_type="image/png"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]), finish_reason="STOP")])


def text_only_response(text="I cannot draw that."):
    part = SimpleNamespace(inline_data=None, text=text)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]), finish_reason="SAFETY")])


def api_error(code, message="upstream said no"):
    return genai_errors.APIError(code, {"error": {"code": code, "message": message, "status": "ERROR"}})


class FakeModels:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def make_service(*responses, storage=None):
    models = FakeModels(responses)
    client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return GeminiImageService(storage_service=storage, client=client), models


REFS = [ReferenceImage(url="https://cdn.example.com/fabric.png", data=PNG_BYTES, mime_type="image/png")]


async def test_first_success_makes_one_call():
    service, models = make_service(image_response())
    result = await service.generate_image("prompt", REFS)
    assert result == ImageSuccess(data=PNG_BYTES, mime_type="image/png")
    assert len(models.calls) == 1
    assert models.calls[0]["contents"][0] == "prompt"


async def test_missing_image_is_retried_once():
    service, models = make_service(text_only_response(), image_response(JPEG_BYTES, "image/jpeg"))
    result = await service.generate_image("prompt", REFS)
    assert result.mime_type == "image/jpeg"
    assert len(models.calls) == 2


async def test_two_misses_is_a_soft_failure():
    service, models = make_service(text_only_response(), text_only_response())
    assert await service.generate_image("prompt", REFS) is None
    assert len(models.calls) == 2


async def test_server_errors_are_a_soft_failure():
    service, models = make_service(api_error(500), api_error(503))
    assert await service.generate_image("prompt", REFS) is None
    assert len(models.calls) == 2


async def test_rate_limit_is_retried_then_categorized():
    service, models = make_service(api_error(429), api_error(429))
    with pytest.raises(UpstreamRateLimitedError) as exc:
        await service.generate_image("prompt", REFS)
    assert exc.value.status_code == 429
    assert len(models.calls) == 2


async def test_quota_exhaustion_is_categorized():
    service, _ = make_service(api_error(402), api_error(402))
    with pytest.raises(UpstreamQuotaExhaustedError) as exc:
        await service.generate_image("prompt", REFS)
    assert exc.value.status_code == 402


async def test_rate_limit_then_success_recovers():
    service, models = make_service(api_error(429), image_response())
    assert isinstance(await service.generate_image("prompt", REFS), ImageSuccess)
    assert len(models.calls) == 2


def test_inline_base64_and_unknown_types():
    encoded = base64.b64encode(PNG_BYTES).decode("ascii")
    assert parse_image_response(image_response(encoded)) == ImageSuccess(PNG_BYTES, "image/png")
    assert isinstance(parse_image_response(image_response(b"GIF89a....")), NoImage)
    assert isinstance(parse_image_response(SimpleNamespace(candidates=[])), NoImage)


async def test_retry_until_rejects_zero_attempts():
    async def op():
        return 1

    with pytest.raises(ValueError):
        await retry_until(op, accept=lambda v: True, max_attempts=0)


async def test_human_detection_failure_means_no_person():
    service, _ = make_service(RuntimeError("network down"))
    assert await service.detect_human_presence(REFS[0]) is False


async def test_human_detection_reads_flag():
    service, models = make_service(SimpleNamespace(text='```json\n{"has_model": true}\n```'))
    assert await service.detect_human_presence(REFS[0]) is True
    assert models.calls[0]["model"] == service.vision_model


async def test_label_detection_normalizes():
    text = '{"pieces": [{"label": "T", "description": "navy"}, {"label": "C", "description": "green"}], "sample_count": 1}'
    service, _ = make_service(SimpleNamespace(text=text))
    labels = await service.detect_labels(REFS[0])
    assert labels.sample_count == 2
    assert labels.color_variants == ["green"]


async def test_label_detection_unparseable():
    service, _ = make_service(SimpleNamespace(text="I see some fabrics."))
    with pytest.raises(LabelParseError):
        await service.detect_labels(REFS[0])


async def test_label_detection_upstream_failure():
    service, _ = make_service(api_error(500))
    with pytest.raises(LabelDetectionError):
        await service.detect_labels(REFS[0])


async def test_label_detection_rate_limited():
    service, _ = make_service(api_error(429))
    with pytest.raises(UpstreamRateLimitedError):
        await service.detect_labels(REFS[0])


class BytesStorage:
    def __init__(self, payloads):
        self.payloads = payloads

    async def download_bytes(self, url):
        if url not in self.payloads:
            raise FileNotFoundError(url)
        return self.payloads[url]


async def test_references_load_in_order():
    storage = BytesStorage({"a": PNG_BYTES, "b": JPEG_BYTES})
    service, _ = make_service(storage=storage)
    refs = await service.load_reference_images(["a", "b"])
    assert [(r.url, r.mime_type) for r in refs] == [("a", "image/png"), ("b", "image/jpeg")]


async def test_unloadable_reference_rejects_request():
    service, _ = make_service(storage=BytesStorage({"a": PNG_BYTES}))
    with pytest.raises(InvalidRequestError):
        await service.load_reference_images(["a", "missing"])


async def test_unknown_format_rejects_request():
    service, _ = make_service(storage=BytesStorage({"a": b"%PDF-1.7"}))
    with pytest.raises(InvalidRequestError):
        await service.load_reference_images(["a"])
