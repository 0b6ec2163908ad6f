import asyncio

import pytest

from conftest import OTHER_USER_ID, PNG_BYTES, USER_ID, add_background
from fabricshoot.core.config import settings
from fabricshoot.models import MultiFabricJob, MultiFabricResult
from fabricshoot.schemas.job import OutputMode
from fabricshoot.schemas.multi_fabric import DetectedLabels, LabeledPiece
from fabricshoot.services.gemini_image import ImageSuccess, LabelParseError
from fabricshoot.workers.base import (
    InvalidRequestError,
    InvalidTransitionError,
    ResourceNotFoundError,
    UpstreamRateLimitedError,
)
from fabricshoot.workers.multi_fabric import COMBINED_LABEL, MultiFabricPipeline

SOURCE_URL = "https://cdn.example.com/labelled.png"


def labels_with(*pieces, sample_count=1, variants=()):
    return DetectedLabels(
        pieces=[LabeledPiece(label=label, description=desc) for label, desc in pieces],
        sample_count=sample_count,
        color_variants=list(variants),
    ).normalized()


@pytest.fixture
def pipeline(db, fakes, session_factory):
    return MultiFabricPipeline(
        db, fakes.gemini, fakes.captioner, fakes.storage, session_factory=session_factory
    )


async def detected_job(pipeline, fakes, labels):
    fakes.gemini.labels = labels
    job, _ = await pipeline.detect(USER_ID, SOURCE_URL)
    return job


async def test_detect_stores_normalized_labels(pipeline, fakes, db):
    labels = labels_with(("T", "navy floral"), ("D", "beige"), ("C", "green"))
    job = await detected_job(pipeline, fakes, labels)

    db.expire_all()
    job = db.get(MultiFabricJob, job.id)
    assert job.status == "detected"
    assert job.detected_labels["sample_count"] == 2
    assert job.detected_labels["color_variants"] == ["green"]


async def test_detect_requires_source(pipeline):
    with pytest.raises(InvalidRequestError):
        await pipeline.detect(USER_ID, None)


async def test_detect_failure_marks_job_failed(pipeline, fakes, db):
    fakes.gemini.labels = LabelParseError()
    with pytest.raises(LabelParseError):
        await pipeline.detect(USER_ID, SOURCE_URL)

    job = db.query(MultiFabricJob).one()
    assert job.status == "failed"
    assert job.error_message == "Could not parse label detection"


async def test_fan_out_creates_one_terminal_row_per_sample(pipeline, fakes, db):
    labels = labels_with(("T", "navy"), ("D", "beige"), ("C", "green"), ("C", "red"), sample_count=4)
    job = await detected_job(pipeline, fakes, labels)

    results = await pipeline.generate(USER_ID, job.id)

    assert len(results) == max(labels.sample_count, 1 + len(labels.color_variants)) == 4
    assert [r.label for r in results] == ["main", "color_variant", "color_variant", "sample_4"]
    assert [r.color_variant for r in results[1:3]] == ["green", "red"]
    assert all(r.status == "completed" for r in results)
    assert all(r.generated_image_url for r in results)
    assert len(set(r.generated_image_url for r in results)) == 4
    assert all(r.caption_primary == fakes.captioner.captions.primary for r in results)
    assert len(fakes.captioner.calls) == 1
    assert len(fakes.gemini.loaded) == 2  # detect + one shared load for the fan-out
    assert all("one of 4 images" in p for p in fakes.gemini.prompts)
    assert db.get(MultiFabricJob, job.id).status == "completed"


async def test_one_failed_sample_does_not_affect_siblings(pipeline, fakes, db):
    labels = labels_with(("T", "navy"), ("C", "green"), ("C", "red"))
    job = await detected_job(pipeline, fakes, labels)

    def fail_for_green(prompt):
        if "green" in prompt:
            return None
        return ImageSuccess(PNG_BYTES, "image/png")

    fakes.gemini.on_generate = fail_for_green
    results = await pipeline.generate(USER_ID, job.id)

    by_variant = {r.color_variant: r for r in results}
    assert by_variant["green"].status == "failed"
    assert by_variant["green"].generated_image_url is None
    assert by_variant["green"].error_message == "Image generation failed"
    assert by_variant["red"].status == "completed"
    assert by_variant[None].status == "completed"
    assert db.get(MultiFabricJob, job.id).status == "completed"


async def test_samples_generate_concurrently(pipeline, fakes):
    labels = labels_with(("T", "navy"), ("C", "green"), ("C", "red"))
    job = await detected_job(pipeline, fakes, labels)
    in_flight = {"now": 0, "peak": 0}

    async def slow_generate(prompt, references):
        in_flight["now"] += 1
        in_flight["peak"] = max(in_flight["peak"], in_flight["now"])
        await asyncio.sleep(0.01)
        in_flight["now"] -= 1
        return ImageSuccess(PNG_BYTES, "image/png")

    fakes.gemini.generate_image = slow_generate
    results = await pipeline.generate(USER_ID, job.id)

    assert len(results) == 3
    assert in_flight["peak"] == 3
    assert all(r.status == "completed" for r in results)


async def test_upload_failure_is_recorded_on_the_row(pipeline, fakes):
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy")))
    fakes.storage.fail_uploads = True

    results = await pipeline.generate(USER_ID, job.id)

    assert len(results) == 1
    assert results[0].status == "failed"
    assert results[0].error_message == "bucket unavailable"


async def test_rate_limited_sample_keeps_its_category_message(pipeline, fakes):
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy"), ("C", "green")))

    def limited(prompt):
        if "green" in prompt:
            raise UpstreamRateLimitedError()
        return ImageSuccess(PNG_BYTES, "image/png")

    fakes.gemini.on_generate = limited
    results = await pipeline.generate(USER_ID, job.id)

    failed = [r for r in results if r.status == "failed"]
    assert [r.error_message for r in failed] == ["Rate limit exceeded. Please try again later."]


async def test_combined_mode_makes_exactly_one_row(pipeline, fakes):
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy"), ("C", "green"), ("C", "red")))

    results = await pipeline.generate(USER_ID, job.id, output_mode=OutputMode.COMBINED)

    assert len(results) == 1
    assert results[0].label == COMBINED_LABEL
    assert results[0].color_variant == "green, red"
    assert len(fakes.gemini.prompts) == 1
    assert "Exactly 3 mannequins" in fakes.gemini.prompts[0]


async def test_generate_uses_user_background_and_mannequin(pipeline, fakes, db):
    add_background(db, url="https://cdn.example.com/boutique.png")
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy")))

    await pipeline.generate(USER_ID, job.id, mannequin_url="https://cdn.example.com/form.png")

    assert fakes.gemini.loaded[-1] == [
        SOURCE_URL, "https://cdn.example.com/form.png", "https://cdn.example.com/boutique.png",
    ]
    job = db.get(MultiFabricJob, job.id)
    assert job.background_image_url == "https://cdn.example.com/boutique.png"


async def test_generate_twice_is_rejected(pipeline, fakes):
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy")))
    await pipeline.generate(USER_ID, job.id)

    with pytest.raises(InvalidTransitionError):
        await pipeline.generate(USER_ID, job.id)


async def test_generate_other_users_job_is_not_found(pipeline, fakes):
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy")))
    with pytest.raises(ResourceNotFoundError):
        await pipeline.generate(OTHER_USER_ID, job.id)


async def test_sample_cap_rejects_before_generation(pipeline, fakes, db, monkeypatch):
    monkeypatch.setattr(settings, "MAX_SAMPLES_PER_JOB", 2)
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy"), ("C", "a"), ("C", "b")))

    with pytest.raises(InvalidRequestError):
        await pipeline.generate(USER_ID, job.id)

    assert fakes.gemini.prompts == []
    assert db.query(MultiFabricResult).count() == 0
    assert db.get(MultiFabricJob, job.id).status == "detected"


async def test_retry_regenerates_only_the_failed_result(pipeline, fakes, db):
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy"), ("C", "green")))
    fakes.gemini.on_generate = lambda prompt: None if "green" in prompt else ImageSuccess(PNG_BYTES, "image/png")
    results = await pipeline.generate(USER_ID, job.id)
    failed = next(r for r in results if r.status == "failed")
    kept = next(r for r in results if r.status == "completed")
    kept_url = kept.generated_image_url

    fakes.gemini.on_generate = None
    results = await pipeline.retry(USER_ID, job.id, failed.id)

    by_id = {r.id: r for r in results}
    assert len(results) == 2
    assert by_id[failed.id].status == "completed"
    assert by_id[failed.id].generated_image_url
    assert by_id[kept.id].generated_image_url == kept_url
    assert db.get(MultiFabricJob, job.id).status == "completed"


async def test_retry_needs_completed_job(pipeline, fakes):
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy")))
    with pytest.raises(InvalidTransitionError):
        await pipeline.retry(USER_ID, job.id, "any")


async def test_retry_unknown_result(pipeline, fakes):
    job = await detected_job(pipeline, fakes, labels_with(("T", "navy")))
    await pipeline.generate(USER_ID, job.id)
    with pytest.raises(ResourceNotFoundError):
        await pipeline.retry(USER_ID, job.id, "missing")
