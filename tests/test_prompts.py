from fabricshoot.schemas.job import UploadKind
from fabricshoot.services.prompts import (
    CUSTOMIZATION_HEADER,
    FABRIC_FIDELITY,
    GENERIC_STUDIO_BACKGROUND,
    PLAIN_BOTTOM,
    PROVIDED_BACKGROUND,
    PromptContext,
    PromptTemplate,
    build_caption_prompt,
    build_image_prompt,
    build_music_prompt,
    select_template,
)


def test_plain_fabric_without_background_uses_studio_backdrop():
    ctx = PromptContext(upload_kind=UploadKind.FABRIC, has_human_model=False)
    prompt = build_image_prompt(ctx)

    assert select_template(ctx) is PromptTemplate.MODEL_WEARING_GARMENT
    assert GENERIC_STUDIO_BACKGROUND in prompt
    assert PROVIDED_BACKGROUND not in prompt
    assert FABRIC_FIDELITY in prompt
    assert PLAIN_BOTTOM in prompt
    assert CUSTOMIZATION_HEADER not in prompt


def test_person_in_source_selects_mannequin_conversion():
    ctx = PromptContext(upload_kind=UploadKind.FABRIC, has_human_model=True)
    assert select_template(ctx) is PromptTemplate.MANNEQUIN_CONVERSION
    assert "mannequin" in build_image_prompt(ctx).lower()


def test_explicit_mannequin_conversion_ignores_classifier():
    ctx = PromptContext(upload_kind=UploadKind.MANNEQUIN_CONVERSION, has_human_model=False)
    assert select_template(ctx) is PromptTemplate.MANNEQUIN_CONVERSION


def test_labelled_upload_selects_multi_fabric_template():
    ctx = PromptContext(upload_kind=UploadKind.LABELED_MULTI_FABRIC, has_human_model=True)
    assert select_template(ctx) is PromptTemplate.MULTI_FABRIC_DRAPED


def test_custom_instructions_are_appended_last():
    ctx = PromptContext(custom_prompt="  Add a red bindi to the model.  ", background_provided=True)
    prompt = build_image_prompt(ctx)

    assert prompt.endswith(f"{CUSTOMIZATION_HEADER}\nAdd a red bindi to the model.")
    assert PROVIDED_BACKGROUND in prompt


def test_blank_custom_instructions_are_ignored():
    assert CUSTOMIZATION_HEADER not in build_image_prompt(PromptContext(custom_prompt="   \n "))


def test_variant_consistency_only_for_multiple_images():
    single = build_image_prompt(PromptContext(upload_kind=UploadKind.LABELED_MULTI_FABRIC))
    several = build_image_prompt(PromptContext(upload_kind=UploadKind.LABELED_MULTI_FABRIC, variant_count=3))
    combined = build_image_prompt(PromptContext(
        upload_kind=UploadKind.LABELED_MULTI_FABRIC,
        combined=True,
        variant_count=3,
        color_variants=("blue", "green"),
    ))

    assert "VARIANT CONSISTENCY" not in single
    assert "ONLY the garment color may differ" in several
    assert "one of 3 images" in several
    assert "Exactly 3 mannequins" in combined
    assert "blue, green" in combined


def test_reference_guide_follows_attachment_order():
    prompt = build_image_prompt(PromptContext(mannequin_reference_provided=True, background_provided=True))
    assert "1. Source image" in prompt
    assert "2. Mannequin reference" in prompt
    assert "3. Background reference" in prompt

    no_mannequin = build_image_prompt(PromptContext(background_provided=True))
    assert "2. Background reference" in no_mannequin


def test_bottom_fabric_replaces_plain_bottom_rule():
    prompt = build_image_prompt(PromptContext(upload_kind=UploadKind.LABELED_MULTI_FABRIC, has_bottom_fabric=True))
    assert PLAIN_BOTTOM not in prompt


def test_prompts_are_deterministic():
    ctx = PromptContext(
        upload_kind=UploadKind.LABELED_MULTI_FABRIC,
        sample_description="Top: navy floral",
        variant_count=2,
        custom_prompt="festive mood",
    )
    assert build_image_prompt(ctx) == build_image_prompt(ctx)


def test_caption_prompt_keys_by_language():
    prompt = build_caption_prompt("English", "Hindi", context_pieces=["T: navy floral"], custom_prompt="Diwali sale")
    assert '"english":' in prompt
    assert '"hindi":' in prompt
    assert "T: navy floral" in prompt
    assert prompt.endswith("Diwali sale")


def test_music_prompt_falls_back_to_generic_theme():
    assert "Beautiful Indian fashion kurti" in build_music_prompt("   ", 20)
    assert "20 seconds" in build_music_prompt("Blue kurti", 20)
