"""
Prompt Builder
Pure functions that assemble generation instructions. Identical inputs always
produce identical text.

Three image templates exist:
- model wearing garment: fabric swatch upload, no person in the source
- mannequin conversion: the source already shows a person, or the seller
  asked for a mannequin version explicitly
- multi-fabric draped on bust: labelled T/D/B/C uploads, one sample per
  image or all samples side by side ("combined")
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from fabricshoot.schemas.job import UploadKind


class PromptTemplate(str, Enum):
    MODEL_WEARING_GARMENT = "model_wearing_garment"
    MANNEQUIN_CONVERSION = "mannequin_conversion"
    MULTI_FABRIC_DRAPED = "multi_fabric_draped"


GENERIC_STUDIO_BACKGROUND = (
    "BACKGROUND: No background image is provided. Use a clean, professional studio "
    "backdrop in soft neutral tones (white, cream or light grey) with no props."
)

PROVIDED_BACKGROUND = (
    "BACKGROUND: Use the provided background reference image EXACTLY as the setting. "
    "Do not redraw, restyle, recolor or crop it; place the subject naturally within it "
    "with matching perspective and light direction."
)

FABRIC_FIDELITY = (
    "FABRIC FIDELITY (CRITICAL): The garment must be made from the EXACT fabric in the "
    "source image. Reproduce its weave, texture, base color, motifs, prints and embroidery "
    "precisely. Do NOT recolor, simplify, reinterpret, mirror or invent any part of the pattern."
)

PLAIN_BOTTOM = (
    "BOTTOM: No bottom fabric was supplied. The pants/salwar/churidar must be PLAIN and "
    "solid-colored, matching the top's primary color. NO prints, patterns or embroidery on the bottom."
)

FABRIC_BOTTOM = (
    "BOTTOM: Use the bottom fabric shown in the source image for the pants/salwar, with the "
    "same fidelity rules as the top."
)

FRAMING_AND_LIGHTING = (
    "FRAMING AND LIGHTING: Full-length or three-quarter view with the whole garment visible, "
    "camera at chest height, straight-on angle. Soft, even, high-end studio lighting with "
    "gentle shadows. Sharp focus on the fabric; photorealistic fashion product photography."
)

VARIANT_CONSISTENCY = (
    "VARIANT CONSISTENCY (CRITICAL): This image is one of {count} images of the same design. "
    "Composition, camera angle, framing, mannequin pose, mannequin styling, draping and lighting "
    "must be IDENTICAL across all of them. ONLY the garment color may differ between variants."
)

COMBINED_CONSISTENCY = (
    "VARIANT CONSISTENCY (CRITICAL): All {count} mannequins must be the same size, evenly spaced, "
    "in the same pose and angle, with identical draping and styling. ONLY the garment color may "
    "differ between mannequins."
)

CUSTOMIZATION_HEADER = (
    "ADDITIONAL CUSTOMIZATION (requested by the seller; apply it only where it does not "
    "conflict with the requirements above):"
)


@dataclass(frozen=True)
class PromptContext:
    """Everything that decides the wording of an image prompt."""
    upload_kind: UploadKind = UploadKind.FABRIC
    has_human_model: bool = False
    has_bottom_fabric: bool = False
    custom_prompt: Optional[str] = None
    background_provided: bool = False
    mannequin_reference_provided: bool = False
    sample_description: Optional[str] = None
    variant_count: int = 1
    combined: bool = False
    color_variants: Tuple[str, ...] = ()


def select_template(ctx: PromptContext) -> PromptTemplate:
    """Pick exactly one template for the context."""
    if ctx.upload_kind == UploadKind.LABELED_MULTI_FABRIC:
        return PromptTemplate.MULTI_FABRIC_DRAPED
    if ctx.upload_kind == UploadKind.MANNEQUIN_CONVERSION or ctx.has_human_model:
        return PromptTemplate.MANNEQUIN_CONVERSION
    return PromptTemplate.MODEL_WEARING_GARMENT


def reference_guide(ctx: PromptContext) -> str:
    """Tell the model which attached image is which, in attachment order."""
    lines = ["REFERENCE IMAGES (in order):", "1. Source image - the fabric/garment to reproduce."]
    index = 2
    if ctx.mannequin_reference_provided:
        lines.append(f"{index}. Mannequin reference - match this mannequin/dress form exactly.")
        index += 1
    if ctx.background_provided:
        lines.append(f"{index}. Background reference - the exact setting to use.")
    return "\n".join(lines)


def _mannequin_clause(ctx: PromptContext) -> str:
    if ctx.mannequin_reference_provided:
        return ("MANNEQUIN: Use the provided mannequin reference image; match its exact style, "
                "shape, color, finish and form.")
    return "MANNEQUIN: Use a professional, neutral-toned dress form/mannequin with a clean finish."


def _bottom_clause(ctx: PromptContext) -> str:
    return FABRIC_BOTTOM if ctx.has_bottom_fabric else PLAIN_BOTTOM


def _background_clause(ctx: PromptContext) -> str:
    return PROVIDED_BACKGROUND if ctx.background_provided else GENERIC_STUDIO_BACKGROUND


def _consistency_clause(ctx: PromptContext) -> Optional[str]:
    if ctx.combined:
        return COMBINED_CONSISTENCY.format(count=ctx.variant_count)
    if ctx.variant_count > 1:
        return VARIANT_CONSISTENCY.format(count=ctx.variant_count)
    return None


def _numbered(requirements: Sequence[str]) -> str:
    return "\n".join(f"{i}. {text}" for i, text in enumerate(requirements, start=1))


def _model_wearing_garment(ctx: PromptContext) -> List[str]:
    header = (
        "Generate a professional fashion photography image of an Indian woman model wearing a "
        "kurti stitched from the fabric in the source image. Natural, elegant pose; Indian features."
    )
    requirements = [
        FABRIC_FIDELITY,
        "GARMENT: A well-fitted kurti that showcases the fabric's pattern, color and texture prominently.",
        _bottom_clause(ctx),
        _background_clause(ctx),
        FRAMING_AND_LIGHTING,
    ]
    return [header, "STRICT REQUIREMENTS:", _numbered(requirements)]


def _mannequin_conversion(ctx: PromptContext) -> List[str]:
    header = (
        "The source image shows a garment worn by a person. Generate a professional fashion "
        "product photograph of the SAME garment displayed on a mannequin/dress form. "
        "Remove the person completely; no human body parts, faces or skin may appear."
    )
    requirements = [
        FABRIC_FIDELITY,
        "GARMENT: Keep the exact cut, neckline, sleeve length, hem and embellishments of the worn garment.",
        _mannequin_clause(ctx),
        _bottom_clause(ctx),
        _background_clause(ctx),
        FRAMING_AND_LIGHTING,
    ]
    return [header, "STRICT REQUIREMENTS:", _numbered(requirements)]


def _multi_fabric_draped(ctx: PromptContext) -> List[str]:
    if ctx.combined:
        variants = ", ".join(ctx.color_variants) if ctx.color_variants else "as seen in the source image"
        header = (
            f"Generate a professional fashion product photograph showing exactly {ctx.variant_count} "
            f"mannequins/dress forms side by side in a single image."
        )
        requirements = [
            f"MANNEQUIN COUNT: Exactly {ctx.variant_count} mannequins, left to right, same height and size.",
            _mannequin_clause(ctx),
            f"GARMENTS: Each mannequin wears the SAME kurti/suit design from the source image in a "
            f"different color variant: {variants}.",
            FABRIC_FIDELITY,
            "DUPATTA: Each mannequin has its matching dupatta draped elegantly over the shoulder.",
            _bottom_clause(ctx),
            _background_clause(ctx),
            FRAMING_AND_LIGHTING,
        ]
    else:
        header = (
            "Generate a professional fashion product photograph of a mannequin/dress form "
            "displaying an Indian suit/kurti set draped on the bust."
        )
        requirements = [
            _mannequin_clause(ctx),
            f"GARMENT: Display the pieces as described: {ctx.sample_description or 'as shown in the source image'}",
            "TOP (KURTI): " + FABRIC_FIDELITY,
            "DUPATTA: If a dupatta piece is identified, drape it elegantly on the mannequin so its fabric is clearly visible.",
            _bottom_clause(ctx),
            _background_clause(ctx),
            FRAMING_AND_LIGHTING,
            "COMPOSITION: Full mannequin view with top, bottom and dupatta all visible.",
        ]
    return [header, "STRICT REQUIREMENTS:", _numbered(requirements)]


_BUILDERS = {
    PromptTemplate.MODEL_WEARING_GARMENT: _model_wearing_garment,
    PromptTemplate.MANNEQUIN_CONVERSION: _mannequin_conversion,
    PromptTemplate.MULTI_FABRIC_DRAPED: _multi_fabric_draped,
}


def build_image_prompt(ctx: PromptContext) -> str:
    """Assemble the full image-generation instruction for `ctx`."""
    template = select_template(ctx)
    sections = _BUILDERS[template](ctx)

    consistency = _consistency_clause(ctx)
    if consistency:
        sections.append(consistency)

    sections.append(reference_guide(ctx))

    custom = (ctx.custom_prompt or "").strip()
    if custom:
        sections.append(f"{CUSTOMIZATION_HEADER}\n{custom}")

    return "\n\n".join(sections)


# --- Vision / text prompts -------------------------------------------------

HUMAN_DETECTION_PROMPT = """Look at this image. Does it show a real human person (a model) wearing the garment or fabric?
Mannequins, dress forms, hangers and flat-lay fabric do NOT count as a person.

Return ONLY a JSON object, no other text:
{"has_model": true} or {"has_model": false}"""


LABEL_DETECTION_PROMPT = """Analyze this fabric/garment image carefully. The image contains fabric pieces/swatches labelled with letters. The letters can be ANY color and may be handwritten or digitally added.

The labels mean:
- T = Top (kurti/shirt fabric)
- D = Dupatta (scarf/stole fabric)
- B = Bottom (pants/salwar fabric)
- C = Color variant (same design in a different color)

Your task:
1. Identify ALL labelled pieces in the image
2. For each piece, determine its label (T, D, B, or C)
3. Describe each piece briefly (color, pattern, fabric type)
4. Count how many distinct SAMPLES/SETS are in the image. A sample is one T+D or T+D+B combination. Color variants (C) are additional samples of the same design.

Return ONLY a JSON object with this exact format:
{
  "pieces": [
    {"label": "T", "description": "Dark navy blue floral print fabric with pink flowers", "position": "center-right"},
    {"label": "D", "description": "Light beige fabric with brown floral motifs", "position": "background"},
    {"label": "C", "description": "Blue color variant of the same design", "position": "right side"}
  ],
  "sample_count": 1,
  "has_bottom": false,
  "color_variants": ["blue"],
  "summary": "One kurti set with top and dupatta, no separate bottom fabric (use plain). One color variant."
}

Be precise about what you see. If B is not present, set has_bottom to false."""


def build_caption_prompt(
    primary_language: str,
    secondary_language: str,
    context_pieces: Optional[Sequence[str]] = None,
    custom_prompt: Optional[str] = None,
) -> str:
    """Ask for a strict two-field JSON object keyed by language name."""
    primary = primary_language.lower()
    secondary = secondary_language.lower()

    if context_pieces:
        subject = f"this fabric image containing a suit set with these pieces: {', '.join(context_pieces)}"
        garment = "suit set displayed on a mannequin"
    else:
        subject = "this fabric image"
        garment = "kurti made from it"

    prompt = f"""Look at {subject}. Write two captions for a {garment}.

Return ONLY a JSON object with exactly this format, no other text:
{{"{primary}": "2-3 sentences in {primary.title()} describing the design, fabric quality, colors, patterns and suitable occasions", "{secondary}": "2-3 sentences in {secondary.title()} with the same description"}}

Make the captions appealing for Indian fashion buyers on social media."""

    custom = (custom_prompt or "").strip()
    if custom:
        prompt += f"\n\nAdditional context from the seller about the content: {custom}"
    return prompt


def build_music_prompt(caption: str, duration_seconds: int) -> str:
    theme = caption.strip() or "Beautiful Indian fashion kurti"
    return (
        f"Elegant, upbeat Indian fashion background music. Theme: {theme}. "
        f"Style: modern Bollywood-inspired, trendy, suitable for Instagram reels. "
        f"Duration: {duration_seconds} seconds. Instrumental only, no vocals."
    )
