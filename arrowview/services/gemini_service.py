import base64
import binascii
import logging
from typing import List, Optional, Tuple

from google import genai
from google.genai import types

from arrowview.config import settings
from arrowview.models.schemas import (
    GenerationResult,
    InlineImagePart,
    ResponsePart,
    TextPart,
    ViewpointRequest,
)

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The model call failed or returned nothing usable. Keeps the request so it can be retried."""

    def __init__(self, message: str, request: ViewpointRequest = None):
        super().__init__(message)
        self.request = request


def build_prompt(request: ViewpointRequest) -> str:
    """
    Instruction for a photorealistic street-level view at the arrow tip.
    Text-only requests get the coordinates and bearing spelled out, since
    there is no map snapshot to look at.
    """
    direction = request.bearing.octant.long_name
    prompt = (
        f"Photorealistic street view photograph from {request.location_label}, facing {direction}, "
        "taken at street level. Infer the real-world scene at this exact spot: the streets, "
        "buildings, architectural details, vegetation, landmarks, lighting and atmosphere someone "
        f"standing there and looking {direction.lower()} would see. "
        "Style: Google Street View photography, clear day, natural lighting, wide-angle lens. "
        "Also describe the scene in a short paragraph."
    )

    if request.has_image:
        prompt += (
            "\n\nThe attached image is a snapshot of the map around the viewpoint. The red arrow "
            "marks where the viewer stands (arrow tip) and which way they look (arrow direction)."
        )
    else:
        lines = [f"Location: {request.location_label}"]
        if request.segment is not None:
            end = request.segment.end
            lines.append(f"Coordinates: {end.lat:.6f}, {end.lng:.6f}")
        lines.append(f"Bearing: {request.bearing.degrees:.1f} degrees ({direction})")
        prompt += "\n\n" + "\n".join(lines)

    return prompt


def _decode_inline_data(data) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise GenerationError(f"Malformed inline image data: {e}") from e


def extract_parts(response) -> List[ResponsePart]:
    """Flatten all candidates of a generate_content response into tagged parts, in order"""
    parts: List[ResponsePart] = []
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        if content is None or not content.parts:
            logger.debug(f"Candidate without content, finish_reason={getattr(candidate, 'finish_reason', None)}")
            continue
        for part in content.parts:
            if getattr(part, "thought", None):
                continue
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                parts.append(InlineImagePart(
                    data=_decode_inline_data(inline.data),
                    mime_type=inline.mime_type or "image/png",
                ))
            elif getattr(part, "text", None) is not None:
                parts.append(TextPart(text=part.text))
    return parts


def fold_parts(parts: List[ResponsePart]) -> Tuple[str, Optional[InlineImagePart]]:
    """All text concatenated in order, plus the first inline image"""
    text = ""
    image = None
    for part in parts:
        if isinstance(part, TextPart):
            text += part.text
        elif image is None:
            image = part
    return text, image


class GeminiService:
    def __init__(self, client: genai.Client = None, model: str = None):
        if client is None:
            if not settings.GEMINI_API_KEY:
                raise ValueError("GEMINI_API_KEY not set in environment variables")
            client = genai.Client(api_key=settings.GEMINI_API_KEY)
        self.client = client
        self.model = model or settings.GEMINI_MODEL

    def _contents(self, request: ViewpointRequest, prompt: str) -> list:
        if request.has_image:
            return [types.Part.from_bytes(data=request.captured_surface_image, mime_type="image/png"), prompt]
        return [prompt]

    async def generate(self, request: ViewpointRequest) -> GenerationResult:
        """One model call for a viewpoint. Raises GenerationError; never retries."""
        context = (
            f"location='{request.location_label}', bearing={request.bearing.degrees:.1f}, "
            f"image_attached={request.has_image}"
        )
        try:
            prompt = build_prompt(request)
        except ValueError as e:
            logger.error(f"Cannot build prompt ({context}): {e}")
            raise GenerationError(f"Invalid viewpoint: {e}", request) from e
        logger.info(f"Generating street view: {context}")

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=self._contents(request, prompt),
                config=types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"]),
            )
        except Exception as e:
            logger.error(f"Generation call failed ({context}): {e}")
            raise GenerationError(f"Model call failed: {e}", request) from e

        prompt_feedback = getattr(response, "prompt_feedback", None)
        if prompt_feedback is not None and getattr(prompt_feedback, "block_reason", None):
            logger.error(f"Prompt blocked ({context}): {prompt_feedback.block_reason}")
            raise GenerationError(f"Prompt blocked: {prompt_feedback.block_reason}", request)

        try:
            parts = extract_parts(response)
        except GenerationError as e:
            e.request = request
            logger.error(f"Unparseable response ({context}): {e}")
            raise

        text, image = fold_parts(parts)
        if not parts or (not text.strip() and image is None):
            logger.error(f"Model returned no content ({context})")
            raise GenerationError("Model returned no content", request)

        logger.info(
            f"Generated {'image + ' if image else ''}{len(text)} chars of text ({context})"
        )
        return GenerationResult(
            prompt_used=prompt,
            generated_image=image.data if image else None,
            generated_image_mime_type=image.mime_type if image else "image/png",
            descriptive_text=text,
            source_street_view_url=request.street_view_url,
        )
