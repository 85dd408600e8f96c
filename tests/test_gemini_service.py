import asyncio
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.genai import types

from arrowview.models.schemas import Bearing, DirectedSegment, GeoPoint, InlineImagePart, TextPart, ViewpointRequest
from arrowview.services.gemini_service import (
    GeminiService,
    GenerationError,
    build_prompt,
    extract_parts,
    fold_parts,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-bytes"
SEGMENT = DirectedSegment(
    start=GeoPoint(lat=37.7749, lng=-122.4194),
    end=GeoPoint(lat=37.7760, lng=-122.4194),
)


def _request(image: bytes = None) -> ViewpointRequest:
    return ViewpointRequest(
        segment=SEGMENT,
        bearing=Bearing(degrees=0.0),
        location_label="37.776000, -122.419400",
        street_view_url="https://maps.googleapis.com/maps/api/streetview?location=37.776,-122.4194",
        captured_surface_image=image,
    )


def _response(*parts) -> types.GenerateContentResponse:
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
    )


def _service(response=None, error=None) -> GeminiService:
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=response, side_effect=error)
    return GeminiService(client=client, model="test-model")


def test_text_and_image_parts_are_demultiplexed():
    response = _response(
        types.Part(text="a"),
        types.Part(inline_data=types.Blob(mime_type="image/png", data=PNG_BYTES)),
        types.Part(text="b"),
    )
    service = _service(response)

    result = asyncio.run(service.generate(_request()))

    assert result.descriptive_text == "ab"
    assert result.generated_image == PNG_BYTES
    assert result.generated_image_mime_type == "image/png"
    assert result.source_street_view_url.endswith("location=37.776,-122.4194")
    assert "facing North" in result.prompt_used
    service.client.aio.models.generate_content.assert_awaited_once()


def test_base64_inline_data_is_decoded():
    response = SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[
        SimpleNamespace(text=None, inline_data=SimpleNamespace(
            mime_type="image/jpeg", data=base64.b64encode(PNG_BYTES).decode("ascii"),
        )),
    ]))])
    parts = extract_parts(response)
    assert parts == [InlineImagePart(data=PNG_BYTES, mime_type="image/jpeg")]


def test_only_first_image_is_surfaced():
    text, image = fold_parts([
        InlineImagePart(data=b"first"),
        TextPart(text="x"),
        InlineImagePart(data=b"second"),
    ])
    assert text == "x"
    assert image.data == b"first"


def test_text_only_response():
    result = asyncio.run(_service(_response(types.Part(text="A quiet street."))).generate(_request()))
    assert result.generated_image is None
    assert result.descriptive_text == "A quiet street."


@pytest.mark.parametrize("response", [
    _response(),
    types.GenerateContentResponse(candidates=[]),
    types.GenerateContentResponse(candidates=[types.Candidate(content=None)]),
    _response(types.Part(text="   ")),
])
def test_empty_response_is_a_failure(response):
    request = _request()
    with pytest.raises(GenerationError) as exc:
        asyncio.run(_service(response).generate(request))
    assert exc.value.request is request


def test_call_failure_is_wrapped():
    service = _service(error=RuntimeError("429 RESOURCE_EXHAUSTED"))
    with pytest.raises(GenerationError, match="RESOURCE_EXHAUSTED"):
        asyncio.run(service.generate(_request()))
    assert service.client.aio.models.generate_content.await_count == 1


def test_malformed_inline_data_is_a_failure():
    response = SimpleNamespace(prompt_feedback=None, candidates=[SimpleNamespace(content=SimpleNamespace(parts=[
        SimpleNamespace(text=None, inline_data=SimpleNamespace(mime_type="image/png", data="%%% not base64 %%%")),
    ]))])
    request = _request()
    with pytest.raises(GenerationError) as exc:
        asyncio.run(_service(response).generate(request))
    assert exc.value.request is request


def test_multimodal_request_attaches_capture():
    service = _service(_response(types.Part(text="ok")))
    asyncio.run(service.generate(_request(image=PNG_BYTES)))

    contents = service.client.aio.models.generate_content.call_args.kwargs["contents"]
    assert len(contents) == 2
    assert contents[0].inline_data.data == PNG_BYTES
    assert "snapshot of the map" in contents[1]
    assert "Bearing:" not in contents[1]


def test_text_only_request_spells_out_viewpoint():
    service = _service(_response(types.Part(text="ok")))
    asyncio.run(service.generate(_request()))

    contents = service.client.aio.models.generate_content.call_args.kwargs["contents"]
    assert len(contents) == 1
    assert "Coordinates: 37.776000, -122.419400" in contents[0]
    assert "Bearing: 0.0 degrees (North)" in contents[0]


def test_prompt_without_segment():
    request = ViewpointRequest(bearing=Bearing(degrees=225.0), location_label="Ferry Building")
    prompt = build_prompt(request)
    assert "facing Southwest" in prompt
    assert "Coordinates:" not in prompt
    assert "Location: Ferry Building" in prompt


def test_missing_api_key(monkeypatch):
    from arrowview.config import settings
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "")
    with pytest.raises(ValueError):
        GeminiService()
