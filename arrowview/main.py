import asyncio
import logging
from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from arrowview.config import settings
from arrowview.models.schemas import (
    ArrowViewRequest,
    Bearing,
    DrawMode,
    GenerateViewRequest,
    GenerateViewResponse,
    GenerationResult,
    ViewpointRequest,
)
from arrowview.services.gemini_service import GeminiService, GenerationError
from arrowview.services.geocoding_service import NominatimGeocoder
from arrowview.services.vector_draw import DrawState, pointer_down, pointer_up
from arrowview.services.viewpoint_assembler import ViewpointAssembler
from arrowview.utils.image_utils import decode_data_url, encode_data_url, normalize_capture

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="ArrowView API", version="1.0.0")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_router = APIRouter(prefix="/api")


@lru_cache
def get_generation_client() -> GeminiService:
    try:
        return GeminiService()
    except ValueError as e:
        raise GenerationError(f"Generation service is not configured: {e}") from e


@lru_cache
def get_assembler() -> ViewpointAssembler:
    return ViewpointAssembler(geocoder=NominatimGeocoder() if settings.GEOCODING_ENABLED else None)


def _decode_capture(data_url: Optional[str]) -> Optional[bytes]:
    """Captured map snapshot from the browser; anything unusable means text-only"""
    if not data_url:
        return None
    try:
        raw, _ = decode_data_url(data_url)
    except ValueError as e:
        logger.warning(f"Ignoring captured surface image: {e}")
        return None
    png = normalize_capture(raw)
    if png is None:
        logger.warning("Ignoring captured surface image: not a usable image")
    return png


def _success(request: ViewpointRequest, result: GenerationResult) -> GenerateViewResponse:
    return GenerateViewResponse(
        success=True,
        generated_image=(
            encode_data_url(result.generated_image, result.generated_image_mime_type)
            if result.generated_image else None
        ),
        descriptive_text=result.descriptive_text or None,
        prompt_used=result.prompt_used,
        source_street_view_url=result.source_street_view_url,
        location_label=request.location_label,
        bearing_degrees=request.bearing.degrees,
        compass_direction=request.bearing.octant.long_name,
    )


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, error: GenerationError) -> JSONResponse:
    logger.error(f"Generation failed: {error}")
    body = GenerateViewResponse(success=False, error=f"Failed to generate image: {error}")
    return JSONResponse(status_code=500, content=body.model_dump(by_alias=True, exclude_none=True))


@api_router.get("/health")
async def health():
    return {"status": "healthy"}


@api_router.post("/generate-image", response_model=GenerateViewResponse, response_model_exclude_none=True)
async def generate_image(
    request: GenerateViewRequest,
    client: GeminiService = Depends(get_generation_client),
):
    """
    Generate a street-level view for an already-resolved viewpoint

    Input:
    - locationLabel: address or "lat, lng" of the arrow tip
    - bearingDegrees: facing direction, 0 = north, clockwise
    - sourceStreetViewUrl: real Street View image URL for comparison
    - capturedSurfaceImage: optional data URL of the map snapshot
    """
    viewpoint = ViewpointRequest(
        bearing=Bearing(degrees=request.bearing_degrees),
        location_label=request.location_label,
        street_view_url=request.source_street_view_url,
        captured_surface_image=_decode_capture(request.captured_surface_image),
    )
    result = await client.generate(viewpoint)
    return _success(viewpoint, result)


@api_router.post("/arrow-view", response_model=GenerateViewResponse, response_model_exclude_none=True)
async def arrow_view(
    request: ArrowViewRequest,
    client: GeminiService = Depends(get_generation_client),
    assembler: ViewpointAssembler = Depends(get_assembler),
):
    """Generate a street-level view straight from a drawn arrow (start -> end)"""
    state = pointer_down(DrawState(mode=DrawMode.DRAW_ARROW), request.start)
    _, segment = pointer_up(state, request.end)
    if segment is None:
        raise HTTPException(status_code=400, detail="Arrow is too short")

    capture = request.captured_surface_image
    viewpoint = await asyncio.to_thread(
        assembler.assemble, segment, (lambda: decode_data_url(capture)[0]) if capture else None
    )
    result = await client.generate(viewpoint)
    return _success(viewpoint, result)


app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
