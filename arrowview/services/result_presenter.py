from enum import Enum
from typing import Optional

from pydantic import BaseModel

from arrowview.models.schemas import GenerationResult, ViewpointRequest
from arrowview.utils.image_utils import encode_data_url


class GenerationOutcome(BaseModel):
    request_id: int
    request: ViewpointRequest
    result: Optional[GenerationResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class ResultStatus(str, Enum):
    IMAGE = "image"
    TEXT_ONLY = "text_only"
    NOTHING_RETURNED = "nothing_returned"
    FAILED = "failed"


class ResultView(BaseModel):
    status: ResultStatus
    location_label: str
    bearing_degrees: float
    compass_direction: str
    image_data_url: Optional[str] = None
    text: str = ""
    prompt_used: str = ""
    street_view_url: str = ""
    error: Optional[str] = None


def present(outcome: GenerationOutcome) -> ResultView:
    """Decide what the result panel shows for an outcome"""
    request = outcome.request
    view = ResultView(
        status=ResultStatus.FAILED,
        location_label=request.location_label,
        bearing_degrees=request.bearing.degrees,
        compass_direction=request.bearing.octant.long_name if request.bearing.is_defined else "",
        street_view_url=request.street_view_url,
    )
    if not outcome.ok:
        return view.model_copy(update=dict(error=outcome.error or "Failed to generate image"))

    result = outcome.result
    update = dict(text=result.descriptive_text, prompt_used=result.prompt_used)
    if result.generated_image:
        update["status"] = ResultStatus.IMAGE
        update["image_data_url"] = encode_data_url(result.generated_image, result.generated_image_mime_type)
    elif result.descriptive_text.strip():
        update["status"] = ResultStatus.TEXT_ONLY
    else:
        update["status"] = ResultStatus.NOTHING_RETURNED
    return view.model_copy(update=update)
