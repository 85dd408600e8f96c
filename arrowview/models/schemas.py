import math
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")

    def label(self) -> str:
        return f"{self.lat:.6f}, {self.lng:.6f}"


class DirectedSegment(BaseModel):
    """A drawn arrow: the viewer stands at ``end`` looking away from ``start``."""
    model_config = ConfigDict(frozen=True)

    start: GeoPoint
    end: GeoPoint

    @model_validator(mode="after")
    def _has_direction(self) -> "DirectedSegment":
        if self.start == self.end:
            raise ValueError("Arrow start and end must differ")
        return self


class CompassOctant(str, Enum):
    N = "N"
    NE = "NE"
    E = "E"
    SE = "SE"
    S = "S"
    SW = "SW"
    W = "W"
    NW = "NW"

    @property
    def long_name(self) -> str:
        return _OCTANT_NAMES[self]


_OCTANT_NAMES = {
    CompassOctant.N: "North",
    CompassOctant.NE: "Northeast",
    CompassOctant.E: "East",
    CompassOctant.SE: "Southeast",
    CompassOctant.S: "South",
    CompassOctant.SW: "Southwest",
    CompassOctant.W: "West",
    CompassOctant.NW: "Northwest",
}

# clockwise from north, index == round(degrees / 45) % 8
OCTANTS: List[CompassOctant] = list(CompassOctant)


class Bearing(BaseModel):
    model_config = ConfigDict(frozen=True)

    degrees: float  # [0, 360) or NaN for a zero-length input

    @property
    def is_defined(self) -> bool:
        return not math.isnan(self.degrees)

    @property
    def octant(self) -> CompassOctant:
        from arrowview.utils.geo_utils import octant
        return octant(self.degrees)


class DrawMode(str, Enum):
    PAN = "pan"
    DRAW_ARROW = "draw_arrow"


class ViewpointRequest(BaseModel):
    segment: Optional[DirectedSegment] = None  # absent when built from the HTTP boundary
    bearing: Bearing
    location_label: str
    street_view_url: str = ""
    captured_surface_image: Optional[bytes] = None  # PNG

    @property
    def has_image(self) -> bool:
        return bool(self.captured_surface_image)


class GenerationResult(BaseModel):
    prompt_used: str
    generated_image: Optional[bytes] = None
    generated_image_mime_type: str = "image/png"
    descriptive_text: str = ""
    source_street_view_url: str = ""


class TextPart(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class InlineImagePart(BaseModel):
    kind: Literal["inline_image"] = "inline_image"
    data: bytes
    mime_type: str = "image/png"


ResponsePart = Union[TextPart, InlineImagePart]


# HTTP boundary (camelCase on the wire)

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerateViewRequest(_CamelModel):
    location_label: str
    bearing_degrees: float = Field(..., allow_inf_nan=False)
    source_street_view_url: str = ""
    captured_surface_image: Optional[str] = None  # data URL

    @field_validator("bearing_degrees")
    @classmethod
    def _normalize_bearing(cls, value: float) -> float:
        return value % 360


class ArrowViewRequest(_CamelModel):
    start: GeoPoint
    end: GeoPoint
    captured_surface_image: Optional[str] = None  # data URL


class GenerateViewResponse(_CamelModel):
    success: bool
    generated_image: Optional[str] = None  # data URL
    descriptive_text: Optional[str] = None
    prompt_used: Optional[str] = None
    source_street_view_url: Optional[str] = None
    location_label: Optional[str] = None
    bearing_degrees: Optional[float] = None
    compass_direction: Optional[str] = None
    error: Optional[str] = None
