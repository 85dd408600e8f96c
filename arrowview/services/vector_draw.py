"""
Pointer-driven arrow drawing on a map surface.

The drawing logic is a set of pure transitions over an immutable ``DrawState``.
``VectorDrawController`` owns the current state, pushes preview updates to the
map surface and reports completed arrows. Nothing here awaits or does I/O.
"""
import logging
import math
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict

from arrowview.config import settings
from arrowview.models.schemas import DirectedSegment, DrawMode, GeoPoint
from arrowview.utils.geo_utils import haversine_distance, planar_distance

logger = logging.getLogger(__name__)


class DrawPhase(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class PointerKind(str, Enum):
    DOWN = "down"
    MOVE = "move"
    UP = "up"


class PointerEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: PointerKind
    point: Optional[GeoPoint] = None  # None when outside the map viewport


class DrawState(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: DrawMode = DrawMode.PAN
    phase: DrawPhase = DrawPhase.IDLE
    start: Optional[GeoPoint] = None
    last_point: Optional[GeoPoint] = None
    preview: Tuple[GeoPoint, ...] = ()
    segment: Optional[DirectedSegment] = None
    pan_enabled: bool = True


class MapSurface(Protocol):
    """The bits of the map widget the controller needs"""

    def set_draggable(self, enabled: bool) -> None: ...

    def show_preview(self, path: List[GeoPoint]) -> None: ...

    def show_arrow_head(self, path: List[GeoPoint]) -> None: ...


def arrow_head_path(
    segment: DirectedSegment,
    length: float = None,
    angle_degrees: float = None,
) -> List[GeoPoint]:
    """
    Three-point polyline {wing1, end, wing2} drawn at the tip of the arrow.
    Computed in raw coordinate space, for rendering only.
    """
    if length is None:
        length = settings.ARROW_HEAD_LENGTH
    if angle_degrees is None:
        angle_degrees = settings.ARROW_HEAD_ANGLE_DEGREES

    start, end = segment.start, segment.end
    angle = math.atan2(end.lat - start.lat, end.lng - start.lng)
    spread = math.radians(angle_degrees)

    # wings are built unvalidated: near the poles/antimeridian they may leave the valid range
    wing1 = GeoPoint.model_construct(
        lat=end.lat - length * math.sin(angle - spread),
        lng=end.lng - length * math.cos(angle - spread),
    )
    wing2 = GeoPoint.model_construct(
        lat=end.lat - length * math.sin(angle + spread),
        lng=end.lng - length * math.cos(angle + spread),
    )
    return [wing1, end, wing2]


def _idle(state: DrawState, **changes) -> DrawState:
    return state.model_copy(update=dict(
        phase=DrawPhase.IDLE, start=None, last_point=None, pan_enabled=True, **changes
    ))


def pointer_down(state: DrawState, point: Optional[GeoPoint]) -> DrawState:
    if point is None or state.mode != DrawMode.DRAW_ARROW or state.phase == DrawPhase.DRAGGING:
        return state
    return state.model_copy(update=dict(
        phase=DrawPhase.DRAGGING,
        start=point,
        last_point=point,
        preview=(point,),
        segment=None,
        pan_enabled=False,
    ))


def pointer_move(state: DrawState, point: Optional[GeoPoint]) -> DrawState:
    if point is None or state.phase != DrawPhase.DRAGGING:
        return state
    return state.model_copy(update=dict(last_point=point, preview=(state.start, point)))


def pointer_up(
    state: DrawState,
    point: Optional[GeoPoint],
    min_length: float = None,
) -> Tuple[DrawState, Optional[DirectedSegment]]:
    """Finish a gesture. Returns the new state and the completed arrow, if any."""
    if min_length is None:
        min_length = settings.MIN_ARROW_LENGTH
    if state.phase != DrawPhase.DRAGGING:
        return state.model_copy(update=dict(pan_enabled=True)), None

    end = point if point is not None else state.last_point
    if planar_distance(state.start, end) <= min_length:
        return _idle(state, preview=()), None

    segment = DirectedSegment(start=state.start, end=end)
    return _idle(state, preview=(state.start, end), segment=segment), segment


def apply_event(state: DrawState, event: PointerEvent) -> Tuple[DrawState, Optional[DirectedSegment]]:
    if event.kind == PointerKind.DOWN:
        return pointer_down(state, event.point), None
    if event.kind == PointerKind.MOVE:
        return pointer_move(state, event.point), None
    return pointer_up(state, event.point)


def set_mode(state: DrawState, mode: DrawMode) -> DrawState:
    if mode == state.mode:
        return state
    if state.phase == DrawPhase.DRAGGING:
        # abort the gesture in progress; a completed arrow from before stays
        return _idle(state, mode=mode, preview=())
    return state.model_copy(update=dict(mode=mode))


def clear(state: DrawState) -> DrawState:
    return _idle(state, preview=(), segment=None)


class VectorDrawController:
    def __init__(
        self,
        surface: Optional[MapSurface] = None,
        on_segment: Optional[Callable[[DirectedSegment], None]] = None,
        mode: DrawMode = DrawMode.DRAW_ARROW,
    ):
        self.surface = surface
        self.on_segment = on_segment
        self.state = DrawState(mode=mode)

    @property
    def segment(self) -> Optional[DirectedSegment]:
        return self.state.segment

    @property
    def is_drawing(self) -> bool:
        return self.state.phase == DrawPhase.DRAGGING

    def handle(self, event: PointerEvent) -> Optional[DirectedSegment]:
        was_dragging = self.is_drawing
        new_state, segment = apply_event(self.state, event)
        self._commit(new_state)
        if segment is not None:
            logger.info(
                f"Arrow drawn: ({segment.start.lat:.6f}, {segment.start.lng:.6f}) -> "
                f"({segment.end.lat:.6f}, {segment.end.lng:.6f}), "
                f"{haversine_distance(segment.start, segment.end):.1f}m"
            )
            if self.on_segment:
                self.on_segment(segment)
        elif event.kind == PointerKind.UP and was_dragging:
            logger.debug("Gesture too short, discarded")
        return segment

    def pointer_down(self, point: Optional[GeoPoint]) -> None:
        self.handle(PointerEvent(kind=PointerKind.DOWN, point=point))

    def pointer_move(self, point: Optional[GeoPoint]) -> None:
        self.handle(PointerEvent(kind=PointerKind.MOVE, point=point))

    def pointer_up(self, point: Optional[GeoPoint]) -> Optional[DirectedSegment]:
        return self.handle(PointerEvent(kind=PointerKind.UP, point=point))

    def set_mode(self, mode: DrawMode) -> None:
        self._commit(set_mode(self.state, mode))

    def clear(self) -> None:
        self._commit(clear(self.state))

    def _commit(self, new_state: DrawState) -> None:
        old = self.state
        self.state = new_state
        if self.surface is None:
            return
        if new_state.pan_enabled != old.pan_enabled:
            self.surface.set_draggable(new_state.pan_enabled)
        if new_state.preview != old.preview:
            self.surface.show_preview(list(new_state.preview))
        if new_state.segment != old.segment:
            self.surface.show_arrow_head(arrow_head_path(new_state.segment) if new_state.segment else [])
