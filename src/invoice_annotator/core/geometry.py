"""
Annotation Geometry

Stateless conversion between the three coordinate frames of the annotation surface:
- Intrinsic: pixels of the OCR image the backend measured tokens against
- Displayed: pixels of the rendered image after CSS scaling and zoom
- Container: displayed pixels relative to the scrollable container

Pointer conversion and box projection both use the post-zoom displayed size,
so a click on a drawn box always maps back inside the token it was drawn from.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Optional, Tuple, Union

from .models import (
    BoundingBox, Token, FieldExtraction, Position,
    build_position, DEFAULT_TOTAL_LINES
)

logger = logging.getLogger(__name__)

DEFAULT_ZOOM = 100
MIN_ZOOM = 50
MAX_ZOOM = 200
ZOOM_STEP = 25
DEFAULT_BOX_MARGIN = 1.0


def clamp_zoom(zoom: float, min_zoom: float = MIN_ZOOM, max_zoom: float = MAX_ZOOM) -> float:
    return max(min_zoom, min(max_zoom, zoom))


def step_zoom(zoom: float, direction: int, step: float = ZOOM_STEP,
              min_zoom: float = MIN_ZOOM, max_zoom: float = MAX_ZOOM) -> float:
    """Zoom in (direction > 0) or out (direction < 0) by one step."""
    if direction > 0:
        return min(max_zoom, zoom + step)
    if direction < 0:
        return max(min_zoom, zoom - step)
    return zoom


def resolve_intrinsic_size(preview_width: Optional[float], preview_height: Optional[float],
                           natural_width: Optional[float] = None,
                           natural_height: Optional[float] = None) -> Optional[Tuple[float, float]]:
    """Backend preview dimensions first, measured bitmap size as fallback."""
    width = preview_width if preview_width and preview_width > 0 else natural_width
    height = preview_height if preview_height and preview_height > 0 else natural_height
    if not width or not height or width <= 0 or height <= 0:
        return None
    return width, height


@dataclass(frozen=True)
class ViewportState:
    """Rendering parameters of one measured image.

    ``displayed_width``/``displayed_height`` are the post-zoom rendered size
    (what a bounding client rect reports); ``offset_left``/``offset_top`` place
    the image inside its container.
    """
    intrinsic_width: float
    intrinsic_height: float
    displayed_width: float
    displayed_height: float
    offset_left: float = 0.0
    offset_top: float = 0.0
    zoom: float = DEFAULT_ZOOM

    @classmethod
    def from_layout(cls, intrinsic_width: float, intrinsic_height: float,
                    layout_width: float, layout_height: float,
                    offset_left: float = 0.0, offset_top: float = 0.0,
                    zoom: float = DEFAULT_ZOOM,
                    min_zoom: float = MIN_ZOOM, max_zoom: float = MAX_ZOOM) -> "ViewportState":
        """Build from the pre-transform element size and a zoom percentage."""
        zoom = clamp_zoom(zoom, min_zoom, max_zoom)
        scale = zoom / 100
        return cls(
            intrinsic_width=intrinsic_width,
            intrinsic_height=intrinsic_height,
            displayed_width=layout_width * scale,
            displayed_height=layout_height * scale,
            offset_left=offset_left,
            offset_top=offset_top,
            zoom=zoom,
        )

    @property
    def zoom_scale(self) -> float:
        return self.zoom / 100

    @property
    def layout_width(self) -> float:
        return self.displayed_width / self.zoom_scale

    @property
    def layout_height(self) -> float:
        return self.displayed_height / self.zoom_scale

    @property
    def is_measured(self) -> bool:
        return (self.intrinsic_width > 0 and self.intrinsic_height > 0
                and self.displayed_width > 0 and self.displayed_height > 0)

    def with_zoom(self, zoom: float, min_zoom: float = MIN_ZOOM,
                  max_zoom: float = MAX_ZOOM) -> "ViewportState":
        zoom = clamp_zoom(zoom, min_zoom, max_zoom)
        factor = zoom / self.zoom
        return replace(
            self,
            displayed_width=self.displayed_width * factor,
            displayed_height=self.displayed_height * factor,
            zoom=zoom,
        )


@dataclass(frozen=True)
class DisplayBox:
    """Drawable rectangle in container-relative displayed pixels."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.left + self.width / 2, self.top + self.height / 2

    def contains(self, x: float, y: float, padding: float = 0.0) -> bool:
        return (self.left - padding <= x <= self.right + padding
                and self.top - padding <= y <= self.bottom + padding)

    def to_style(self) -> Dict[str, str]:
        return {
            "left": f"{self.left}px",
            "top": f"{self.top}px",
            "width": f"{self.width}px",
            "height": f"{self.height}px",
        }


@dataclass(frozen=True)
class IntrinsicPoint:
    """Pointer location on the intrinsic image."""
    percent_x: float
    percent_y: float
    x: float
    y: float


def to_display_box(token: Union[Token, BoundingBox, None], viewport: Optional[ViewportState],
                   margin: float = DEFAULT_BOX_MARGIN) -> Optional[DisplayBox]:
    """Project an intrinsic box onto the container, expanded by ``margin`` on each side.

    Returns None while the image is not measured or the token has no box.
    """
    if token is None or viewport is None or not viewport.is_measured:
        return None

    box = token.bbox if isinstance(token, Token) else token
    if box is None:
        return None

    scale_x = viewport.displayed_width / viewport.intrinsic_width
    scale_y = viewport.displayed_height / viewport.intrinsic_height

    scaled_x = box.x * scale_x
    scaled_y = box.y * scale_y
    scaled_width = box.width * scale_x
    scaled_height = box.height * scale_y

    return DisplayBox(
        left=viewport.offset_left + scaled_x - margin,
        top=viewport.offset_top + scaled_y - margin,
        width=max(1.0, scaled_width + 2 * margin),
        height=max(1.0, scaled_height + 2 * margin),
    )


def to_intrinsic(pointer_x: float, pointer_y: float,
                 viewport: Optional[ViewportState]) -> Optional[IntrinsicPoint]:
    """Convert a pointer offset from the rendered image's top-left corner to intrinsic pixels."""
    if viewport is None or not viewport.is_measured:
        return None

    scale_x = viewport.intrinsic_width / viewport.displayed_width
    scale_y = viewport.intrinsic_height / viewport.displayed_height

    x = pointer_x * scale_x
    y = pointer_y * scale_y
    return IntrinsicPoint(
        percent_x=(x / viewport.intrinsic_width) * 100,
        percent_y=(y / viewport.intrinsic_height) * 100,
        x=x,
        y=y,
    )


def intrinsic_to_display_point(x: float, y: float,
                               viewport: Optional[ViewportState]) -> Optional[Tuple[float, float]]:
    """Container-relative displayed point for an intrinsic point (no margin)."""
    if viewport is None or not viewport.is_measured:
        return None
    return (viewport.offset_left + x * viewport.displayed_width / viewport.intrinsic_width,
            viewport.offset_top + y * viewport.displayed_height / viewport.intrinsic_height)


def client_to_container(client_x: float, client_y: float,
                        container_left: float, container_top: float,
                        scroll_left: float = 0.0, scroll_top: float = 0.0) -> Tuple[float, float]:
    """Device/client pointer coordinates to scrolled-container content coordinates."""
    return client_x - container_left + scroll_left, client_y - container_top + scroll_top


def container_to_image(x: float, y: float, viewport: ViewportState) -> Tuple[float, float]:
    return x - viewport.offset_left, y - viewport.offset_top


def image_to_container(x: float, y: float, viewport: ViewportState) -> Tuple[float, float]:
    return x + viewport.offset_left, y + viewport.offset_top


def build_field_position(field: Optional[FieldExtraction], image_width: Optional[float],
                         image_height: Optional[float],
                         default_total_lines: int = DEFAULT_TOTAL_LINES) -> Optional[Position]:
    """Position of a structured field box, from its bbox or its recorded percentages."""
    if field is None or field.position is None or not image_width or not image_height:
        return None

    pos = field.position
    total_lines = pos.total_lines or default_total_lines

    if pos.bbox is not None:
        box = pos.bbox
    elif pos.char_percent is not None and pos.line_percent is not None:
        box = BoundingBox(
            x=(pos.char_percent / 100) * image_width,
            y=(pos.line_percent / 100) * image_height,
            width=0,
            height=0,
        )
    else:
        return None

    position = build_position(
        box, image_width, image_height,
        total_lines=total_lines,
        line_number=pos.line_number,
        char_percent=pos.char_percent,
        line_percent=pos.line_percent,
        zone=pos.zone,
    )
    if position is not None and pos.bbox is None:
        position = replace(position, bbox=None)
    return position
