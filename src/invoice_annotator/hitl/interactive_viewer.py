"""
Interactive Image Viewer

Adapter between a rendered page image and the annotation core:
- Keeps the measured viewport up to date on load, zoom and resize
- Produces drawable overlay rectangles for every OCR token
- Dispatches clicks through the hit tester into the selection state machine
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..core.config_manager import AnnotationConfig
from ..core.geometry import (
    DisplayBox, IntrinsicPoint, ViewportState, clamp_zoom, resolve_intrinsic_size,
    to_display_box, to_intrinsic, intrinsic_to_display_point, build_field_position,
    client_to_container, container_to_image
)
from ..core.hit_testing import HitTester
from ..core.models import PageExtraction, FIELD_KEYS
from .selection_state import (
    SelectionStateMachine, StructuredBoxClick, RawTokenClick,
    ValueSelectCallback, SelectionChangeCallback
)

logger = logging.getLogger(__name__)


class ClickOutcome(Enum):
    """What a click on the surface ended up doing."""
    TOKEN_TOGGLED = "token_toggled"
    TOKEN_IGNORED = "token_ignored"
    FIELD_SELECTED = "field_selected"
    INDICATOR_ONLY = "indicator_only"
    NOT_READY = "not_ready"


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class OverlayBox:
    """One drawable token rectangle."""
    token_index: int
    text: str
    box: DisplayBox
    selected: bool
    hovered: bool
    border_width: int
    z_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": f"text-{self.token_index}",
            "token_index": self.token_index,
            "text": self.text,
            "style": self.box.to_style(),
            "selected": self.selected,
            "hovered": self.hovered,
            "border_width": self.border_width,
            "z_index": self.z_index,
        }


class InteractiveImageViewer:
    """Clickable token overlay for one page image."""

    def __init__(self, page: PageExtraction,
                 on_value_select: Optional[ValueSelectCallback] = None,
                 on_selection_change: Optional[SelectionChangeCallback] = None,
                 config: Optional[AnnotationConfig] = None,
                 zoom: Optional[float] = None):
        self.config = config or AnnotationConfig()
        self.page = page
        self.hit_tester = HitTester(
            padding=self.config.hit_padding,
            nearest_threshold=self.config.nearest_threshold,
            box_margin=self.config.box_margin,
        )
        self.state = SelectionStateMachine(
            tokens=page.tokens,
            image_width=page.preview_image_width,
            image_height=page.preview_image_height,
            on_value_select=on_value_select,
            on_selection_change=on_selection_change,
            total_lines=self.config.total_lines,
        )

        self.zoom = self._clamp(self.config.default_zoom if zoom is None else zoom)
        self.viewport: Optional[ViewportState] = None
        self.box_update_key = 0
        self.click_position: Optional[Tuple[float, float]] = None
        self.click_point: Optional[IntrinsicPoint] = None
        self.highlighted: Optional[str] = None
        self.disposed = False

        # last layout measurement, reused on resize
        self._layout: Optional[Dict[str, float]] = None

    def _clamp(self, zoom: float) -> float:
        return clamp_zoom(zoom, self.config.min_zoom, self.config.max_zoom)

    @property
    def intrinsic_size(self) -> Optional[Tuple[float, float]]:
        if self.viewport is not None:
            return self.viewport.intrinsic_width, self.viewport.intrinsic_height
        return resolve_intrinsic_size(self.page.preview_image_width, self.page.preview_image_height)

    @property
    def is_ready(self) -> bool:
        return self.viewport is not None and self.viewport.is_measured

    # Layout

    def measure(self, layout_width: float, layout_height: float,
                offset_left: float = 0.0, offset_top: float = 0.0,
                natural_width: Optional[float] = None,
                natural_height: Optional[float] = None) -> Optional[ViewportState]:
        """Recompute the viewport from the image element's pre-zoom layout size."""
        if self.disposed:
            return None

        self._layout = {
            "layout_width": layout_width,
            "layout_height": layout_height,
            "offset_left": offset_left,
            "offset_top": offset_top,
            "natural_width": natural_width,
            "natural_height": natural_height,
        }
        self._recompute()
        return self.viewport

    def _recompute(self):
        size = None
        if self._layout is not None:
            size = resolve_intrinsic_size(
                self.page.preview_image_width, self.page.preview_image_height,
                self._layout["natural_width"], self._layout["natural_height"],
            )

        if size is None or self._layout is None:
            self.viewport = None
        else:
            self.viewport = ViewportState.from_layout(
                size[0], size[1],
                self._layout["layout_width"], self._layout["layout_height"],
                self._layout["offset_left"], self._layout["offset_top"],
                zoom=self.zoom,
                min_zoom=self.config.min_zoom,
                max_zoom=self.config.max_zoom,
            )
            self.state.set_image_size(size[0], size[1])

        self.box_update_key += 1

    def resize(self, layout_width: float, layout_height: float,
               offset_left: Optional[float] = None, offset_top: Optional[float] = None):
        """Container resized; keep the natural size from the last measurement."""
        if self._layout is None:
            return self.measure(layout_width, layout_height,
                                offset_left or 0.0, offset_top or 0.0)
        layout = self._layout
        return self.measure(
            layout_width, layout_height,
            layout["offset_left"] if offset_left is None else offset_left,
            layout["offset_top"] if offset_top is None else offset_top,
            layout["natural_width"], layout["natural_height"],
        )

    def set_zoom(self, zoom: float) -> float:
        """Rescale the measured viewport; layout and offsets are unchanged by zoom."""
        self.zoom = self._clamp(zoom)
        if self.disposed:
            return self.zoom
        if self.viewport is not None:
            self.viewport = self.viewport.with_zoom(self.zoom, self.config.min_zoom, self.config.max_zoom)
            self.box_update_key += 1
        elif self._layout is not None:
            self._recompute()
        return self.zoom

    async def on_image_load(self, layout_width: float, layout_height: float,
                            offset_left: float = 0.0, offset_top: float = 0.0,
                            natural_width: Optional[float] = None,
                            natural_height: Optional[float] = None) -> Optional[ViewportState]:
        """Measure after a short settle delay.

        Does nothing once the viewer is disposed or has moved to another page.
        """
        page = self.page
        if self.config.settle_delay > 0:
            await asyncio.sleep(self.config.settle_delay)
        if self.disposed:
            logger.debug("Viewer disposed before image settled, skipping measurement")
            return None
        if self.page is not page:
            logger.debug("Page changed before image settled, skipping measurement")
            return None
        return self.measure(layout_width, layout_height, offset_left, offset_top,
                            natural_width, natural_height)

    def dispose(self):
        self.disposed = True
        self.viewport = None

    def set_page(self, page: PageExtraction):
        """Show another page; the viewport must be measured again."""
        self.page = page
        self.viewport = None
        self._layout = None
        self.click_position = None
        self.click_point = None
        self.highlighted = None
        self.state.set_page(page.tokens, page.preview_image_width, page.preview_image_height)
        self.box_update_key += 1

    # Field arming

    @property
    def selected_field(self) -> Optional[str]:
        return self.state.armed_field

    def set_selected_field(self, field_key: Optional[str]):
        """Follow the host's selected field; re-arms only on an actual change."""
        if field_key is None:
            self.state.disarm()
        elif field_key != self.state.armed_field:
            self.state.arm_field(field_key)

    # Overlays

    def overlay_boxes(self) -> List[OverlayBox]:
        if not self.is_ready:
            return []

        scale = self.zoom / 100
        overlays = []
        for token in self.page.tokens:
            if not token.is_hittable:
                continue
            box = to_display_box(token, self.viewport, self.config.box_margin)
            if box is None:
                continue

            selected = self.state.is_selected(token.index)
            hovered = self.highlighted == f"text-{token.index}"
            if selected:
                border_width = max(1, _round_half_up(2 * scale))
                z_index = 10
            else:
                border_width = max(1, _round_half_up(1 * scale))
                z_index = 8 if hovered else 5

            overlays.append(OverlayBox(token.index, token.text, box, selected,
                                       hovered, border_width, z_index))
        return overlays

    def field_highlight_box(self, field_key: Optional[str] = None) -> Optional[DisplayBox]:
        """Display box of the armed (or given) structured field, if it has one."""
        key = field_key or self.state.armed_field
        field = self.page.fields.get(key) if key else None
        if field is None or field.position is None or field.position.bbox is None:
            return None
        return to_display_box(field.position.bbox, self.viewport, self.config.box_margin)

    def hover(self, token_index: Optional[int]):
        self.highlighted = None if token_index is None else f"text-{token_index}"

    # Clicks

    def click_token(self, token_index: int) -> ClickOutcome:
        """Click landing directly on a token overlay."""
        if self.state.armed_field is None:
            return ClickOutcome.TOKEN_IGNORED

        update = self.state.dispatch(RawTokenClick(token_index))
        if update is None:
            return ClickOutcome.TOKEN_IGNORED

        token = self.page.tokens[token_index]
        if token.bbox is not None:
            self.click_position = intrinsic_to_display_point(token.bbox.x, token.bbox.y, self.viewport)
        return ClickOutcome.TOKEN_TOGGLED

    def click_field_box(self, field_key: str) -> ClickOutcome:
        """Click landing on a structured field value box."""
        field = self.page.fields.get(field_key)
        if field is None:
            return ClickOutcome.INDICATOR_ONLY

        size = self.intrinsic_size
        position = None
        if size is not None:
            position = build_field_position(field, size[0], size[1], self.config.total_lines)

        if position is not None:
            self.click_position = intrinsic_to_display_point(position.x, position.y, self.viewport)
        self.highlighted = field_key
        self.state.dispatch(StructuredBoxClick(field_key, position))
        return ClickOutcome.FIELD_SELECTED

    def click_at(self, x: float, y: float) -> ClickOutcome:
        """Click at a container-relative point.

        With a field armed the click resolves to a token first; otherwise (or
        when no token is near) it resolves to a structured field box.
        """
        if not self.is_ready:
            return ClickOutcome.NOT_READY

        self.click_point = to_intrinsic(*container_to_image(x, y, self.viewport), self.viewport)

        if self.state.armed_field is not None:
            hit = self.hit_tester.hit_test(x, y, self.page.tokens, self.viewport)
            if hit.matched:
                return self.click_token(hit.key)

        fields = [self.page.fields[k] for k in FIELD_KEYS if k in self.page.fields]
        field_hit = self.hit_tester.hit_test_fields(x, y, fields, self.viewport)
        if field_hit.matched:
            return self.click_field_box(field_hit.key)

        self.click_position = (x, y)
        return ClickOutcome.INDICATOR_ONLY

    def click_at_client(self, client_x: float, client_y: float,
                        container_left: float, container_top: float,
                        scroll_left: float = 0.0, scroll_top: float = 0.0) -> ClickOutcome:
        """Click at a device pointer position, given the container's client rect and scroll."""
        x, y = client_to_container(client_x, client_y, container_left, container_top,
                                   scroll_left, scroll_top)
        return self.click_at(x, y)

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view state for the web surface."""
        viewport = self.viewport
        return {
            "page_index": self.page.page_index,
            "zoom": self.zoom,
            "ready": self.is_ready,
            "box_update_key": self.box_update_key,
            "armed_field": self.state.armed_field,
            "selected_tokens": self.state.selected_indices,
            "click_position": list(self.click_position) if self.click_position else None,
            "click_point": None if self.click_point is None else {
                "x": self.click_point.x,
                "y": self.click_point.y,
                "percent_x": self.click_point.percent_x,
                "percent_y": self.click_point.percent_y,
            },
            "highlighted": self.highlighted,
            "viewport": None if viewport is None else {
                "intrinsic_width": viewport.intrinsic_width,
                "intrinsic_height": viewport.intrinsic_height,
                "displayed_width": viewport.displayed_width,
                "displayed_height": viewport.displayed_height,
                "layout_width": viewport.layout_width,
                "layout_height": viewport.layout_height,
                "offset_left": viewport.offset_left,
                "offset_top": viewport.offset_top,
            },
        }
