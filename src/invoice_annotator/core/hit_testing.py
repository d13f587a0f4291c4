"""
Click Hit Testing

Decides which token (or structured field box) a click on the annotation surface refers to.

Resolution order:
1. First box in list order containing the click (with tolerance padding)
2. Otherwise the box whose center is nearest, if closer than the zoom-scaled threshold
3. Otherwise no match

Overlapping boxes are resolved by list order, never by area or distance.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np

from .geometry import DisplayBox, ViewportState, to_display_box, DEFAULT_BOX_MARGIN
from .models import Token, FieldExtraction

logger = logging.getLogger(__name__)

DEFAULT_HIT_PADDING = 5.0
DEFAULT_NEAREST_THRESHOLD = 50.0


class MatchKind(Enum):
    """How a click was resolved."""
    INSIDE = "inside"
    NEAREST = "nearest"
    NONE = "none"


@dataclass(frozen=True)
class HitResult:
    """Outcome of a hit test; ``key`` is a token index or a field key."""
    kind: MatchKind
    key: Optional[Hashable] = None
    distance: Optional[float] = None

    @property
    def matched(self) -> bool:
        return self.kind is not MatchKind.NONE


NO_MATCH = HitResult(MatchKind.NONE)


class HitTester:
    """Resolves click points against display boxes."""

    def __init__(self, padding: float = DEFAULT_HIT_PADDING,
                 nearest_threshold: float = DEFAULT_NEAREST_THRESHOLD,
                 box_margin: float = DEFAULT_BOX_MARGIN):
        self.padding = padding
        self.nearest_threshold = nearest_threshold
        self.box_margin = box_margin

    def threshold_for(self, viewport: Optional[ViewportState]) -> float:
        """Nearest-neighbour threshold in displayed pixels for the current zoom."""
        if viewport is None:
            return self.nearest_threshold
        return self.nearest_threshold * viewport.zoom_scale

    def resolve(self, click_x: float, click_y: float,
                boxes: Sequence[Tuple[Hashable, DisplayBox]],
                threshold: Optional[float] = None) -> HitResult:
        """Resolve a click against ``(key, box)`` pairs in priority order."""
        if not boxes:
            return NO_MATCH

        for key, box in boxes:
            if box.contains(click_x, click_y, self.padding):
                return HitResult(MatchKind.INSIDE, key, 0.0)

        if threshold is None:
            threshold = self.nearest_threshold

        centers = np.array([box.center for _, box in boxes], dtype=float)
        distances = np.hypot(centers[:, 0] - click_x, centers[:, 1] - click_y)
        # argmin returns the first minimum, keeping list order on ties
        nearest = int(np.argmin(distances))
        distance = float(distances[nearest])

        if distance < threshold:
            return HitResult(MatchKind.NEAREST, boxes[nearest][0], distance)
        return NO_MATCH

    def token_boxes(self, tokens: Sequence[Token],
                    viewport: Optional[ViewportState]) -> List[Tuple[int, DisplayBox]]:
        boxes = []
        for token in tokens:
            if not token.is_hittable:
                continue
            box = to_display_box(token, viewport, self.box_margin)
            if box is not None:
                boxes.append((token.index, box))
        return boxes

    def hit_test(self, click_x: float, click_y: float, tokens: Sequence[Token],
                 viewport: Optional[ViewportState]) -> HitResult:
        """Find the token a container-relative click refers to."""
        if viewport is None or not viewport.is_measured:
            return NO_MATCH

        result = self.resolve(click_x, click_y, self.token_boxes(tokens, viewport),
                              self.threshold_for(viewport))
        logger.debug(f"Token hit test at ({click_x:.1f}, {click_y:.1f}): {result.kind.value} {result.key}")
        return result

    def field_boxes(self, fields: Sequence[FieldExtraction],
                    viewport: Optional[ViewportState]) -> List[Tuple[str, DisplayBox]]:
        boxes = []
        for field in fields:
            if not field.value or field.position is None or field.position.bbox is None:
                continue
            bbox = field.position.bbox
            if not all(math.isfinite(v) for v in (bbox.x, bbox.y, bbox.width, bbox.height)):
                continue
            box = to_display_box(bbox, viewport, self.box_margin)
            if box is not None:
                boxes.append((field.key, box))
        return boxes

    def hit_test_fields(self, click_x: float, click_y: float,
                        fields: Sequence[FieldExtraction],
                        viewport: Optional[ViewportState]) -> HitResult:
        """Find the structured field box a click refers to (fields in display order)."""
        if viewport is None or not viewport.is_measured:
            return NO_MATCH

        result = self.resolve(click_x, click_y, self.field_boxes(fields, viewport),
                              self.threshold_for(viewport))
        logger.debug(f"Field hit test at ({click_x:.1f}, {click_y:.1f}): {result.kind.value} {result.key}")
        return result
