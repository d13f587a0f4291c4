"""
Token Selection State Machine

Tracks which field is armed for assignment and which tokens are selected for it.

States:
- IDLE: no field armed, token clicks are ignored
- ARMED: one field armed, clicked tokens toggle in and out of the selection

Every toggle re-aggregates the selection in token list order (never click order)
and reports it through the ``on_value_select`` / ``on_selection_change`` callbacks.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Set, Union

from ..core.models import Token, Position, build_position, DEFAULT_TOTAL_LINES

logger = logging.getLogger(__name__)

ValueSelectCallback = Callable[[Optional[str], Optional[Position], Optional[str]], None]
SelectionChangeCallback = Callable[[int], None]


class SelectionPhase(Enum):
    IDLE = "idle"
    ARMED = "armed"


@dataclass(frozen=True)
class StructuredBoxClick:
    """Click on an extracted field's own value box."""
    field_key: str
    position: Optional[Position] = None


@dataclass(frozen=True)
class RawTokenClick:
    """Click on an OCR token overlay."""
    token_index: int


SelectionEvent = Union[StructuredBoxClick, RawTokenClick]


@dataclass(frozen=True)
class SelectionUpdate:
    """Aggregate emitted after a selection change."""
    field_key: Optional[str]
    position: Optional[Position]
    text: str
    count: int

    @property
    def cleared(self) -> bool:
        return self.count == 0


class SelectionStateMachine:
    """Armed field plus the selected token indices for it."""

    def __init__(self, tokens: Sequence[Token] = (),
                 image_width: Optional[float] = None,
                 image_height: Optional[float] = None,
                 on_value_select: Optional[ValueSelectCallback] = None,
                 on_selection_change: Optional[SelectionChangeCallback] = None,
                 total_lines: int = DEFAULT_TOTAL_LINES):
        self.tokens: List[Token] = list(tokens)
        self.image_width = image_width
        self.image_height = image_height
        self.on_value_select = on_value_select
        self.on_selection_change = on_selection_change
        self.total_lines = total_lines

        self.armed_field: Optional[str] = None
        self._selected: Set[int] = set()

    @property
    def phase(self) -> SelectionPhase:
        return SelectionPhase.IDLE if self.armed_field is None else SelectionPhase.ARMED

    @property
    def selected_indices(self) -> List[int]:
        return sorted(self._selected)

    @property
    def count(self) -> int:
        return len(self._selected)

    def is_selected(self, token_index: int) -> bool:
        return token_index in self._selected

    def _notify_count(self):
        if self.on_selection_change:
            self.on_selection_change(len(self._selected))

    def set_page(self, tokens: Sequence[Token], image_width: Optional[float],
                 image_height: Optional[float]):
        """Switch to another page's tokens; the armed field survives, the selection does not."""
        had_selection = bool(self._selected)
        self.tokens = list(tokens)
        self.image_width = image_width
        self.image_height = image_height
        self._selected.clear()
        if had_selection:
            self._notify_count()

    def set_image_size(self, image_width: Optional[float], image_height: Optional[float]):
        self.image_width = image_width
        self.image_height = image_height

    def arm_field(self, field_key: str):
        """Arm ``field_key``; always starts from an empty selection."""
        self.armed_field = field_key
        self._selected.clear()
        logger.info(f"Armed field {field_key}")
        self._notify_count()

    def disarm(self):
        had_selection = bool(self._selected)
        self.armed_field = None
        self._selected.clear()
        if had_selection:
            self._notify_count()

    def aggregate(self) -> SelectionUpdate:
        """Selected text in token list order, positioned at the first selected token."""
        selected = [t for t in self.tokens if t.index in self._selected]
        if not selected:
            return SelectionUpdate(self.armed_field, None, "", 0)

        text = " ".join(t.text for t in selected)
        first = selected[0]
        position = None
        if first.bbox is not None:
            position = build_position(first.bbox, self.image_width, self.image_height,
                                      total_lines=self.total_lines)
        return SelectionUpdate(self.armed_field, position, text, len(selected))

    def toggle_token(self, token_index: int) -> Optional[SelectionUpdate]:
        """Flip ``token_index`` in the selection. No-op (None) while idle or for unknown tokens."""
        if self.armed_field is None:
            return None
        if not any(t.index == token_index and t.is_hittable for t in self.tokens):
            return None

        if token_index in self._selected:
            self._selected.remove(token_index)
        else:
            self._selected.add(token_index)

        update = self.aggregate()
        self._notify_count()

        if self.on_value_select:
            if update.cleared:
                self.on_value_select(None, None, "")
            else:
                self.on_value_select(None, update.position, update.text)
        return update

    def select_structured_box(self, field_key: str, position: Optional[Position]):
        """Arm a field from its value box and report the box's own position."""
        if self.on_value_select:
            self.on_value_select(field_key, position, None)
        if self.armed_field != field_key:
            self.arm_field(field_key)

    def dispatch(self, event: SelectionEvent) -> Optional[SelectionUpdate]:
        """Single entry point for both click variants."""
        if isinstance(event, StructuredBoxClick):
            self.select_structured_box(event.field_key, event.position)
            return None
        if isinstance(event, RawTokenClick):
            return self.toggle_token(event.token_index)
        return None
