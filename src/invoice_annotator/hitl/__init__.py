"""
Human-in-the-loop (HITL) annotation modules.

This package contains:
- Token selection state machine for the armed field
- Interactive image viewer adapter (overlays and click dispatch)
- Review session form state and submission payload
- PIL overlay rendering for previews
"""

from .selection_state import SelectionStateMachine, StructuredBoxClick, RawTokenClick, SelectionUpdate
from .interactive_viewer import InteractiveImageViewer, ClickOutcome, OverlayBox
from .review_session import ReviewSession, FieldCorrection
from .overlay_renderer import OverlayRenderer

__all__ = [
    'SelectionStateMachine',
    'StructuredBoxClick',
    'RawTokenClick',
    'SelectionUpdate',
    'InteractiveImageViewer',
    'ClickOutcome',
    'OverlayBox',
    'ReviewSession',
    'FieldCorrection',
    'OverlayRenderer',
]
