"""
Invoice Annotation Surface Package

Click-to-correct annotation of machine-extracted invoice fields on a rendered document image.
"""

__version__ = "1.0.0"
__author__ = "Invoice Annotation Team"

from .core.models import Token, Position, INVOICE_FIELDS
from .core.geometry import ViewportState, to_display_box, to_intrinsic
from .core.hit_testing import HitTester
from .hitl.selection_state import SelectionStateMachine
from .hitl.interactive_viewer import InteractiveImageViewer

__all__ = [
    'Token',
    'Position',
    'INVOICE_FIELDS',
    'ViewportState',
    'to_display_box',
    'to_intrinsic',
    'HitTester',
    'SelectionStateMachine',
    'InteractiveImageViewer',
]
