"""
Core annotation modules.

This package contains the stateless pieces of the annotation surface:
- Token, position and field models
- Extraction result parsing
- Geometry mapping between intrinsic, displayed and container coordinates
- Click hit testing with nearest-neighbour fallback
- Configuration loading
"""

from .config_manager import AnnotationConfig, ConfigurationManager
from .extraction_result import ExtractionParseError, parse_extraction_result
from .geometry import DisplayBox, ViewportState, to_display_box, to_intrinsic
from .hit_testing import HitResult, HitTester, MatchKind

__all__ = [
    'AnnotationConfig',
    'ConfigurationManager',
    'ExtractionParseError',
    'parse_extraction_result',
    'DisplayBox',
    'ViewportState',
    'to_display_box',
    'to_intrinsic',
    'HitResult',
    'HitTester',
    'MatchKind',
]
