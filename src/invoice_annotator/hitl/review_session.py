"""
Review Session

Host-side state of one invoice correction session:
- Form values initialised from the extracted fields
- Selected field, recorded positions and the "N words selected" indicator
- Zoom controls and page navigation driving the interactive viewer
- Submission payload with per-field corrections for the training backend
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..core.config_manager import AnnotationConfig
from ..core.geometry import step_zoom
from ..core.models import (
    ExtractionResult, Position, INVOICE_FIELDS, get_field_definition
)
from .interactive_viewer import InteractiveImageViewer

logger = logging.getLogger(__name__)

IDLE_HINT = "Click a field first, then click words to fill it"


@dataclass
class FieldCorrection:
    """Reviewer change to one field, for training data generation."""
    field_name: str
    original_value: str
    corrected_value: str
    position: Optional[Position] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_name": self.field_name,
            "original_value": self.original_value,
            "corrected_value": self.corrected_value,
            "position": self.position.to_dict() if self.position else None,
            "timestamp": self.timestamp.isoformat(),
        }


class ReviewSession:
    """Form state of one reviewed document, wired to an InteractiveImageViewer."""

    def __init__(self, extraction: ExtractionResult,
                 config: Optional[AnnotationConfig] = None,
                 filename: Optional[str] = None,
                 session_id: Optional[str] = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.extraction = extraction
        self.config = config or AnnotationConfig()
        self.filename = filename or "unknown"

        self.form_data: Dict[str, str] = {}
        self.field_positions: Dict[str, Optional[Position]] = {}
        self.selected_field: Optional[str] = None
        self.selected_text_count = 0
        self.zoom = self.config.default_zoom
        self.current_page = 0
        self.created_at = datetime.now()

        self._init_form()
        self.viewer = InteractiveImageViewer(
            extraction.pages[0],
            on_value_select=self.handle_value_select,
            on_selection_change=self.handle_selection_change,
            config=self.config,
            zoom=self.zoom,
        )
        logger.info(f"Created review session {self.session_id} for {self.filename}")

    def _init_form(self):
        self.form_data = {}
        for definition in INVOICE_FIELDS:
            extracted = self.extraction.fields.get(definition.key)
            self.form_data[definition.key] = extracted.value if extracted and extracted.value else ""

    # Viewer callbacks

    def handle_value_select(self, field_key: Optional[str], position: Optional[Position],
                            selected_text: Optional[str] = None):
        """Apply a value or field selection reported by the viewer."""
        if selected_text and selected_text.strip() and self.selected_field:
            # replace, never append
            self.form_data[self.selected_field] = selected_text.strip()
            if position is not None:
                self.field_positions[self.selected_field] = position
            else:
                # a stale position would not match the new value
                self.field_positions.pop(self.selected_field, None)
            logger.info(f"Assigned {self.selected_field} from {self.selected_text_count} selected word(s)")
        elif field_key is None and position is None and selected_text == "" and self.selected_field:
            # last selected word removed: the field is unset, not unchanged
            self.form_data[self.selected_field] = ""
            self.field_positions.pop(self.selected_field, None)
        elif field_key:
            self.focus_field(field_key)
            self.field_positions[field_key] = position

    def handle_selection_change(self, count: int):
        self.selected_text_count = count

    # Field form

    def focus_field(self, field_key: Optional[str]):
        """Select the field that token clicks will fill (None to stop filling)."""
        self.selected_field = field_key
        self.viewer.set_selected_field(field_key)

    def update_field(self, field_key: str, value: str):
        """Manual edit of a field input."""
        self.form_data[field_key] = value

    @property
    def hint(self) -> str:
        if not self.selected_field:
            return IDLE_HINT
        definition = get_field_definition(self.selected_field)
        label = definition.label if definition else self.selected_field
        return f'Click words to fill "{label}"'

    @property
    def selection_label(self) -> Optional[str]:
        if self.selected_text_count <= 0 or not self.selected_field:
            return None
        plural = "s" if self.selected_text_count > 1 else ""
        return f"{self.selected_text_count} word{plural} selected"

    # Zoom and pages

    def set_zoom(self, zoom: float) -> float:
        self.zoom = self.viewer.set_zoom(zoom)
        return self.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(step_zoom(self.zoom, 1, self.config.zoom_step,
                                       self.config.min_zoom, self.config.max_zoom))

    def zoom_out(self) -> float:
        return self.set_zoom(step_zoom(self.zoom, -1, self.config.zoom_step,
                                       self.config.min_zoom, self.config.max_zoom))

    @property
    def page_label(self) -> str:
        if self.extraction.page_count is not None:
            return f"{self.current_page + 1} / {self.extraction.page_count}"
        return str(self.current_page + 1)

    def go_to_page(self, index: int) -> bool:
        """Navigate within the available page previews."""
        page = self.extraction.page(index)
        if page is None:
            return False
        if index != self.current_page:
            self.current_page = index
            self.viewer.set_page(page)
            logger.info(f"Session {self.session_id} moved to page {index + 1}")
        return True

    def next_page(self) -> bool:
        return self.go_to_page(min(len(self.extraction.pages) - 1, self.current_page + 1))

    def previous_page(self) -> bool:
        return self.go_to_page(max(0, self.current_page - 1))

    # Submission

    def corrections(self) -> List[FieldCorrection]:
        result = []
        for definition in INVOICE_FIELDS:
            extracted = self.extraction.fields.get(definition.key)
            original = extracted.value if extracted else ""
            corrected = self.form_data.get(definition.key, "")
            if corrected != original:
                result.append(FieldCorrection(
                    field_name=definition.key,
                    original_value=original,
                    corrected_value=corrected,
                    position=self.field_positions.get(definition.key),
                ))
        return result

    def missing_required_fields(self) -> List[str]:
        return [d.key for d in INVOICE_FIELDS
                if d.required and not self.form_data.get(d.key, "").strip()]

    def build_submission(self, filename: Optional[str] = None) -> Dict[str, Any]:
        """Payload the host sends to the training backend's save endpoint."""
        return {
            "filename": filename or self.filename,
            "extracted": dict(self.form_data),
            "raw_text": self.extraction.raw_text,
            "original_extraction": self.extraction.raw,
            "field_positions": {
                key: position.to_dict() if position else None
                for key, position in self.field_positions.items()
            },
            "corrections": [c.to_dict() for c in self.corrections()],
        }

    def reset(self):
        """Back to the freshly extracted state."""
        self.focus_field(None)
        self.field_positions = {}
        self.selected_text_count = 0
        self.go_to_page(0)
        self.set_zoom(self.config.default_zoom)
        self._init_form()
        logger.info(f"Session {self.session_id} reset")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "filename": self.filename,
            "form_data": dict(self.form_data),
            "selected_field": self.selected_field,
            "selected_text_count": self.selected_text_count,
            "selection_label": self.selection_label,
            "hint": self.hint,
            "zoom": self.zoom,
            "current_page": self.current_page,
            "page_label": self.page_label,
            "page_total": len(self.extraction.pages),
            "pages_truncated": self.extraction.pages_truncated,
            "field_positions": sorted(k for k, v in self.field_positions.items() if v is not None),
            "missing_required": self.missing_required_fields(),
            "viewer": self.viewer.snapshot(),
        }
