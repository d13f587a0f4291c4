"""
Annotation Data Models

Data structures shared by the annotation surface:
- OCR tokens and bounding boxes in intrinsic (OCR image) pixels
- Recorded positions used by the training backend for position learning
- The fixed list of invoice fields a reviewer can correct
- Per-field and per-page extraction data received from the backend
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

DEFAULT_TOTAL_LINES = 50


@dataclass(frozen=True)
class BoundingBox:
    """Bounding box in intrinsic pixel coordinates."""
    x: float
    y: float
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        """Zero-size or non-finite boxes cover no area."""
        if not all(math.isfinite(v) for v in (self.x, self.y, self.width, self.height)):
            return True
        return self.width <= 0 or self.height <= 0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class Token:
    """One OCR-recognized text span, identified by its index in the page token list."""
    index: int
    text: str
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None

    @property
    def bbox(self) -> Optional[BoundingBox]:
        if None in (self.x, self.y, self.width, self.height):
            return None
        return BoundingBox(self.x, self.y, self.width, self.height)

    @property
    def is_hittable(self) -> bool:
        """Tokens without text or without a usable box never take part in hit testing."""
        if not self.text or not self.text.strip():
            return False
        box = self.bbox
        return box is not None and not box.is_empty


@dataclass(frozen=True)
class Position:
    """Where on the document a value was sourced from.

    Only meaningful relative to ``image_width``/``image_height``, the intrinsic
    dimensions it was computed against.
    """
    x: float
    y: float
    char_percent: float
    line_percent: float
    line_number: int
    char_offset: int
    total_lines: int
    line_length: int
    image_width: float
    image_height: float
    bbox: Optional[BoundingBox] = None
    zone: Optional[str] = None

    def scaled_to(self, width: float, height: float) -> Optional[BoundingBox]:
        """Project the recorded box (or point) onto an image of another size."""
        if not self.image_width or not self.image_height:
            return None
        sx = width / self.image_width
        sy = height / self.image_height
        if self.bbox is not None:
            return BoundingBox(self.bbox.x * sx, self.bbox.y * sy,
                               self.bbox.width * sx, self.bbox.height * sy)
        return BoundingBox(self.x * sx, self.y * sy, 0, 0)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "x": self.x,
            "y": self.y,
            "char_percent": self.char_percent,
            "line_percent": self.line_percent,
            "line_number": self.line_number,
            "char_offset": self.char_offset,
            "total_lines": self.total_lines,
            "line_length": self.line_length,
            "image_width": self.image_width,
            "image_height": self.image_height,
        }
        if self.bbox is not None:
            data["bbox"] = self.bbox.to_dict()
        if self.zone:
            data["zone"] = self.zone
        return data


def build_position(box: BoundingBox, image_width: float, image_height: float,
                   total_lines: int = DEFAULT_TOTAL_LINES,
                   line_number: Optional[int] = None,
                   char_percent: Optional[float] = None,
                   line_percent: Optional[float] = None,
                   zone: Optional[str] = None) -> Optional[Position]:
    """Build a Position for an intrinsic box; None when the image size is unknown."""
    if not image_width or not image_height or image_width <= 0 or image_height <= 0:
        return None

    if char_percent is None:
        char_percent = (box.x / image_width) * 100
    if line_percent is None:
        line_percent = (box.y / image_height) * 100
    if line_number is None:
        line_number = math.floor((box.y / image_height) * total_lines)

    return Position(
        x=box.x,
        y=box.y,
        char_percent=char_percent,
        line_percent=line_percent,
        line_number=line_number,
        char_offset=math.floor(box.x),
        total_lines=total_lines,
        line_length=math.floor(image_width),
        image_width=image_width,
        image_height=image_height,
        bbox=box,
        zone=zone,
    )


@dataclass(frozen=True)
class FieldDefinition:
    """An invoice field the reviewer can correct."""
    key: str
    label: str
    required: bool = False


INVOICE_FIELDS: List[FieldDefinition] = [
    FieldDefinition("invoiceNumber", "Invoice Number", required=True),
    FieldDefinition("invoiceDate", "Invoice Date", required=True),
    FieldDefinition("dueDate", "Due Date"),
    FieldDefinition("vendorName", "Vendor Name"),
    FieldDefinition("vendorTaxId", "Vendor Tax ID"),
    FieldDefinition("customerName", "Customer Name"),
    FieldDefinition("customerTaxId", "Customer Tax ID"),
    FieldDefinition("amount", "Net Amount"),
    FieldDefinition("taxAmount", "Tax Amount"),
    FieldDefinition("totalAmount", "Total Amount", required=True),
    FieldDefinition("currency", "Currency"),
    FieldDefinition("iban", "IBAN"),
]

FIELD_KEYS: List[str] = [f.key for f in INVOICE_FIELDS]


def get_field_definition(key: str) -> Optional[FieldDefinition]:
    for definition in INVOICE_FIELDS:
        if definition.key == key:
            return definition
    return None


@dataclass(frozen=True)
class FieldPosition:
    """Position metadata the extraction backend attaches to a field value."""
    bbox: Optional[BoundingBox] = None
    char_percent: Optional[float] = None
    line_percent: Optional[float] = None
    line_number: Optional[int] = None
    total_lines: Optional[int] = None
    zone: Optional[str] = None


@dataclass
class FieldExtraction:
    """Extracted value for one invoice field."""
    key: str
    value: str
    confidence: float = 0.0
    source: Optional[str] = None
    position: Optional[FieldPosition] = None
    validation: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PageExtraction:
    """Token list and preview image of one rendered page."""
    page_index: int
    tokens: List[Token]
    preview_image_width: Optional[float] = None
    preview_image_height: Optional[float] = None
    file_preview: Optional[str] = None  # base64 encoded
    file_preview_mime: str = "image/png"
    fields: Dict[str, FieldExtraction] = field(default_factory=dict)

    @property
    def hittable_tokens(self) -> List[Token]:
        return [t for t in self.tokens if t.is_hittable]


@dataclass
class ExtractionResult:
    """Backend extraction response split into pages."""
    pages: List[PageExtraction]
    fields: Dict[str, FieldExtraction]
    raw_text: str = ""
    page_count: Optional[int] = None
    pages_truncated: bool = False
    raw: Dict[str, Any] = field(default_factory=dict)

    def page(self, index: int) -> Optional[PageExtraction]:
        if 0 <= index < len(self.pages):
            return self.pages[index]
        return None
