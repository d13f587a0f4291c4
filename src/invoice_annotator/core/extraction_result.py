"""
Extraction Result Parsing

Turns the extraction backend's JSON response into annotation models.

Supports:
- Single-page responses (top-level ``all_extracted_text`` / ``preview_image_*``)
- Multi-page responses (``pages`` list, each page overriding top-level values)
- Malformed tokens and fields, which are kept or skipped without raising
"""

import logging
import math
from typing import Dict, List, Optional, Any

from .models import (
    BoundingBox, Token, FieldPosition, FieldExtraction,
    PageExtraction, ExtractionResult, FIELD_KEYS
)

logger = logging.getLogger(__name__)


class ExtractionParseError(ValueError):
    """Raised when an extraction payload is not usable at all."""


def _to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


def _positive(value: Any) -> Optional[float]:
    number = _to_float(value)
    if number is None or number <= 0:
        return None
    return number


def parse_token(index: int, item: Any) -> Token:
    """Parse one token entry; malformed entries keep their slot with no box."""
    if not isinstance(item, dict):
        return Token(index=index, text="")

    text = item.get("text")
    return Token(
        index=index,
        text=text if isinstance(text, str) else "",
        x=_to_float(item.get("x")),
        y=_to_float(item.get("y")),
        width=_to_float(item.get("width")),
        height=_to_float(item.get("height")),
    )


def parse_tokens(items: Any) -> List[Token]:
    if not isinstance(items, list):
        return []
    return [parse_token(i, item) for i, item in enumerate(items)]


def parse_bbox(data: Any) -> Optional[BoundingBox]:
    if not isinstance(data, dict):
        return None
    values = [_to_float(data.get(k)) for k in ("x", "y", "width", "height")]
    if any(v is None for v in values):
        return None
    return BoundingBox(*values)


def parse_field_position(data: Any) -> Optional[FieldPosition]:
    if not isinstance(data, dict):
        return None
    return FieldPosition(
        bbox=parse_bbox(data.get("bbox")),
        char_percent=_to_float(data.get("char_percent")),
        line_percent=_to_float(data.get("line_percent")),
        line_number=_to_int(data.get("line_number")),
        total_lines=_to_int(data.get("total_lines")),
        zone=data.get("zone") if isinstance(data.get("zone"), str) else None,
    )


def parse_fields(data: Dict[str, Any]) -> Dict[str, FieldExtraction]:
    """Collect the known invoice fields present in a response (or page) dict."""
    fields = {}
    for key in FIELD_KEYS:
        entry = data.get(key)
        if not isinstance(entry, dict):
            continue

        value = entry.get("value")
        validation = entry.get("validation")
        fields[key] = FieldExtraction(
            key=key,
            value="" if value is None else str(value),
            confidence=_to_float(entry.get("confidence")) or 0.0,
            source=entry.get("source") if isinstance(entry.get("source"), str) else None,
            position=parse_field_position(entry.get("position")),
            validation=validation if isinstance(validation, dict) else {},
        )
    return fields


def _parse_page(index: int, page: Dict[str, Any], top_level: Dict[str, Any],
                top_fields: Dict[str, FieldExtraction]) -> PageExtraction:
    merged = dict(top_fields)
    merged.update(parse_fields(page))

    return PageExtraction(
        page_index=index,
        tokens=parse_tokens(page.get("all_extracted_text")),
        preview_image_width=_positive(page.get("preview_image_width")),
        preview_image_height=_positive(page.get("preview_image_height")),
        file_preview=page.get("file_preview") or None,
        file_preview_mime=page.get("file_preview_mime") or top_level.get("file_preview_mime") or "image/png",
        fields=merged,
    )


def parse_extraction_result(data: Any) -> ExtractionResult:
    """Parse a backend extraction response.

    Raises:
        ExtractionParseError: if the payload is not a JSON object.
    """
    if not isinstance(data, dict):
        raise ExtractionParseError(
            f"Extraction payload must be an object, got {type(data).__name__}")

    fields = parse_fields(data)
    raw_pages = data.get("pages")

    if isinstance(raw_pages, list) and raw_pages:
        pages = [
            _parse_page(i, page if isinstance(page, dict) else {}, data, fields)
            for i, page in enumerate(raw_pages)
        ]
    else:
        pages = [_parse_page(0, data, data, fields)]

    page_count = _to_int(data.get("page_count"))
    result = ExtractionResult(
        pages=pages,
        fields=fields,
        raw_text=data.get("raw_text") or "",
        page_count=page_count,
        pages_truncated=bool(data.get("pages_truncated", False)),
        raw=data,
    )

    skipped = sum(len(p.tokens) - len(p.hittable_tokens) for p in pages)
    logger.info(f"Parsed extraction result: {len(pages)} page(s), "
                f"{sum(len(p.tokens) for p in pages)} tokens ({skipped} not hittable), "
                f"{len(fields)} fields")
    return result
