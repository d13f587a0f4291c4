"""
Overlay Renderer

Draws the annotation overlays onto a page image for previews and exports.
Boxes are drawn in intrinsic coordinates, scaled to the bitmap's actual size.
"""

import base64
import binascii
import io
import logging
from typing import Iterable, Optional, Tuple

from PIL import Image, ImageDraw

from ..core.geometry import resolve_intrinsic_size
from ..core.models import BoundingBox, PageExtraction, Position

logger = logging.getLogger(__name__)

TOKEN_COLOR = (156, 163, 175)
SELECTED_COLOR = (59, 130, 246)
FIELD_COLOR = (34, 197, 94)
DEFAULT_PAGE_SIZE = (800, 1000)


class OverlayRenderer:
    """PIL utilities for rendering token and field overlays."""

    @staticmethod
    def create_blank_page(width: int, height: int) -> Image.Image:
        return Image.new('RGB', (max(1, int(width)), max(1, int(height))), color='white')

    @staticmethod
    def decode_image(image_b64: str) -> Image.Image:
        """Decode a base64 page preview.

        Raises:
            ValueError: if the data is not a decodable image.
        """
        try:
            img_data = base64.b64decode(image_b64, validate=True)
            img = Image.open(io.BytesIO(img_data))
            img.load()
        except (binascii.Error, OSError) as e:
            raise ValueError(f"Invalid page preview image: {e}") from e
        return img.convert('RGB')

    @staticmethod
    def encode_image(img: Image.Image) -> str:
        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        return base64.b64encode(buffer.getvalue()).decode('utf-8')

    @staticmethod
    def _scaled_rect(box: BoundingBox, scale: Tuple[float, float]) -> Tuple[int, int, int, int]:
        sx, sy = scale
        return (round(box.x * sx), round(box.y * sy),
                round((box.x + box.width) * sx), round((box.y + box.height) * sy))

    @classmethod
    def page_image(cls, page: PageExtraction) -> Image.Image:
        """Decoded page preview, or a blank page of the intrinsic size."""
        if page.file_preview:
            try:
                return cls.decode_image(page.file_preview)
            except ValueError as e:
                logger.warning(f"Page {page.page_index} preview unusable, rendering blank page: {e}")

        size = resolve_intrinsic_size(page.preview_image_width, page.preview_image_height)
        return cls.create_blank_page(*(size or DEFAULT_PAGE_SIZE))

    @classmethod
    def render_page(cls, page: PageExtraction, selected: Iterable[int] = (),
                    field_position: Optional[Position] = None) -> str:
        """Render token boxes (selected ones highlighted) and the field box; returns base64 PNG."""
        img = cls.page_image(page)
        draw = ImageDraw.Draw(img)

        size = resolve_intrinsic_size(page.preview_image_width, page.preview_image_height,
                                      img.width, img.height)
        scale = (img.width / size[0], img.height / size[1])
        selected = set(selected)

        drawn = 0
        for token in page.tokens:
            if not token.is_hittable:
                continue
            is_selected = token.index in selected
            draw.rectangle(
                cls._scaled_rect(token.bbox, scale),
                outline=SELECTED_COLOR if is_selected else TOKEN_COLOR,
                width=2 if is_selected else 1
            )
            drawn += 1

        if field_position is not None:
            field_box = field_position.scaled_to(img.width, img.height)
            if field_box is not None and not field_box.is_empty:
                draw.rectangle(cls._scaled_rect(field_box, (1.0, 1.0)), outline=FIELD_COLOR, width=3)

        logger.info(f"Rendered page {page.page_index} with {drawn} token boxes ({len(selected)} selected)")
        return cls.encode_image(img)
