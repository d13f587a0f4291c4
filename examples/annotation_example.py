"""
Annotation Surface Example

This example walks through one click-to-correct session:
- Parsing an extraction backend response
- Measuring the page image after load
- Filling a field by clicking OCR words
- Clicking a structured field box while idle
- Rendering an overlay preview and building the submission payload
"""

import asyncio
import json
import logging
from pathlib import Path

from invoice_annotator.core.config_manager import AnnotationConfig
from invoice_annotator.core.extraction_result import parse_extraction_result
from invoice_annotator.hitl.overlay_renderer import OverlayRenderer
from invoice_annotator.hitl.review_session import ReviewSession

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def create_mock_extraction():
    """Backend response for an 800x1000 OCR render of a one-page invoice."""
    words = [
        ("INVOICE", 80, 40, 140, 28),
        ("INV-2024-001", 600, 45, 120, 20),
        ("ACME", 80, 120, 80, 20),
        ("Industrial", 170, 120, 110, 20),
        ("GmbH", 290, 120, 60, 20),
        ("2024-03-01", 600, 80, 110, 20),
        ("Total", 480, 900, 60, 20),
        ("1,234.56", 600, 900, 100, 20),
    ]
    return {
        "all_extracted_text": [
            {"text": text, "x": x, "y": y, "width": w, "height": h}
            for text, x, y, w, h in words
        ],
        "preview_image_width": 800,
        "preview_image_height": 1000,
        "raw_text": " ".join(w[0] for w in words),
        "invoiceNumber": {"value": "INV-2024-001", "confidence": 0.95,
                          "position": {"bbox": {"x": 600, "y": 45, "width": 120, "height": 20}}},
        "totalAmount": {"value": "1234.56", "confidence": 0.62,
                        "position": {"bbox": {"x": 600, "y": 900, "width": 100, "height": 20}}},
    }


def demonstrate_word_selection(session: ReviewSession):
    """Fill the vendor name from three OCR words."""

    print("\n🖱️  Filling 'Vendor Name' by clicking words...")
    session.focus_field("vendorName")
    print(f"   Hint: {session.hint}")

    # clicks in container pixels at 50% zoom
    for x, y in [(165, 65), (45, 65), (110, 65)]:
        outcome = session.viewer.click_at(x, y)
        print(f"   Click at ({x}, {y}): {outcome.value} -> {session.form_data['vendorName']!r}")

    print(f"   {session.selection_label}")


def demonstrate_field_box_click(session: ReviewSession):
    """Idle click on the total amount box selects that field."""

    print("\n📦 Clicking the extracted total amount box...")
    session.focus_field(None)
    outcome = session.viewer.click_at(320, 455)
    position = session.field_positions.get("totalAmount")
    print(f"   Outcome: {outcome.value}, selected field: {session.selected_field}")
    if position:
        print(f"   Position: line {position.line_number}/{position.total_lines}, "
              f"{position.char_percent:.1f}% across")

    session.viewer.click_at(320, 455)
    print(f"   Total amount now: {session.form_data['totalAmount']!r}")


async def main():
    """Run the annotation surface example."""

    print("🚀 Invoice Annotation Surface - Demo")
    print("=" * 60)

    config = AnnotationConfig(default_zoom=50, settle_delay_ms=20)
    extraction = parse_extraction_result(create_mock_extraction())
    session = ReviewSession(extraction, config=config, filename="sample_invoice.pdf")

    # Page image reports an 800x1000 layout box once loaded
    viewport = await session.viewer.on_image_load(800, 1000)
    print(f"📐 Viewport: {viewport.intrinsic_width:.0f}x{viewport.intrinsic_height:.0f} shown at "
          f"{viewport.displayed_width:.0f}x{viewport.displayed_height:.0f} ({session.zoom:.0f}%)")
    print(f"   {len(session.viewer.overlay_boxes())} clickable word boxes")

    demonstrate_word_selection(session)
    demonstrate_field_box_click(session)

    output_dir = Path("./renders")
    output_dir.mkdir(parents=True, exist_ok=True)
    image_b64 = OverlayRenderer.render_page(
        session.viewer.page,
        selected=session.viewer.state.selected_indices,
        field_position=session.field_positions.get("vendorName"),
    )
    preview_path = output_dir / "annotation_example.png"
    OverlayRenderer.decode_image(image_b64).save(preview_path)
    print(f"\n🖼️  Overlay preview saved to {preview_path}")

    submission = session.build_submission()
    print("\n📤 Submission corrections:")
    print(json.dumps(submission["corrections"], indent=2))
    print(f"⚠️  Missing required fields: {session.missing_required_fields()}")

    print("\n✅ Demo completed successfully!")


if __name__ == "__main__":
    asyncio.run(main())
