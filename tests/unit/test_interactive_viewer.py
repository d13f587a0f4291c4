"""
Test Interactive Image Viewer

Validates the overlay adapter between a page image and the annotation core:
- Viewport measurement on load, zoom and resize
- Overlay boxes and zoom-scaled borders
- Click dispatch to tokens, field boxes or the bare indicator
- Settle delay and disposal
"""

import asyncio
import unittest

from invoice_annotator.core.config_manager import AnnotationConfig
from invoice_annotator.core.models import (
    Token, BoundingBox, FieldExtraction, FieldPosition, PageExtraction
)
from invoice_annotator.hitl.interactive_viewer import InteractiveImageViewer, ClickOutcome


def sample_page(with_preview_size=True):
    return PageExtraction(
        page_index=0,
        tokens=[
            Token(0, "INV-2024-001", 100, 50, 120, 20),
            Token(1, "Total", 100, 300, 60, 20),
            Token(2, ""),
        ],
        preview_image_width=800 if with_preview_size else None,
        preview_image_height=1000 if with_preview_size else None,
        fields={
            "invoiceNumber": FieldExtraction(
                "invoiceNumber", "INV-2024-001", 0.95,
                position=FieldPosition(bbox=BoundingBox(100, 50, 120, 20), line_number=2),
            ),
            "totalAmount": FieldExtraction(
                "totalAmount", "1,234.56", 0.65,
                position=FieldPosition(bbox=BoundingBox(600, 900, 100, 20)),
            ),
        },
    )


class ViewerTestCase(unittest.TestCase):

    def setUp(self):
        self.values = []
        self.counts = []
        self.viewer = InteractiveImageViewer(
            sample_page(),
            on_value_select=lambda key, pos, text=None: self.values.append((key, pos, text)),
            on_selection_change=self.counts.append,
            zoom=50,
        )


class TestViewerLayout(ViewerTestCase):
    """Test viewport measurement and recompute triggers."""

    def test_not_ready_before_measurement(self):
        self.assertFalse(self.viewer.is_ready)
        self.assertEqual(self.viewer.overlay_boxes(), [])
        self.assertEqual(self.viewer.click_at(50, 25), ClickOutcome.NOT_READY)

    def test_measure_builds_zoomed_viewport(self):
        viewport = self.viewer.measure(800, 1000)

        self.assertEqual((viewport.displayed_width, viewport.displayed_height), (400, 500))
        self.assertEqual((viewport.intrinsic_width, viewport.intrinsic_height), (800, 1000))
        self.assertEqual(self.viewer.box_update_key, 1)

    def test_zoom_change_recomputes(self):
        self.viewer.measure(800, 1000)

        self.assertEqual(self.viewer.set_zoom(100), 100)
        self.assertEqual(self.viewer.viewport.displayed_width, 800)
        self.assertEqual(self.viewer.set_zoom(500), 200)
        self.assertEqual(self.viewer.box_update_key, 3)

    def test_zoom_keeps_layout_and_offset(self):
        self.viewer.measure(800, 1000, offset_left=12, offset_top=6)

        self.viewer.set_zoom(150)
        viewport = self.viewer.viewport

        self.assertEqual((viewport.layout_width, viewport.layout_height), (800, 1000))
        self.assertEqual((viewport.displayed_width, viewport.displayed_height), (1200, 1500))
        self.assertEqual(viewport.offset_left, 12)
        self.assertEqual(self.viewer.snapshot()["viewport"]["layout_width"], 800)

    def test_resize_keeps_natural_size(self):
        viewer = InteractiveImageViewer(sample_page(with_preview_size=False))
        viewer.measure(800, 1000, natural_width=1600, natural_height=2000)

        viewer.resize(400, 500)

        self.assertEqual(viewer.viewport.intrinsic_width, 1600)
        self.assertEqual(viewer.viewport.displayed_width, 400)

    def test_natural_size_is_fallback_only(self):
        self.viewer.measure(800, 1000, natural_width=1600, natural_height=2000)

        self.assertEqual(self.viewer.viewport.intrinsic_width, 800)

    def test_unknown_intrinsic_size_is_not_ready(self):
        viewer = InteractiveImageViewer(sample_page(with_preview_size=False))
        viewer.measure(800, 1000)

        self.assertFalse(viewer.is_ready)
        self.assertEqual(viewer.click_at(10, 10), ClickOutcome.NOT_READY)

    def test_disposed_viewer_ignores_measurement(self):
        self.viewer.dispose()

        self.assertIsNone(self.viewer.measure(800, 1000))
        self.assertFalse(self.viewer.is_ready)


class TestViewerOverlays(ViewerTestCase):
    """Test drawable overlay rectangles."""

    def test_overlay_per_hittable_token(self):
        self.viewer.measure(800, 1000)
        overlays = self.viewer.overlay_boxes()

        self.assertEqual([o.token_index for o in overlays], [0, 1])
        self.assertEqual(overlays[0].box.left, 49)
        self.assertEqual(overlays[0].to_dict()["id"], "text-0")

    def test_border_width_follows_zoom(self):
        self.viewer.measure(800, 1000)
        self.viewer.set_selected_field("invoiceNumber")
        self.viewer.click_token(0)

        self.viewer.set_zoom(125)
        selected, plain = self.viewer.overlay_boxes()

        self.assertEqual(selected.border_width, 3)
        self.assertEqual(selected.z_index, 10)
        self.assertEqual(plain.border_width, 1)
        self.assertEqual(plain.z_index, 5)

        self.viewer.set_zoom(50)
        self.assertEqual(self.viewer.overlay_boxes()[0].border_width, 1)

    def test_hover_raises_overlay(self):
        self.viewer.measure(800, 1000)
        self.viewer.hover(1)

        self.assertTrue(self.viewer.overlay_boxes()[1].hovered)
        self.assertEqual(self.viewer.overlay_boxes()[1].z_index, 8)
        self.viewer.hover(None)
        self.assertIsNone(self.viewer.highlighted)

    def test_field_highlight_box(self):
        self.viewer.measure(800, 1000)

        self.assertIsNone(self.viewer.field_highlight_box())
        self.viewer.set_selected_field("totalAmount")
        self.assertEqual(self.viewer.field_highlight_box().left, 299)


class TestViewerClicks(ViewerTestCase):
    """Test click dispatch."""

    def setUp(self):
        super().setUp()
        self.viewer.measure(800, 1000)

    def test_token_click_while_idle_is_ignored(self):
        self.assertEqual(self.viewer.click_token(0), ClickOutcome.TOKEN_IGNORED)
        self.assertEqual(self.values, [])

    def test_idle_click_selects_field_box(self):
        outcome = self.viewer.click_at(320, 455)

        self.assertEqual(outcome, ClickOutcome.FIELD_SELECTED)
        self.assertEqual(self.viewer.selected_field, "totalAmount")
        key, position, text = self.values[0]
        self.assertEqual(key, "totalAmount")
        self.assertEqual((position.x, position.y), (600, 900))
        self.assertIsNone(text)
        self.assertEqual(self.viewer.click_position, (300, 450))

    def test_armed_click_toggles_token(self):
        self.viewer.set_selected_field("invoiceNumber")

        self.assertEqual(self.viewer.click_at(50, 25), ClickOutcome.TOKEN_TOGGLED)
        self.assertEqual(self.values[-1][2], "INV-2024-001")
        self.assertEqual(self.counts, [0, 1])

        self.assertEqual(self.viewer.click_at(60, 160), ClickOutcome.TOKEN_TOGGLED)
        self.assertEqual(self.values[-1][2], "INV-2024-001 Total")

    def test_far_click_only_moves_indicator(self):
        self.assertEqual(self.viewer.click_at(390, 20), ClickOutcome.INDICATOR_ONLY)
        self.assertEqual(self.viewer.click_position, (390, 20))
        self.assertEqual(self.values, [])
        self.assertAlmostEqual(self.viewer.click_point.x, 780)
        self.assertAlmostEqual(self.viewer.click_point.y, 40)
        self.assertAlmostEqual(self.viewer.click_point.percent_x, 97.5)
        self.assertAlmostEqual(self.viewer.click_point.percent_y, 4.0)

    def test_client_click_accounts_for_container_and_scroll(self):
        self.viewer.set_selected_field("invoiceNumber")

        outcome = self.viewer.click_at_client(150, 185, container_left=100, container_top=200, scroll_top=40)

        self.assertEqual(outcome, ClickOutcome.TOKEN_TOGGLED)
        self.assertEqual(self.values[-1][2], "INV-2024-001")
        self.assertAlmostEqual(self.viewer.click_point.x, 100)
        self.assertAlmostEqual(self.viewer.click_point.y, 50)

    def test_click_point_excludes_image_offset(self):
        viewer = InteractiveImageViewer(sample_page(), zoom=50)
        viewer.measure(800, 1000, offset_left=16, offset_top=8)

        viewer.click_at(66, 33)

        self.assertAlmostEqual(viewer.click_point.x, 100)
        self.assertAlmostEqual(viewer.click_point.y, 50)
        self.assertEqual(viewer.snapshot()["click_point"]["percent_x"], 12.5)

    def test_set_selected_field_rearms_only_on_change(self):
        self.viewer.set_selected_field("invoiceNumber")
        self.viewer.click_token(0)

        self.viewer.set_selected_field("invoiceNumber")
        self.assertEqual(self.viewer.state.selected_indices, [0])

        self.viewer.set_selected_field("totalAmount")
        self.assertEqual(self.viewer.state.selected_indices, [])

        self.viewer.set_selected_field(None)
        self.assertIsNone(self.viewer.selected_field)

    def test_field_box_click_for_unknown_field(self):
        self.assertEqual(self.viewer.click_field_box("iban"), ClickOutcome.INDICATOR_ONLY)
        self.assertIsNone(self.viewer.selected_field)

    def test_page_change_requires_new_measurement(self):
        self.viewer.set_selected_field("invoiceNumber")
        self.viewer.click_token(0)

        self.viewer.set_page(sample_page())

        self.assertFalse(self.viewer.is_ready)
        self.assertEqual(self.viewer.selected_field, "invoiceNumber")
        self.assertEqual(self.viewer.state.count, 0)


class TestImageLoadSettle(unittest.IsolatedAsyncioTestCase):
    """Test the deferred measurement after image load."""

    async def test_measures_after_settle_delay(self):
        viewer = InteractiveImageViewer(sample_page(), config=AnnotationConfig(settle_delay_ms=5))

        viewport = await viewer.on_image_load(800, 1000)

        self.assertIsNotNone(viewport)
        self.assertTrue(viewer.is_ready)

    async def test_disposed_before_settle_is_noop(self):
        viewer = InteractiveImageViewer(sample_page(), config=AnnotationConfig(settle_delay_ms=50))

        pending = asyncio.ensure_future(viewer.on_image_load(800, 1000))
        await asyncio.sleep(0)
        viewer.dispose()

        self.assertIsNone(await pending)
        self.assertIsNone(viewer.viewport)

    async def test_page_change_before_settle_is_noop(self):
        viewer = InteractiveImageViewer(sample_page(), config=AnnotationConfig(settle_delay_ms=50))

        pending = asyncio.ensure_future(viewer.on_image_load(800, 1000, natural_width=1600, natural_height=2000))
        await asyncio.sleep(0)
        viewer.set_page(sample_page(with_preview_size=False))

        self.assertIsNone(await pending)
        self.assertIsNone(viewer.viewport)
        self.assertFalse(viewer.is_ready)

    async def test_zero_delay_measures_immediately(self):
        viewer = InteractiveImageViewer(sample_page(), config=AnnotationConfig(settle_delay_ms=0))

        await viewer.on_image_load(400, 500, offset_left=8)

        self.assertEqual(viewer.viewport.offset_left, 8)


if __name__ == '__main__':
    unittest.main()
