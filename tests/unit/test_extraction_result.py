"""
Test Extraction Result Parsing

Validates conversion of backend responses into annotation models,
including tolerance of malformed tokens and fields.
"""

import unittest

from invoice_annotator.core.extraction_result import (
    parse_extraction_result, parse_token, parse_bbox, ExtractionParseError
)
from invoice_annotator.core.models import BoundingBox


class TestTokenParsing(unittest.TestCase):
    """Test parsing of individual OCR tokens."""

    def test_complete_token(self):
        token = parse_token(3, {"text": "Total", "x": "100", "y": 300, "width": 60, "height": 20.5})

        self.assertEqual(token.index, 3)
        self.assertEqual(token.bbox, BoundingBox(100, 300, 60, 20.5))
        self.assertTrue(token.is_hittable)

    def test_malformed_entries_keep_their_slot(self):
        self.assertEqual(parse_token(2, "garbage").text, "")
        self.assertIsNone(parse_token(2, {"text": "x", "x": "abc", "y": 1, "width": 1, "height": 1}).bbox)
        self.assertEqual(parse_token(2, {"text": 42}).text, "")
        self.assertIsNone(parse_token(2, {"text": "x", "x": True, "y": 1, "width": 1, "height": 1}).bbox)

    def test_non_finite_coordinates_are_rejected(self):
        nan_token = parse_token(0, {"text": "bad", "x": "nan", "y": 300, "width": 60, "height": 20})
        inf_token = parse_token(1, {"text": "bad", "x": 0, "y": 0, "width": "inf", "height": float("-inf")})

        self.assertIsNone(nan_token.bbox)
        self.assertFalse(nan_token.is_hittable)
        self.assertIsNone(inf_token.bbox)
        self.assertFalse(inf_token.is_hittable)
        self.assertIsNone(parse_bbox({"x": 1, "y": 2, "width": "Infinity", "height": 4}))

    def test_bbox_requires_all_values(self):
        self.assertIsNone(parse_bbox({"x": 1, "y": 2, "width": 3}))
        self.assertIsNone(parse_bbox(None))


class TestExtractionResultParsing(unittest.TestCase):
    """Test whole-response parsing."""

    def test_single_page_response(self):
        result = parse_extraction_result({
            "all_extracted_text": [
                {"text": "INV-2024-001", "x": 100, "y": 50, "width": 120, "height": 20},
                None,
                {"text": "", "x": 1, "y": 1, "width": 1, "height": 1},
            ],
            "preview_image_width": 800,
            "preview_image_height": 0,
            "file_preview": "",
            "invoiceNumber": {"value": "INV-2024-001", "confidence": 0.95, "source": "regex",
                              "position": {"line_number": 2, "zone": "header", "char_percent": 12.5}},
            "totalAmount": {"value": 1234.56},
            "unknownField": {"value": "ignored"},
            "iban": "not a dict",
        })

        page = result.pages[0]
        self.assertEqual(len(result.pages), 1)
        self.assertEqual([t.index for t in page.tokens], [0, 1, 2])
        self.assertEqual([t.index for t in page.hittable_tokens], [0])
        self.assertEqual(page.preview_image_width, 800)
        self.assertIsNone(page.preview_image_height)
        self.assertIsNone(page.file_preview)
        self.assertEqual(sorted(result.fields), ["invoiceNumber", "totalAmount"])
        self.assertEqual(result.fields["totalAmount"].value, "1234.56")
        self.assertEqual(result.fields["invoiceNumber"].source, "regex")
        self.assertEqual(result.fields["invoiceNumber"].position.zone, "header")
        self.assertIsNone(result.fields["invoiceNumber"].position.bbox)
        self.assertEqual(page.fields, result.fields)

    def test_multi_page_response(self):
        result = parse_extraction_result({
            "page_count": "3",
            "pages_truncated": True,
            "file_preview_mime": "image/jpeg",
            "invoiceNumber": {"value": "INV-1"},
            "pages": [
                {"all_extracted_text": [{"text": "a", "x": 0, "y": 0, "width": 5, "height": 5}],
                 "preview_image_width": 800, "preview_image_height": 1000},
                {"all_extracted_text": [], "invoiceNumber": {"value": "INV-1-p2"}},
                "broken",
            ],
        })

        self.assertEqual(len(result.pages), 3)
        self.assertEqual(result.page_count, 3)
        self.assertTrue(result.pages_truncated)
        self.assertEqual(result.pages[0].file_preview_mime, "image/jpeg")
        self.assertEqual(result.pages[1].fields["invoiceNumber"].value, "INV-1-p2")
        self.assertEqual(result.fields["invoiceNumber"].value, "INV-1")
        self.assertEqual(result.pages[2].tokens, [])
        self.assertIsNone(result.page(3))

    def test_missing_token_list(self):
        result = parse_extraction_result({"raw_text": "hello"})

        self.assertEqual(result.pages[0].tokens, [])
        self.assertEqual(result.raw_text, "hello")

    def test_non_object_payload_raises(self):
        with self.assertRaises(ExtractionParseError):
            parse_extraction_result(["not", "an", "object"])


if __name__ == '__main__':
    unittest.main()
