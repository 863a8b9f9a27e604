"""
Unit tests for the value codec.

Covers parsing of raw oracle text into typed field values and the SEO image
policy.
"""

import unittest
from unittest.mock import Mock

from datogpt.config import PluginSettings
from datogpt.errors import MalformedResponseError
from datogpt.generation.codec import (
    ValueCodec,
    parse_json_response,
    parse_number,
    strip_code_fences,
    strip_wrapping_quotes,
)
from datogpt.models import AssetRef


class TestResponseHelpers(unittest.TestCase):
    """Test the raw-text helpers."""

    def test_strip_code_fences(self):
        self.assertEqual(strip_code_fences('```json\n{"a": 1}\n```'), '{"a": 1}')
        self.assertEqual(strip_code_fences('```\n[1, 2]\n```'), '[1, 2]')
        self.assertEqual(strip_code_fences('  plain  '), 'plain')

    def test_strip_wrapping_quotes_keeps_inner_quotes(self):
        self.assertEqual(strip_wrapping_quotes('"The "best" tomato"'), 'The "best" tomato')
        self.assertEqual(strip_wrapping_quotes("'Tomatoes'\n"), "Tomatoes")

    def test_parse_json_response(self):
        self.assertEqual(parse_json_response('```json\n{"latitude": 45.1}\n```'), {"latitude": 45.1})

        with self.assertRaises(MalformedResponseError) as raised:
            parse_json_response("not json at all")
        self.assertEqual(raised.exception.raw_response, "not json at all")

    def test_parse_number(self):
        self.assertEqual(parse_number('"42"'), 42)
        self.assertEqual(parse_number("42 tomatoes"), 42)
        self.assertEqual(parse_number("-7"), -7)
        self.assertEqual(parse_number("3.5 kg", is_float=True), 3.5)
        self.assertEqual(parse_number("12", is_float=True), 12.0)

        with self.assertRaises(MalformedResponseError):
            parse_number("forty-two")


class TestValueCodec(unittest.TestCase):
    """Test encoding raw responses per field type."""

    def setUp(self):
        self.codec = ValueCodec(PluginSettings())

    def test_integer(self):
        value = self.codec.encode("integer", '"42"')

        self.assertEqual(value, 42)
        self.assertIsInstance(value, int)

    def test_boolean(self):
        self.assertIs(self.codec.encode("boolean", "1"), True)
        self.assertIs(self.codec.encode("boolean", "0"), False)
        self.assertIs(self.codec.encode("boolean", '"1"'), True)

    def test_float(self):
        self.assertEqual(self.codec.encode("float", "19.99"), 19.99)

    def test_json_types(self):
        self.assertEqual(
            self.codec.encode("map", '{"latitude": 45.4, "longitude": 9.1}'),
            {"latitude": 45.4, "longitude": 9.1}
        )
        self.assertEqual(
            self.codec.encode("color_picker", '```json\n{"red": 255, "green": 0, "blue": 0, "alpha": 255}\n```'),
            {"red": 255, "green": 0, "blue": 0, "alpha": 255}
        )
        self.assertEqual(self.codec.encode("json", '["a", "b"]'), ["a", "b"])

    def test_malformed_json_raises(self):
        with self.assertRaises(MalformedResponseError):
            self.codec.encode("map", "somewhere in Italy")

    def test_text_types_strip_quotes(self):
        self.assertEqual(self.codec.encode("single_line", '"Tomatoes in July"'), "Tomatoes in July")
        self.assertEqual(self.codec.encode("wysiwyg", "<p>Hi</p>"), "<p>Hi</p>")
        self.assertEqual(self.codec.encode("slug", "tomatoes-in-july"), "tomatoes-in-july")

    def test_serialize(self):
        self.assertEqual(self.codec.serialize("boolean", True), "1")
        self.assertEqual(self.codec.serialize("single_line", None), "")
        self.assertEqual(self.codec.serialize("integer", 42), "42")
        self.assertIn('"latitude": 1', self.codec.serialize("map", {"latitude": 1}))


class TestSeoEncoding(unittest.TestCase):
    """Test SEO values and the SEO image policy."""

    RAW = '{"title": "Tomatoes", "description": "All about tomatoes", "imagePrompt": "A basket of tomatoes"}'

    def setUp(self):
        self.asset_generator = Mock()
        self.asset_generator.generate.return_value = [AssetRef(asset_id="img-1", title="A basket of tomatoes")]

    def test_seo_without_asset_generation(self):
        codec = ValueCodec(PluginSettings(seo_generate_asset=False), self.asset_generator)

        seo = codec.encode("seo", self.RAW)

        self.assertEqual(seo, {
            "title": "Tomatoes",
            "description": "All about tomatoes",
            "twitter_card": "summary_large_image",
            "no_index": False,
        })
        self.asset_generator.generate.assert_not_called()

    def test_seo_with_asset_generation(self):
        codec = ValueCodec(PluginSettings(seo_generate_asset=True), self.asset_generator)

        seo = codec.encode("seo", self.RAW, locale="it", resolution="1792x1024", field_name="seo")

        self.assertEqual(seo["image"], "img-1")
        self.asset_generator.generate.assert_called_once_with(
            "A basket of tomatoes", count=1, resolution="1792x1024", locale="it", field_name="seo"
        )

    def test_seo_improve_keeps_image_id(self):
        codec = ValueCodec(PluginSettings(seo_generate_asset=True), self.asset_generator)

        seo = codec.encode("seo", '{"title": "T", "description": "D", "image": "old-img"}', is_improve=True)

        self.assertEqual(seo["image"], "old-img")
        self.asset_generator.generate.assert_not_called()

    def test_seo_requires_object(self):
        codec = ValueCodec(PluginSettings())

        with self.assertRaises(MalformedResponseError):
            codec.encode("seo", '["title"]')


if __name__ == '__main__':
    unittest.main()
