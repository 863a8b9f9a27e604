"""
Tests for image asset generation and alt text.
"""

import unittest
from unittest.mock import Mock

from datogpt.cms import InMemoryAssetStore
from datogpt.errors import OracleError, UnsupportedAssetError
from datogpt.generation import AltTextGenerator, AssetGenerator
from datogpt.generation.assets import asset_filename, kebab_case
from datogpt.models import GeneratedImage, ImageCandidate


def make_oracle():
    oracle = Mock()
    oracle.generate_images.return_value = [
        GeneratedImage(url="https://images.example.com/1.png", revised_prompt="A ripe red tomato on a wooden table"),
    ]
    oracle.fetch_bytes.return_value = b"\x89PNG"
    return oracle


class TestFilenames(unittest.TestCase):
    """Test asset filename derivation."""

    def test_kebab_case(self):
        self.assertEqual(kebab_case("Sunset Over_the Bay"), "sunset-over-the-bay")
        self.assertEqual(kebab_case("camelCaseWords"), "camel-case-words")

    def test_filename_from_prompt(self):
        self.assertEqual(asset_filename("A ripe tomato, on a table!"), "a-ripe-tomato-on-a-table.png")

    def test_filename_is_bounded(self):
        filename = asset_filename("tomato " * 50)

        self.assertTrue(filename.endswith(".png"))
        self.assertLessEqual(len(filename), 104)
        self.assertFalse(filename[:-4].endswith("-"))

    def test_filename_fallback(self):
        self.assertEqual(asset_filename("???"), "generated-image.png")


class TestAssetGenerator(unittest.TestCase):
    """Test generating and storing assets."""

    def setUp(self):
        self.oracle = make_oracle()
        self.store = InMemoryAssetStore()
        self.generator = AssetGenerator(self.oracle, self.store, max_concurrent_images=1)

    def test_generate_stores_each_image(self):
        assets = self.generator.generate("A ripe tomato", count=1, resolution="512x512", locale="it", field_name="cover")

        self.assertEqual(len(assets), 1)
        asset = assets[0]
        self.assertEqual(asset.title, "A ripe tomato")
        self.assertEqual(asset.alt, "A ripe red tomato on a wooden table")

        stored = self.store.assets[asset.asset_id]
        self.assertEqual(stored["filename"], "a-ripe-tomato.png")
        self.assertEqual(stored["data"], b"\x89PNG")
        self.assertEqual(stored["metadata"], {
            "it": {"title": "A ripe tomato", "alt": "A ripe red tomato on a wooden table", "custom_data": {}}
        })
        self.oracle.generate_images.assert_called_once_with("A ripe tomato", n=1, size="512x512", field_name="cover")
        self.oracle.fetch_bytes.assert_called_once_with("https://images.example.com/1.png")

    def test_generate_rejects_unknown_resolution(self):
        with self.assertRaises(ValueError):
            self.generator.generate("A ripe tomato", resolution="640x480")

        self.oracle.generate_images.assert_not_called()

    def test_oracle_failure_propagates(self):
        self.oracle.generate_images.side_effect = OracleError("content policy")

        with self.assertRaises(OracleError):
            self.generator.generate("A ripe tomato")

        self.assertEqual(self.store.assets, {})

    def test_candidates_keep_failed_slots(self):
        image = GeneratedImage(url="https://images.example.com/ok.png", revised_prompt="Revised")
        self.oracle.generate_images.side_effect = [[image], OracleError("rate limited"), [image], []]

        candidates = self.generator.generate_candidates("A ripe tomato", count=4)

        self.assertEqual(len(candidates), 4)
        self.assertEqual([candidate.failed for candidate in candidates], [False, True, False, True])
        self.assertIn("rate limited", candidates[1].error)
        self.assertEqual(candidates[0].url, "https://images.example.com/ok.png")
        self.assertEqual(candidates[2].revised_prompt, "Revised")
        # Nothing is stored until a candidate is picked
        self.assertEqual(self.store.assets, {})
        self.oracle.fetch_bytes.assert_not_called()

    def test_candidates_reject_unknown_count(self):
        with self.assertRaises(ValueError):
            self.generator.generate_candidates("A ripe tomato", count=3)

        with self.assertRaises(ValueError):
            self.generator.generate_candidates("A ripe tomato", count=2, resolution="1x1")

    def test_upload_candidate(self):
        candidate = ImageCandidate(url="https://images.example.com/2.png", revised_prompt="Two tomatoes")

        asset = self.generator.upload_candidate(candidate, "Two tomatoes", locale="en")

        self.assertEqual(asset.alt, "Two tomatoes")
        self.assertIn(asset.asset_id, self.store.assets)
        self.oracle.fetch_bytes.assert_called_once_with("https://images.example.com/2.png")

    def test_upload_failed_candidate(self):
        with self.assertRaises(ValueError):
            self.generator.upload_candidate(ImageCandidate(error="rate limited"), "Two tomatoes")

    def test_created_assets_are_logged(self):
        db = Mock()
        generator = AssetGenerator(self.oracle, self.store, database_manager=db, max_concurrent_images=1)

        asset = generator.generate("A ripe tomato")[0]

        db.log_generated_asset.assert_called_once_with(
            asset.asset_id, "A ripe tomato", "A ripe red tomato on a wooden table", "a-ripe-tomato.png"
        )


class TestAltTextGenerator(unittest.TestCase):
    """Test alt text for stored images."""

    def setUp(self):
        self.oracle = Mock()
        self.oracle.describe_image.return_value = "  A basket of tomatoes \n"
        self.store = InMemoryAssetStore()
        self.store.add_asset("a1", "https://cdn.example.com/a1/basket.JPG", "basket.JPG")
        self.store.add_asset("a2", "https://cdn.example.com/a2/manual.pdf", "manual.pdf")
        self.generator = AltTextGenerator(self.oracle, self.store)

    def test_describe_asset(self):
        alt = self.generator.describe_asset("a1", "en")

        self.assertEqual(alt, "A basket of tomatoes")
        prompt, url = self.oracle.describe_image.call_args[0]
        self.assertEqual(url, "https://cdn.example.com/a1/basket.JPG")
        self.assertTrue(prompt)

    def test_unsupported_format_skips_oracle(self):
        with self.assertRaises(UnsupportedAssetError) as raised:
            self.generator.describe_asset("a2", "en")

        self.assertIn("manual.pdf", str(raised.exception))
        self.oracle.describe_image.assert_not_called()

    def test_empty_description(self):
        self.oracle.describe_image.return_value = "   "

        with self.assertRaises(UnsupportedAssetError):
            self.generator.generate_alt("https://cdn.example.com/a1/basket.png", "en")

    def test_extension_taken_from_url(self):
        with self.assertRaises(UnsupportedAssetError):
            self.generator.generate_alt("https://cdn.example.com/logo.svg?w=200", "en")


if __name__ == '__main__':
    unittest.main()
