"""
Tests for field and whole-record translation.
"""

import json
import unittest
from unittest.mock import Mock, patch

from datogpt.cms import InMemoryRecord, InMemorySchema
from datogpt.config import PluginSettings
from datogpt.errors import GenerationError, OracleError
from datogpt.models import FieldSchema, ItemTypeInfo
from datogpt.prompts import PromptBuilder
from datogpt.translation import RecordTranslator, TranslationEngine


def make_oracle(*responses):
    oracle = Mock()
    oracle.complete.side_effect = list(responses)
    return oracle


def purposes(oracle):
    return [call.kwargs["purpose"] for call in oracle.complete.call_args_list]


def make_schema():
    schema = InMemorySchema()
    schema.add_item_type(
        ItemTypeInfo(id="hero", name="Hero", api_key="hero"),
        [
            FieldSchema(api_key="heading", label="Heading", field_type="single_line", position=1),
            FieldSchema(api_key="subtitle", label="Subtitle", field_type="single_line", position=2),
            FieldSchema(api_key="rating", label="Rating", field_type="integer", position=3),
        ]
    )
    return schema


class TestTranslationEngine(unittest.TestCase):
    """Test translating single locale slots."""

    def setUp(self):
        self.schema = make_schema()
        self.prompts = PromptBuilder(locale_names={"it": "Italian", "fr": "French"})

    def engine(self, oracle):
        return TranslationEngine(oracle, self.schema, self.prompts)

    def test_seo_single_call_keeps_other_keys(self):
        oracle = make_oracle('{"title": "Un", "description": "Deux"}')
        seo = {"title": "A", "description": "B", "image": "img-1", "twitter_card": "summary", "no_index": False}

        value = self.engine(oracle).translate(seo, "seo", "en", "fr")

        self.assertEqual(value, {
            "title": "Un",
            "description": "Deux",
            "image": "img-1",
            "twitter_card": "summary",
            "no_index": False,
        })
        self.assertEqual(purposes(oracle), ["translate_seo"])
        prompt = oracle.complete.call_args[0][0]
        self.assertIn('{"title": "A", "description": "B"}', prompt)
        self.assertNotIn("img-1", prompt)
        self.assertIn("French", prompt)
        self.assertEqual(seo["title"], "A")

    def test_untranslatable_types_returned_as_is(self):
        oracle = make_oracle()
        engine = self.engine(oracle)

        self.assertEqual(engine.translate(42, "integer", "en", "it"), 42)
        self.assertEqual(engine.translate({"latitude": 1.0}, "map", "en", "it"), {"latitude": 1.0})
        self.assertEqual(engine.translate("", "single_line", "en", "it"), "")
        self.assertIsNone(engine.translate(None, "textarea", "en", "it"))
        oracle.complete.assert_not_called()

    def test_text_strips_quotes(self):
        oracle = make_oracle('"Pomodori a luglio"')

        value = self.engine(oracle).translate("Tomatoes in July", "single_line", "en", "it", field_name="Title")

        self.assertEqual(value, "Pomodori a luglio")
        self.assertEqual(purposes(oracle), ["translate"])
        self.assertEqual(oracle.complete.call_args.kwargs["field_name"], "Title")
        self.assertIn("Tomatoes in July", oracle.complete.call_args[0][0])

    def test_structured_text_single_call_and_block_positions(self):
        value = [
            {"id": "n1", "type": "heading", "level": 1, "children": [{"text": "Hello"}]},
            {"id": "b1", "type": "block", "blockModelId": "hero", "children": [{"text": ""}],
             "heading": "Hi", "subtitle": "There", "rating": 5},
            {"id": "n2", "type": "paragraph", "children": [{"text": "World", "marks": ["strong"]}]},
        ]
        oracle = make_oracle(json.dumps(["Ciao", "Mondo"]), "Salve", "Là")

        translated = self.engine(oracle).translate(value, "structured_text", "en", "it")

        self.assertEqual(translated, [
            {"type": "heading", "level": 1, "children": [{"text": "Ciao"}]},
            {"type": "block", "blockModelId": "hero", "children": [{"text": ""}],
             "heading": "Salve", "subtitle": "Là", "rating": 5},
            {"type": "paragraph", "children": [{"text": "Mondo", "marks": ["strong"]}]},
        ])
        self.assertEqual(purposes(oracle), ["translate_text", "translate", "translate"])
        self.assertIn('["Hello", "World"]', oracle.complete.call_args_list[0][0][0])

    def test_structured_text_length_mismatch(self):
        value = [{"type": "paragraph", "children": [{"text": "One"}, {"text": "Two"}]}]
        oracle = make_oracle(json.dumps(["Uno"]))

        with self.assertRaises(GenerationError) as raised:
            self.engine(oracle).translate(value, "structured_text", "en", "it", field_name="Body")

        self.assertEqual(raised.exception.field_name, "Body")

    def test_structured_text_malformed_json(self):
        value = [{"type": "paragraph", "children": [{"text": "One"}]}]
        oracle = make_oracle("Uno")

        with self.assertRaises(GenerationError):
            self.engine(oracle).translate(value, "structured_text", "en", "it")

    def test_rich_text_blocks_translated_by_schema(self):
        blocks = [{"itemTypeId": "hero", "itemId": "9", "heading": "Hi", "subtitle": "There", "legacy": "x"}]
        oracle = make_oracle("Salve", "Là")

        translated = self.engine(oracle).translate(blocks, "rich_text", "en", "it")

        self.assertEqual(translated, [
            {"itemTypeId": "hero", "heading": "Salve", "subtitle": "Là", "legacy": "x"}
        ])
        self.assertEqual(len(oracle.complete.call_args_list), 2)
        self.assertEqual(blocks[0]["itemId"], "9")

    def test_block_bookkeeping_keys_are_not_fields(self):
        blocks = [{"itemTypeId": "hero", "blockModelId": "hero", "originalIndex": 1, "type": "block", "heading": "Hi"}]
        oracle = make_oracle("Salve")

        with patch("datogpt.translation.engine.logging.warning") as warning:
            translated = self.engine(oracle).translate(blocks, "rich_text", "en", "it")

        self.assertEqual(translated, [
            {"itemTypeId": "hero", "blockModelId": "hero", "originalIndex": 1, "type": "block", "heading": "Salve"}
        ])
        warning.assert_not_called()
        self.assertEqual(purposes(oracle), ["translate"])

    def test_oracle_failure_wrapped(self):
        oracle = Mock()
        oracle.complete.side_effect = OracleError("connection refused")

        with self.assertRaises(GenerationError) as raised:
            self.engine(oracle).translate("Hello", "single_line", "en", "it", field_name="Title")

        self.assertIn("connection refused", str(raised.exception))


class TestRecordTranslator(unittest.TestCase):
    """Test whole-record translation."""

    def setUp(self):
        self.fields = [
            FieldSchema(api_key="count", label="Count", field_type="integer", position=2, localized=True),
            FieldSchema(api_key="title", label="Title", field_type="single_line", position=1, localized=True),
            FieldSchema(api_key="slug", label="Slug", field_type="slug", position=3),
            FieldSchema(api_key="notes", label="Notes", field_type="textarea", position=4, localized=True),
        ]
        self.values = {
            "title": {"en": "Hello", "it": "", "fr": ""},
            "count": {"en": 3},
            "slug": "hello",
            "notes": {"it": "Solo italiano"},
        }

    def make_record(self):
        return InMemoryRecord(self.fields, self.values, locales=["en", "it", "fr"])

    def test_translates_localized_fields_in_position_order(self):
        oracle = make_oracle("Ciao", "Bonjour")
        translator = RecordTranslator(TranslationEngine(oracle, InMemorySchema()), PluginSettings())
        record = self.make_record()
        started = []

        written = translator.translate_record(record, on_start=lambda label, locale: started.append((label, locale)))

        self.assertEqual(written, [("title", "it"), ("title", "fr"), ("count", "it"), ("count", "fr")])
        self.assertEqual(record.values["title"], {"en": "Hello", "it": "Ciao", "fr": "Bonjour"})
        self.assertEqual(record.values["count"], {"en": 3, "it": 3, "fr": 3})
        self.assertEqual(record.values["slug"], "hello")
        self.assertEqual(started[0], ("Title", "it"))
        self.assertEqual(purposes(oracle), ["translate", "translate"])

    def test_explicit_source_and_targets(self):
        oracle = make_oracle("Italian only")
        translator = RecordTranslator(TranslationEngine(oracle, InMemorySchema()), PluginSettings())
        record = self.make_record()

        written = translator.translate_record(record, source_locale="it", target_locales=["en"])

        # The empty Italian title is not translated over the English one
        self.assertEqual(written, [("notes", "en")])
        self.assertEqual(record.values["notes"]["en"], "Italian only")
        self.assertEqual(record.values["title"]["en"], "Hello")

    def test_disabled_by_policy(self):
        oracle = make_oracle()
        translator = RecordTranslator(
            TranslationEngine(oracle, InMemorySchema()), PluginSettings(translate_whole_record=False)
        )

        self.assertEqual(translator.translate_record(self.make_record()), [])
        oracle.complete.assert_not_called()

    def test_fields_outside_translation_policy_skipped(self):
        oracle = make_oracle("Ciao", "Bonjour")
        translator = RecordTranslator(
            TranslationEngine(oracle, InMemorySchema()), PluginSettings(translation_fields=["single_line"])
        )

        written = translator.translate_record(self.make_record())

        self.assertEqual(written, [("title", "it"), ("title", "fr")])


if __name__ == '__main__':
    unittest.main()
