"""
Field value translation for DatoGPT.

Walks one locale slot of a field and returns the same value translated into
another locale. Structured text is translated with a single oracle call for
all of its text leaves; embedded blocks are translated field by field using
their own schema.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from ..cms import BaseSchemaProvider
from ..errors import GenerationError, MalformedResponseError, OracleError
from ..generation.codec import parse_json_response, strip_wrapping_quotes
from ..generation.structured import (
    extract_text_values,
    reconstruct,
    remove_ids,
    remove_item_ids,
    split_blocks,
    splice_blocks,
)
from ..models.values import block_fields, block_model_id, is_empty_value
from ..prompts import Prompt, PromptBuilder

# Field types whose values read the same in every language.
NO_TRANSLATION_FIELD_TYPES = frozenset({
    "date_picker",
    "date_time_picker",
    "integer",
    "float",
    "boolean",
    "map",
    "color_picker",
    "file",
    "gallery",
    "link_select",
    "links_select",
    "video",
})


class TranslationEngine:
    """
    Translates field values between locales.
    """

    def __init__(self, oracle, schema: BaseSchemaProvider, prompt_builder: Optional[PromptBuilder] = None):
        """
        Initialize the translation engine.

        Args:
            oracle: Client exposing ``complete(prompt, purpose, field_name)``
            schema: Field schema of block models
            prompt_builder: Prompt assembly (defaults to the built-in prompts)
        """
        self.oracle = oracle
        self.schema = schema
        self.prompts = prompt_builder or PromptBuilder()

    def translate(
        self,
        value: Any,
        field_type: str,
        from_locale: str,
        to_locale: str,
        field_name: Optional[str] = None
    ) -> Any:
        """
        Translate one locale slot of a field.

        Args:
            value: The source locale's value
            field_type: Field editor type
            from_locale: Source locale
            to_locale: Target locale
            field_name: Field label used in error messages and the call log

        Returns:
            The translated value (the input itself for untranslatable types and empty values)

        Raises:
            GenerationError: If the oracle fails or returns an unparseable answer
        """
        if field_type in NO_TRANSLATION_FIELD_TYPES or is_empty_value(value):
            return value

        name = field_name or field_type
        logging.debug(f"Translating {name} ({field_type}) from {from_locale} to {to_locale}")

        if field_type == "seo":
            return self._translate_seo(value, to_locale, name)
        if field_type == "rich_text":
            return self._translate_blocks(value, from_locale, to_locale, name)
        if field_type == "structured_text":
            return self._translate_structured_text(value, from_locale, to_locale, name)
        return self._translate_text(value, field_type, to_locale, name)

    def _complete(self, prompt: Prompt, purpose: str, name: str) -> str:
        try:
            return self.oracle.complete(prompt.render(), purpose=purpose, field_name=name)
        except OracleError as e:
            raise GenerationError(name, None, e) from e

    def _complete_json(self, prompt: Prompt, purpose: str, name: str, expect: type) -> Any:
        raw = self._complete(prompt, purpose, name)
        try:
            parsed = parse_json_response(raw)
        except MalformedResponseError as e:
            raise GenerationError(name, raw, e) from e
        if not isinstance(parsed, expect):
            error = MalformedResponseError(f"Expected a JSON {expect.__name__}", raw_response=raw)
            raise GenerationError(name, raw, error)
        return parsed

    def _translate_text(self, value: Any, field_type: str, to_locale: str, name: str) -> str:
        raw = self._complete(self.prompts.translate_text_prompt(value, to_locale, field_type), "translate", name)
        return strip_wrapping_quotes(raw)

    def _translate_seo(self, value: Dict[str, Any], to_locale: str, name: str) -> Dict[str, Any]:
        source = {"title": value.get("title"), "description": value.get("description")}
        translated = self._complete_json(
            self.prompts.translate_seo_prompt(source, to_locale), "translate_seo", name, expect=dict
        )
        result = dict(value)
        result["title"] = translated.get("title")
        result["description"] = translated.get("description")
        return result

    def _translate_blocks(self, value: Any, from_locale: str, to_locale: str, name: str) -> Any:
        if not isinstance(value, list):
            return value
        blocks = remove_item_ids(value)
        for block in blocks:
            if not isinstance(block, dict) or not block_model_id(block):
                continue
            field_types = {field.api_key: field.field_type for field in self.schema.list_fields(block_model_id(block))}
            for key in block_fields(block):
                if key not in field_types:
                    logging.warning(f"Block {block_model_id(block)} has no field {key}, leaving it untranslated")
                    continue
                block[key] = self.translate(block[key], field_types[key], from_locale, to_locale, field_name=key)
        return blocks

    def _translate_structured_text(self, value: Any, from_locale: str, to_locale: str, name: str) -> Any:
        if not isinstance(value, list):
            return value
        skeleton, blocks = split_blocks(remove_ids(value))

        texts = extract_text_values(skeleton)
        if texts:
            translated = self._complete_json(
                self.prompts.translate_text_array_prompt(texts, to_locale), "translate_text", name, expect=list
            )
            try:
                skeleton = reconstruct(skeleton, translated)
            except MalformedResponseError as e:
                raise GenerationError(name, json.dumps(translated, ensure_ascii=False), e) from e

        translated_blocks: List[Dict[str, Any]] = self._translate_blocks(blocks, from_locale, to_locale, name)
        return splice_blocks(skeleton, translated_blocks)
