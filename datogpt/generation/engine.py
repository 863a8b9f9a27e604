"""
Recursive field-value generation for DatoGPT.

``FieldValueGenerationEngine.generate`` is the single entry point for every
field, block and nested block. It dispatches on the field type carried by the
context:

- ``file`` / ``gallery``: image prompt + asset generation
- ``structured_text``: long-form document, block selection, block placement
- any field type with a ``block_info``: block instances, field by field
- everything else: meta-prompt + value prompt, parsed by the value codec

Nested blocks re-enter ``generate`` with ``block_level + 1``. A block-scoped
call above ``block_generate_depth`` returns None without calling the oracle.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from ..cms import BaseSchemaProvider
from ..config import PluginSettings
from ..errors import AssetStoreError, GenerationError, MalformedResponseError, OracleError
from ..models import BlockInfo, GenerationContext, ParentBlockInfo
from ..models.values import (
    block_fields,
    block_model_id,
    is_empty_value,
    is_node_sequence,
)
from ..prompts import Prompt, PromptBuilder
from .assets import AssetGenerator
from .codec import ValueCodec, parse_json_response
from .structured import (
    ORIGINAL_INDEX_KEY,
    extract_text_values,
    html_to_structured_text,
    reconstruct,
    remove_ids,
    split_blocks,
    splice_blocks,
    strip_original_index,
    to_block_node,
)

LONG_FORM_SUFFIX = " make the output very long and with several html tags being used"


class FieldValueGenerationEngine:
    """
    Generates or improves a field value, recursing into blocks.
    """

    def __init__(
        self,
        oracle,
        schema: BaseSchemaProvider,
        settings: PluginSettings,
        prompt_builder: Optional[PromptBuilder] = None,
        codec: Optional[ValueCodec] = None,
        asset_generator: Optional[AssetGenerator] = None,
        on_step: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize the engine.

        Args:
            oracle: Client exposing ``complete(prompt, purpose, field_name)``
            schema: Field schema of block models
            settings: Plugin policy
            prompt_builder: Prompt assembly (defaults to the built-in prompts)
            codec: Response parsing (defaults to a codec sharing ``asset_generator``)
            asset_generator: Image generation for file, gallery and SEO fields
            on_step: Optional progress callback for long structured-text runs
        """
        self.oracle = oracle
        self.schema = schema
        self.settings = settings
        self.prompts = prompt_builder or PromptBuilder()
        self.asset_generator = asset_generator
        self.codec = codec or ValueCodec(settings, asset_generator)
        self.on_step = on_step

    def with_settings(self, settings: PluginSettings) -> "FieldValueGenerationEngine":
        """An engine sharing this one's collaborators but reading ``settings``."""
        return FieldValueGenerationEngine(
            self.oracle,
            self.schema,
            settings,
            prompt_builder=self.prompts,
            codec=ValueCodec(settings, self.codec.asset_generator),
            asset_generator=self.asset_generator,
            on_step=self.on_step
        )

    def generate(self, context: GenerationContext, current_value: Any = None) -> Any:
        """
        Generate (or improve, when ``context.is_improve``) a field value.

        Args:
            context: Where and what to generate
            current_value: The field's current value (its locale slot for localized fields)

        Returns:
            The new value; None for unsupported field types and for block
            generation past the configured depth; the unchanged value for
            policy no-ops on asset fields

        Raises:
            GenerationError: If the oracle fails or returns an unparseable answer
        """
        field_type = context.field_type
        if field_type == "file":
            return self._generate_file(context, current_value)
        if field_type == "gallery":
            return self._generate_gallery(context, current_value)
        if field_type == "structured_text":
            if context.is_improve:
                return self._improve_structured_text(context, current_value)
            return self._generate_structured_text(context)
        if context.block_info is not None:
            return self._generate_blocks(context, current_value)
        return self._generate_default(context, current_value)

    # Oracle helpers

    def _step(self, message: str) -> None:
        logging.info(message)
        if self.on_step:
            self.on_step(message)

    def _complete(self, prompt: Prompt, purpose: str, context: GenerationContext) -> str:
        try:
            return self.oracle.complete(prompt.render(), purpose=purpose, field_name=context.field_info.api_key)
        except OracleError as e:
            raise GenerationError(context.field_info.name, None, e) from e

    def _complete_json(self, prompt: Prompt, purpose: str, context: GenerationContext, expect: type = list) -> Any:
        raw = self._complete(prompt, purpose, context)
        try:
            parsed = parse_json_response(raw)
        except MalformedResponseError as e:
            raise GenerationError(context.field_info.name, raw, e) from e
        if not isinstance(parsed, expect):
            error = MalformedResponseError(f"Expected a JSON {expect.__name__}", raw_response=raw)
            raise GenerationError(context.field_info.name, raw, error)
        return parsed

    # Default fields

    def _generate_default(self, context: GenerationContext, current_value: Any) -> Any:
        field_type = context.field_type
        if not self.prompts.registry.has_contract(field_type):
            logging.info(f"No output format for field type {field_type}, skipping {context.field_info.api_key}")
            return None

        if context.is_improve:
            current = self.codec.serialize(field_type, current_value)
            raw = self._complete(self.prompts.improve_prompt(context, current), "improve", context)
        else:
            meta_prompt = self._complete(self.prompts.meta_prompt(context), "meta_prompt", context)
            raw = self._complete(self.prompts.value_prompt(context, meta_prompt), "value", context)

        try:
            return self.codec.encode(
                field_type,
                raw,
                locale=context.locale,
                resolution=context.resolution,
                is_improve=context.is_improve,
                field_name=context.field_info.api_key
            )
        except (MalformedResponseError, OracleError, AssetStoreError) as e:
            raise GenerationError(context.field_info.name, raw, e) from e

    # Asset fields

    def _assets_blocked(self, context: GenerationContext) -> bool:
        return context.block_level > 0 and self.settings.block_assets_generation == "null"

    def _generate_file(self, context: GenerationContext, current_value: Any) -> Any:
        if self._assets_blocked(context):
            logging.info(f"Asset generation inside blocks is disabled, keeping {context.field_info.api_key}")
            return current_value
        if context.is_improve:
            # Existing images are never regenerated on improve.
            return current_value
        asset = self._generate_image(context)
        return asset if asset is not None else current_value

    def _generate_gallery(self, context: GenerationContext, current_value: Any) -> Any:
        if self._assets_blocked(context):
            logging.info(f"Asset generation inside blocks is disabled, keeping {context.field_info.api_key}")
            return current_value
        asset = self._generate_image(context)
        if asset is None:
            return current_value
        existing = list(current_value) if isinstance(current_value, list) else []
        return existing + [asset]

    def _generate_image(self, context: GenerationContext) -> Optional[Dict[str, Any]]:
        if self.asset_generator is None:
            logging.warning(f"No asset generator configured, cannot generate {context.field_info.api_key}")
            return None
        image_prompt = self._complete(self.prompts.meta_prompt(context, for_image=True), "image_prompt", context)
        try:
            assets = self.asset_generator.generate(
                image_prompt,
                count=1,
                resolution=context.resolution,
                locale=context.locale,
                field_name=context.field_info.api_key
            )
        except (OracleError, AssetStoreError) as e:
            raise GenerationError(context.field_info.name, image_prompt, e) from e
        if not assets:
            return None
        return assets[0].to_field_value()

    # Structured text

    def _generate_structured_text(self, context: GenerationContext) -> List[Dict[str, Any]]:
        self._step(f"Writing the base document for {context.field_info.name}")
        document_context = context.derive(
            prompt=context.prompt + LONG_FORM_SUFFIX,
            field_type="wysiwyg",
            field_info=context.field_info.model_copy(update={"validators": None}),
            block_info=None
        )
        html = self._generate_default(document_context, "") or ""
        nodes = html_to_structured_text(html)

        available = context.field_info.available_blocks()
        if not available:
            return nodes

        self._step("Choosing blocks to insert")
        catalog = [self.schema.get_item_type(item_type_id) for item_type_id in available]
        selection = self._complete_json(
            self.prompts.block_selection_prompt(context.prompt, catalog, document=html),
            "block_selection",
            context
        )

        blocks: List[Dict[str, Any]] = []
        for block_info, instruction in self._selected_blocks(selection, catalog):
            self._step(f"Generating a {block_info.name} block")
            block_context = context.derive(
                prompt=instruction,
                field_type="rich_text",
                block_info=block_info,
                parent_block_info=None
            )
            result = self.generate(block_context, blocks)
            if result is not None:
                blocks = result

        if not blocks:
            return nodes

        self._step("Placing blocks in the document")
        block_nodes = [to_block_node(block) for block in blocks]
        merged = self._complete_json(self.prompts.block_merge_prompt(nodes, block_nodes), "block_merge", context)
        if not is_node_sequence(merged):
            error = MalformedResponseError("Expected a JSON array of nodes")
            raise GenerationError(context.field_info.name, json.dumps(merged), error)
        return merged

    def _improve_structured_text(self, context: GenerationContext, current_value: Any) -> Any:
        if is_empty_value(current_value):
            return current_value
        if not is_node_sequence(current_value):
            logging.warning(f"{context.field_info.api_key} is not a node sequence, leaving it unchanged")
            return current_value

        skeleton, blocks = split_blocks(remove_ids(current_value))

        texts = extract_text_values(skeleton)
        if texts:
            self._step(f"Improving the text of {context.field_info.name}")
            revised = self._complete_json(
                self.prompts.improve_text_array_prompt(texts, context.prompt, context.locale),
                "improve_text",
                context
            )
            try:
                skeleton = reconstruct(skeleton, revised)
            except MalformedResponseError as e:
                raise GenerationError(context.field_info.name, json.dumps(revised), e) from e

        improved_blocks = []
        for block in blocks:
            self._step("Improving an embedded block")
            fields = strip_original_index(block)
            improved = self._improve_block_fields(context, block_model_id(block), fields)
            improved[ORIGINAL_INDEX_KEY] = block[ORIGINAL_INDEX_KEY]
            improved_blocks.append(improved)

        return splice_blocks(skeleton, improved_blocks)

    # Blocks

    def _generate_blocks(self, context: GenerationContext, current_value: Any) -> Any:
        if context.block_level > self.settings.block_generate_depth:
            logging.info(
                f"Block depth {context.block_level} exceeds {self.settings.block_generate_depth}, "
                f"not generating {context.field_info.api_key}"
            )
            return None
        if context.is_improve:
            return self._improve_blocks(context, current_value)
        if context.block_info.auto_select:
            return self._auto_select_blocks(context, current_value)
        return self._generate_block_instance(context, current_value)

    def _selected_blocks(self, selection: List[Any], catalog) -> List[Any]:
        """(BlockInfo, instruction) for each valid entry of a block-selection answer."""
        by_id = {item.id: item for item in catalog}
        by_api_key = {item.api_key: item for item in catalog}
        selected = []
        for choice in selection:
            if not isinstance(choice, dict):
                logging.warning(f"Ignoring block selection entry {choice!r}")
                continue
            item = by_id.get(choice.get("blockModelId")) or by_api_key.get(choice.get("apiKey"))
            if item is None:
                logging.warning(f"Ignoring unknown block selection {choice.get('blockModelId') or choice.get('apiKey')}")
                continue
            block_info = BlockInfo(name=item.name, api_key=item.api_key, block_model_id=item.id)
            selected.append((block_info, choice.get("prompt") or ""))
        return selected

    def _auto_select_blocks(self, context: GenerationContext, current_value: Any) -> List[Dict[str, Any]]:
        target = list(current_value) if isinstance(current_value, list) else []
        available = context.block_info.available_blocks
        if not available:
            return target

        catalog = [self.schema.get_item_type(item_type_id) for item_type_id in available]
        selection = self._complete_json(
            self.prompts.block_selection_prompt(context.prompt, catalog),
            "block_selection",
            context
        )
        for block_info, instruction in self._selected_blocks(selection, catalog):
            block_context = context.derive(
                prompt=instruction or context.prompt,
                block_info=block_info,
                parent_block_info=None
            )
            result = self.generate(block_context, target)
            if result is not None:
                target = result
        return target

    def _generate_block_instance(self, context: GenerationContext, current_value: Any) -> Optional[List[Dict[str, Any]]]:
        """
        Append one generated instance of ``context.block_info`` to ``current_value``.

        Returns None, appending nothing, when a nested rich-text field of the
        block lies past the depth limit.
        """
        block_info = context.block_info
        model_id = block_info.block_model_id
        generated: Dict[str, Any] = {}

        for field in self.schema.list_fields(model_id):
            descriptor = field.to_descriptor()
            parent = ParentBlockInfo(
                name=block_info.name,
                api_key=block_info.api_key,
                generated_fields=dict(generated)
            )
            if field.field_type == "rich_text":
                field_context = context.derive(
                    field_type="rich_text",
                    field_info=descriptor,
                    block_level=context.block_level + 1,
                    block_info=BlockInfo.auto(field.api_key, descriptor.available_blocks()),
                    parent_block_info=parent
                )
                value = self.generate(field_context, [])
                if value is None:
                    logging.info(f"Dropping {block_info.api_key} block, {field.api_key} is past the depth limit")
                    return None
                generated[field.api_key] = value
            else:
                field_context = context.derive(
                    prompt=block_field_prompt(context.prompt, block_info.name, descriptor.name),
                    field_type=field.field_type,
                    field_info=descriptor,
                    block_level=context.block_level + 1,
                    block_info=None,
                    parent_block_info=parent
                )
                generated[field.api_key] = self.generate(field_context, None)

        instance = {"itemTypeId": model_id}
        instance.update(generated)
        existing = list(current_value) if isinstance(current_value, list) else []
        return existing + [instance]

    def _improve_blocks(self, context: GenerationContext, current_value: Any) -> List[Dict[str, Any]]:
        if not current_value or not isinstance(current_value, list):
            return []
        improved = []
        for block in current_value:
            if not isinstance(block, dict) or not block_model_id(block):
                improved.append(block)
                continue
            improved.append(self._improve_block_fields(context, block_model_id(block), block))
        return improved

    def _improve_block_fields(self, context: GenerationContext, model_id: str, block: Dict[str, Any]) -> Dict[str, Any]:
        """Improve every content field of one block instance, in its key order."""
        item_type = self.schema.get_item_type(model_id)
        schema_fields = {field.api_key: field for field in self.schema.list_fields(model_id)}
        improved = dict(block)
        generated: Dict[str, Any] = {}

        for key, value in block_fields(block).items():
            field = schema_fields.get(key)
            if field is None:
                logging.warning(f"Block {item_type.api_key} has no field {key}, leaving it unchanged")
                continue
            descriptor = field.to_descriptor()
            parent = ParentBlockInfo(name=item_type.name, api_key=item_type.api_key, generated_fields=dict(generated))
            if field.field_type == "rich_text":
                field_context = context.derive(
                    field_type="rich_text",
                    field_info=descriptor,
                    block_level=context.block_level + 1,
                    block_info=BlockInfo.auto(key, descriptor.available_blocks()),
                    parent_block_info=parent
                )
                new_value = self.generate(field_context, value)
            else:
                field_context = context.derive(
                    prompt=block_field_prompt(context.prompt, item_type.name, descriptor.name),
                    field_type=field.field_type,
                    field_info=descriptor,
                    block_level=context.block_level + 1,
                    block_info=None,
                    parent_block_info=parent
                )
                new_value = self.generate(field_context, value)
            if new_value is None:
                new_value = value
            improved[key] = new_value
            generated[key] = new_value

        return improved


def block_field_prompt(prompt: str, block_name: str, field_name: str) -> str:
    return f"{prompt} that is part of a {block_name} block, and is a {field_name} field"
