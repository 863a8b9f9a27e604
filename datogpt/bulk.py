"""
Whole-record generation for DatoGPT.

``BulkOrchestrator.run_all`` fills (or improves) every eligible field of a
record, one field at a time, in the order the fields appear in the editor.
Fields are processed strictly in sequence: every field is generated against a
fresh snapshot of the form, so later fields see the values written for
earlier ones, never the other way round.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .cms import BaseRecordAccessor
from .config import PluginSettings, config
from .errors import DatoGPTError
from .generation import FieldValueGenerationEngine
from .models import BlockInfo, FieldSchema, FieldsetSchema, GenerationContext
from .models.values import is_localized, locale_slot

ASSET_FIELD_TYPES = ("file", "gallery")


def field_order_key(field: FieldSchema, fieldsets: Dict[str, FieldsetSchema]) -> Tuple[int, int, int]:
    """
    Sort key placing fields outside any fieldset first, then fieldsets by
    position, then fields by position within their group.
    """
    fieldset = fieldsets.get(field.fieldset_id) if field.fieldset_id else None
    if fieldset is None:
        return (0, 0, field.position)
    return (1, fieldset.position, field.position)


def ordered_fields(record: BaseRecordAccessor) -> List[FieldSchema]:
    fieldsets = {fieldset.id: fieldset for fieldset in record.list_fieldsets()}
    return sorted(record.list_fields(), key=lambda field: field_order_key(field, fieldsets))


def field_path(field: FieldSchema, locale: str) -> str:
    """Path of the field's slot for ``locale`` (the bare field when not localized)."""
    return f"{field.api_key}.{locale}" if field.localized else field.api_key


def current_slot(record: BaseRecordAccessor, field: FieldSchema, form_values: Dict, locale: str):
    """The value of ``field`` in ``locale`` as seen in ``form_values``."""
    value = form_values.get(field.api_key)
    if not field.localized:
        return value
    if is_localized(value, record.locales()):
        return locale_slot(value, locale, record.locales())
    return None


def build_field_context(
    record: BaseRecordAccessor,
    field: FieldSchema,
    instruction: str,
    is_improve: bool,
    form_values: Dict,
    resolution: Optional[str] = None
) -> GenerationContext:
    """
    Top-level generation context for one field of ``record``.

    Rich-text fields get an auto-selecting block descriptor over their
    permitted block models.
    """
    fieldsets = {fieldset.id: fieldset for fieldset in record.list_fieldsets()}
    fieldset = fieldsets.get(field.fieldset_id) if field.fieldset_id else None
    descriptor = field.to_descriptor()
    block_info = None
    if field.field_type == "rich_text":
        block_info = BlockInfo.auto(field.api_key, descriptor.available_blocks())
    return GenerationContext(
        prompt=instruction,
        field_type=field.field_type,
        field_info=descriptor,
        locale=record.current_locale,
        is_improve=is_improve,
        block_level=0,
        block_info=block_info,
        fieldset_info=fieldset.to_info() if fieldset else None,
        model_name=record.model_name,
        form_values=form_values,
        resolution=resolution or config.default_resolution
    )


class BulkOrchestrator:
    """
    Generates or improves all eligible fields of a record.
    """

    def __init__(self, engine: FieldValueGenerationEngine, settings: PluginSettings, resolution: Optional[str] = None):
        """
        Initialize the orchestrator.

        Args:
            engine: Engine used for every field
            settings: Plugin policy
            resolution: Image resolution for asset fields (defaults to config value)
        """
        self.engine = engine
        self.settings = settings
        self.resolution = resolution or config.default_resolution

    def eligible_fields(self, record: BaseRecordAccessor, is_improve: bool) -> List[FieldSchema]:
        """Fields processed by a run, in processing order."""
        allowed = self.settings.improve_value_fields if is_improve else self.settings.generate_value_fields
        eligible = []
        for field in ordered_fields(record):
            if field.field_type in ASSET_FIELD_TYPES:
                if not self.settings.generate_assets_on_sidebar_bulk_generation:
                    continue
            elif field.field_type not in allowed:
                continue
            eligible.append(field)
        return eligible

    def run_all(
        self,
        record: BaseRecordAccessor,
        instruction: str,
        is_improve: bool = False,
        on_start: Optional[Callable[[str, str], None]] = None,
        on_complete: Optional[Callable[[str, str], None]] = None
    ) -> List[str]:
        """
        Generate (or improve) every eligible field of ``record``.

        Each result is written to the current locale's slot as soon as it is
        ready. The first failure aborts the run; fields written before it
        keep their new values.

        Args:
            record: The record being edited
            instruction: Natural-language instruction for every field
            is_improve: Improve existing values instead of generating new ones
            on_start: Called with (field label, locale) before each field
            on_complete: Called with (field label, locale) after each field

        Returns:
            Paths written, in order
        """
        # SEO images are never generated during a bulk run.
        run_engine = self.engine.with_settings(self.settings.model_copy(update={"seo_generate_asset": False}))
        locale = record.current_locale
        written: List[str] = []

        for field in self.eligible_fields(record, is_improve):
            label = field.label or field.api_key
            path = field_path(field, locale)
            form_values = record.form_values()
            context = build_field_context(record, field, instruction, is_improve, form_values, self.resolution)
            current = current_slot(record, field, form_values, locale)

            if on_start:
                on_start(label, locale)
            logging.info(f"{'Improving' if is_improve else 'Generating'} {field.api_key} ({field.field_type})")

            record.disable_field(path, True)
            try:
                value = run_engine.generate(context, current)
            except DatoGPTError as e:
                record.alert(str(e))
                raise
            finally:
                record.disable_field(path, False)

            if value is None:
                logging.info(f"Nothing generated for {field.api_key}, leaving it unchanged")
            else:
                record.set_field_value(path, value)
                written.append(path)

            if on_complete:
                on_complete(label, locale)

        return written
