"""
Single-field actions for DatoGPT.

These are the triggers behind the buttons under a field: generate, improve,
translate, generate alt text. Every action locks the field while it runs and
unlocks it afterwards, whether it succeeded or not; failures are shown to the
editor and then re-raised.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

from .bulk import build_field_context, current_slot, field_path
from .cms import BaseRecordAccessor
from .config import PluginSettings, config
from .errors import DatoGPTError, UnsupportedAssetError
from .generation import AltTextGenerator, FieldValueGenerationEngine
from .models import FieldSchema
from .models.values import asset_list, is_empty_value, is_localized
from .translation import NO_TRANSLATION_FIELD_TYPES, TranslationEngine

MEDIA_FIELD_TYPES = ("file", "gallery")


class FieldActions:
    """
    Runs generation, translation and alt-text actions on one record's fields.
    """

    def __init__(
        self,
        record: BaseRecordAccessor,
        engine: FieldValueGenerationEngine,
        translator: TranslationEngine,
        settings: PluginSettings,
        alt_generator: Optional[AltTextGenerator] = None
    ):
        """
        Initialize the field actions.

        Args:
            record: The record being edited
            engine: Generation engine
            translator: Translation engine
            settings: Plugin policy
            alt_generator: Alt-text generator for media fields
        """
        self.record = record
        self.engine = engine
        self.translator = translator
        self.settings = settings
        self.alt_generator = alt_generator

    def _field(self, api_key: str) -> FieldSchema:
        field = self.record.field_schema(api_key)
        if field is None:
            raise KeyError(f"Unknown field: {api_key}")
        return field

    def _run(self, path: str, action: Callable[[], Any]) -> Any:
        self.record.disable_field(path, True)
        try:
            return action()
        except DatoGPTError as e:
            self.record.alert(str(e))
            raise
        finally:
            self.record.disable_field(path, False)

    def _primary_locale(self) -> str:
        return self.record.locales()[0]

    def _translatable(self, field: FieldSchema) -> bool:
        return (
            field.localized
            and len(self.record.locales()) > 1
            and field.field_type not in NO_TRANSLATION_FIELD_TYPES
            and field.field_type in self.settings.translation_fields
        )

    def _localized_value(self, field: FieldSchema) -> Dict[str, Any]:
        """The field's locale mapping; raises DatoGPTError for fields that cannot be translated."""
        if not self._translatable(field):
            raise DatoGPTError(f"The {field.label or field.api_key} field cannot be translated")
        value = self.record.get_field_value(field.api_key)
        return value if is_localized(value, self.record.locales()) else {}

    # Generation

    def generate_field(
        self,
        api_key: str,
        instruction: str,
        is_improve: bool = False,
        resolution: Optional[str] = None
    ) -> Any:
        """
        Generate or improve one field's value in the current locale.

        Args:
            api_key: Field API key
            instruction: Natural-language instruction
            is_improve: Improve the current value instead of generating a new one
            resolution: Image resolution for media fields

        Returns:
            The value written, or None when nothing was generated
        """
        field = self._field(api_key)
        action = "improve" if is_improve else "generate"
        if field.field_type in MEDIA_FIELD_TYPES:
            action = "generate_image"
        if action not in self.available_actions(api_key):
            logging.info(f"{action} is not available for {api_key}")
            return None

        locale = self.record.current_locale
        path = field_path(field, locale)

        def run():
            form_values = self.record.form_values()
            context = build_field_context(
                self.record, field, instruction, is_improve, form_values, resolution or config.default_resolution
            )
            value = self.engine.generate(context, current_slot(self.record, field, form_values, locale))
            if value is not None:
                self.record.set_field_value(path, value)
            return value

        return self._run(path, run)

    # Translation

    def translate_field(self, api_key: str, to_locale: str = "all") -> List[str]:
        """
        Translate the current locale's value into another locale (or all others).

        Nothing is written when the current locale's value is empty.

        Args:
            api_key: Field API key
            to_locale: Target locale, or "all" for every other locale

        Returns:
            Locales written, in order

        Raises:
            DatoGPTError: If the field is not localized or its type is not translated
        """
        field = self._field(api_key)
        value = self._localized_value(field)
        source = self.record.current_locale
        if is_empty_value(value.get(source)):
            logging.info(f"{api_key} has no {source} value, nothing to translate")
            return []
        if to_locale == "all":
            targets = [loc for loc in self.record.locales() if loc != source]
        else:
            targets = [to_locale]

        def run():
            written = []
            for locale in targets:
                translated = self.translator.translate(
                    value[source], field.field_type, source, locale, field_name=field.label or api_key
                )
                self.record.set_field_value(f"{api_key}.{locale}", translated)
                written.append(locale)
            return written

        return self._run(field_path(field, source), run)

    def translate_from(self, api_key: str, from_locale: Optional[str] = None) -> Any:
        """
        Fill the current locale's value by translating another locale's value.

        Nothing is written when the source locale's value is empty.

        Args:
            api_key: Field API key
            from_locale: Source locale (defaults to the primary locale)

        Returns:
            The translated value, or None when there was nothing to translate

        Raises:
            DatoGPTError: If the field is not localized or its type is not translated
        """
        field = self._field(api_key)
        value = self._localized_value(field)
        source = from_locale or self._primary_locale()
        target = self.record.current_locale
        if is_empty_value(value.get(source)):
            logging.info(f"{api_key} has no {source} value, nothing to translate")
            return None
        path = field_path(field, target)

        def run():
            translated = self.translator.translate(
                value[source], field.field_type, source, target, field_name=field.label or api_key
            )
            self.record.set_field_value(path, translated)
            return translated

        return self._run(path, run)

    # Alt text

    def generate_alts(self, api_key: str) -> int:
        """
        Write alt text for every asset of a file or gallery field.

        Assets the vision model cannot describe are skipped with a notice.

        Args:
            api_key: Field API key

        Returns:
            Number of assets that received alt text
        """
        if self.alt_generator is None:
            raise DatoGPTError("Alt text generation is not configured")
        field = self._field(api_key)
        locale = self.record.current_locale
        path = field_path(field, locale)

        def run():
            # Alt texts are set on a copy; the record only sees the final write
            value = copy.deepcopy(current_slot(self.record, field, self.record.form_values(), locale))
            assets = asset_list(value)
            updated = 0
            for asset in assets:
                try:
                    asset["alt"] = self.alt_generator.describe_asset(asset["upload_id"], locale)
                    updated += 1
                except UnsupportedAssetError as e:
                    self.record.notice(f"{e}, it will be ignored")
            if updated:
                self.record.set_field_value(path, value)
            return updated

        return self._run(path, run)

    # Availability

    def available_actions(self, api_key: str) -> List[str]:
        """
        Actions that apply to a field in the current locale.

        Returns:
            A subset of "generate", "improve", "translate_to_all",
            "translate_from_primary", "generate_image", "generate_alt"
        """
        field = self._field(api_key)
        settings = self.settings
        locales = self.record.locales()
        locale = self.record.current_locale
        raw_value = self.record.get_field_value(api_key)
        value = current_slot(self.record, field, {api_key: raw_value}, locale)
        actions: List[str] = []

        if field.field_type in MEDIA_FIELD_TYPES:
            if settings.media_fields_permissions:
                actions.append("generate_image")
            if settings.generate_alts and asset_list(value):
                actions.append("generate_alt")
            return actions

        if field.field_type in settings.generate_value_fields:
            actions.append("generate")
        if field.field_type in settings.improve_value_fields and not is_empty_value(value):
            actions.append("improve")

        translatable = (
            self._translatable(field)
            and is_localized(raw_value, locales)
            and not is_empty_value(raw_value.get(locales[0]))
        )
        if translatable:
            actions.append("translate_to_all" if locale == locales[0] else "translate_from_primary")
        return actions
