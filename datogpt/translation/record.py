"""
Whole-record translation.
"""

import logging
from typing import Callable, List, Optional, Tuple

from ..cms import BaseRecordAccessor
from ..config import PluginSettings
from ..models.values import is_empty_value, is_localized
from .engine import TranslationEngine


class RecordTranslator:
    """
    Translates every localized field of a record from one locale into the others.
    """

    def __init__(self, engine: TranslationEngine, settings: PluginSettings):
        self.engine = engine
        self.settings = settings

    def translate_record(
        self,
        record: BaseRecordAccessor,
        source_locale: Optional[str] = None,
        target_locales: Optional[List[str]] = None,
        on_start: Optional[Callable[[str, str], None]] = None,
        on_complete: Optional[Callable[[str, str], None]] = None
    ) -> List[Tuple[str, str]]:
        """
        Translate the record's localized fields.

        Fields are processed in position order and, per field, target locales
        one after another. Each translation is written to ``api_key.locale``
        as soon as it completes.

        Args:
            record: The record being edited
            source_locale: Locale to translate from (defaults to the editor's current locale)
            target_locales: Locales to translate into (defaults to every other locale)
            on_start: Called with (field label, locale) before each translation
            on_complete: Called with (field label, locale) after each translation

        Returns:
            The (api_key, locale) pairs that were written
        """
        if not self.settings.translate_whole_record:
            logging.info("Whole-record translation is disabled")
            return []

        locales = record.locales()
        source = source_locale or record.current_locale
        targets = target_locales if target_locales is not None else [loc for loc in locales if loc != source]

        written: List[Tuple[str, str]] = []
        for field in sorted(record.list_fields(), key=lambda f: f.position):
            if not field.localized or field.field_type not in self.settings.translation_fields:
                continue
            value = record.get_field_value(field.api_key)
            if not is_localized(value, locales) or is_empty_value(value.get(source)):
                continue

            label = field.label or field.api_key
            for locale in targets:
                if locale == source:
                    continue
                if on_start:
                    on_start(label, locale)
                logging.info(f"Translating {field.api_key} from {source} to {locale}")
                translated = self.engine.translate(value[source], field.field_type, source, locale, field_name=label)
                record.set_field_value(f"{field.api_key}.{locale}", translated)
                written.append((field.api_key, locale))
                if on_complete:
                    on_complete(label, locale)

        return written
