"""Field and whole-record translation."""

from .engine import TranslationEngine, NO_TRANSLATION_FIELD_TYPES
from .record import RecordTranslator

__all__ = ["TranslationEngine", "NO_TRANSLATION_FIELD_TYPES", "RecordTranslator"]
