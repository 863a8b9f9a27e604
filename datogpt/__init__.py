"""
DatoGPT: LLM-backed content generation for DatoCMS records.

Generates, improves and translates field values (including nested blocks and
structured text) and creates image assets for media fields.
"""

__version__ = "0.1.0"
__author__ = "DatoGPT Project"

# Import main components
from .actions import FieldActions
from .bulk import BulkOrchestrator
from .config import PluginSettings
from .database import DatabaseManager
from .errors import DatoGPTError, GenerationError, MalformedResponseError, OracleError
from .generation import AltTextGenerator, AssetGenerator, FieldValueGenerationEngine, ValueCodec
from .models import GenerationContext
from .oracle import OracleClient
from .prompts import PromptBuilder
from .translation import RecordTranslator, TranslationEngine

__all__ = [
    "FieldActions",
    "BulkOrchestrator",
    "PluginSettings",
    "DatabaseManager",
    "DatoGPTError",
    "GenerationError",
    "MalformedResponseError",
    "OracleError",
    "AltTextGenerator",
    "AssetGenerator",
    "FieldValueGenerationEngine",
    "ValueCodec",
    "GenerationContext",
    "OracleClient",
    "PromptBuilder",
    "RecordTranslator",
    "TranslationEngine",
]
