"""Field value generation: codec, assets, structured text and the recursive engine."""

from .assets import AssetGenerator, AVAILABLE_RESOLUTIONS, CANDIDATE_COUNTS
from .codec import ValueCodec
from .engine import FieldValueGenerationEngine
from .alt import AltTextGenerator

__all__ = [
    "AssetGenerator",
    "AVAILABLE_RESOLUTIONS",
    "CANDIDATE_COUNTS",
    "ValueCodec",
    "FieldValueGenerationEngine",
    "AltTextGenerator",
]
