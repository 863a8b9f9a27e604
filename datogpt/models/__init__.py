"""Data models for DatoGPT."""

from .fields import (
    FieldDescriptor,
    FieldsetInfo,
    BlockInfo,
    ParentBlockInfo,
    GenerationContext,
    FieldSchema,
    FieldsetSchema,
    ItemTypeInfo,
)
from .values import AssetRef, StoredAsset, GeneratedImage, ImageCandidate

__all__ = [
    "FieldDescriptor",
    "FieldsetInfo",
    "BlockInfo",
    "ParentBlockInfo",
    "GenerationContext",
    "FieldSchema",
    "FieldsetSchema",
    "ItemTypeInfo",
    "AssetRef",
    "StoredAsset",
    "GeneratedImage",
    "ImageCandidate",
]
