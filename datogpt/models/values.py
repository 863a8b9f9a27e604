"""
Field value models and shape predicates.

Field values travel through the engine as plain JSON-compatible Python data
(str, int, float, bool, dict, list, None), exactly as the CMS stores them.
The predicates below are the only place where their shape is inspected.
"""

from typing import Any, Dict, Iterable, List, Optional
from pydantic import BaseModel, Field


BLOCK_NODE_TYPE = "block"

# Keys of a block instance that describe its structure rather than its fields.
STRUCTURAL_BLOCK_KEYS = frozenset({
    "itemId",
    "itemTypeId",
    "blockModelId",
    "originalIndex",
    "type",
    "children",
    "id",
})


class AssetRef(BaseModel):
    """A managed asset created by the asset generator."""

    asset_id: str = Field(..., description="Id of the upload in the CMS asset store")
    title: str = Field(default="", description="Title metadata (the original prompt)")
    alt: str = Field(default="", description="Accessible text (the oracle's revised prompt)")

    def to_field_value(self) -> Dict[str, Any]:
        """Shape stored in file and gallery fields."""
        return {"upload_id": self.asset_id, "title": self.title, "alt": self.alt}


class StoredAsset(BaseModel):
    """An asset as returned by the asset store."""

    id: str
    url: str
    filename: str = ""


class GeneratedImage(BaseModel):
    """One image returned by the image-generation oracle."""

    url: str
    revised_prompt: str = ""


class ImageCandidate(BaseModel):
    """
    A generated-but-not-yet-stored image in an asset browser batch.

    A failed request yields a candidate with ``error`` set and an empty URL.
    """

    url: str = ""
    revised_prompt: str = ""
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def is_localized(value: Any, locales: Optional[Iterable[str]] = None) -> bool:
    """
    True when ``value`` is a locale-code -> value mapping.

    Without ``locales`` any non-empty dict whose keys all look like locale tags
    counts; with ``locales`` the keys must be a subset of them.
    """
    if not isinstance(value, dict) or not value:
        return False
    if locales is not None:
        return set(value).issubset(set(locales))
    return all(isinstance(key, str) and _looks_like_locale(key) for key in value)


def _looks_like_locale(key: str) -> bool:
    parts = key.split("-")
    if not (2 <= len(parts[0]) <= 3 and parts[0].isalpha() and parts[0].islower()):
        return False
    return all(part.isalnum() for part in parts[1:])


def locale_slot(value: Any, locale: str, locales: Optional[Iterable[str]] = None) -> Any:
    """The value for ``locale`` when ``value`` is localized, otherwise ``value`` itself."""
    if is_localized(value, locales):
        return value.get(locale)
    return value


def is_block_node(node: Any) -> bool:
    return isinstance(node, dict) and node.get("type") == BLOCK_NODE_TYPE


def is_node_sequence(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(node, dict) for node in value)


def is_empty_structured_text(value: Any) -> bool:
    """
    True for the editor's placeholder of an empty structured-text field:
    a single paragraph holding a single empty text leaf.
    """
    if not isinstance(value, list) or len(value) != 1:
        return False
    node = value[0]
    if not isinstance(node, dict) or node.get("type") != "paragraph":
        return False
    children = node.get("children")
    if not isinstance(children, list) or len(children) != 1:
        return False
    leaf = children[0]
    return isinstance(leaf, dict) and leaf.get("text") == ""


def is_empty_value(value: Any) -> bool:
    """True for values that carry no content (None, "", [], {}, empty placeholder)."""
    if value is None:
        return True
    if isinstance(value, (str, list, dict)) and not value:
        return True
    return is_empty_structured_text(value)


def is_asset_value(value: Any) -> bool:
    """True for a single asset reference (``{"upload_id": ...}``)."""
    return isinstance(value, dict) and bool(value.get("upload_id"))


def asset_list(value: Any) -> List[Dict[str, Any]]:
    """Asset references held by a file or gallery value, in order."""
    if is_asset_value(value):
        return [value]
    if isinstance(value, list):
        return [item for item in value if is_asset_value(item)]
    return []


def block_fields(block: Dict[str, Any]) -> Dict[str, Any]:
    """The content fields of a block instance, without structural keys."""
    return {key: value for key, value in block.items() if key not in STRUCTURAL_BLOCK_KEYS}


def block_model_id(block: Dict[str, Any]) -> Optional[str]:
    """Block model id of a block instance or block node."""
    return block.get("itemTypeId") or block.get("blockModelId")
