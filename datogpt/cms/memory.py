"""
In-memory CMS collaborators.

Plain-dict implementations of the schema provider, asset store and record
accessor. The CLI uses them to work on a JSON record file; the tests use them
as a fake host.
"""

import copy
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..errors import AssetStoreError
from ..models import FieldSchema, FieldsetSchema, ItemTypeInfo, StoredAsset
from .base import BaseAssetStore, BaseRecordAccessor, BaseSchemaProvider


def get_path(data: Any, path: str) -> Any:
    """Value at a dot path, or None when any segment is missing."""
    current = data
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return None
    return current


def set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    """Set the value at a dot path, creating intermediate dicts as needed."""
    segments = path.split(".")
    current: Any = data
    for segment in segments[:-1]:
        if isinstance(current, list):
            current = current[int(segment)]
            continue
        child = current.get(segment)
        if not isinstance(child, (dict, list)):
            child = {}
            current[segment] = child
        current = child
    last = segments[-1]
    if isinstance(current, list):
        current[int(last)] = value
    else:
        current[last] = value


class InMemorySchema(BaseSchemaProvider):
    """
    Schema provider over dicts of item types and their fields.
    """

    def __init__(
        self,
        item_types: Optional[List[ItemTypeInfo]] = None,
        fields: Optional[Dict[str, List[FieldSchema]]] = None
    ):
        self.item_types = {item.id: item for item in (item_types or [])}
        self.fields = fields or {}

    def add_item_type(self, item_type: ItemTypeInfo, fields: List[FieldSchema]) -> None:
        self.item_types[item_type.id] = item_type
        self.fields[item_type.id] = list(fields)

    def list_fields(self, item_type_id: str) -> List[FieldSchema]:
        return sorted(self.fields.get(item_type_id, []), key=lambda field: field.position)

    def get_item_type(self, item_type_id: str) -> ItemTypeInfo:
        if item_type_id not in self.item_types:
            raise KeyError(f"Unknown item type: {item_type_id}")
        return self.item_types[item_type_id]


class InMemoryAssetStore(BaseAssetStore):
    """
    Asset store that keeps uploads in a dict.
    """

    def __init__(self, base_url: str = "memory://assets"):
        self.base_url = base_url.rstrip("/")
        self.assets: Dict[str, Dict[str, Any]] = {}

    def create_asset(self, data: bytes, filename: str, metadata: Dict[str, Dict[str, Any]]) -> str:
        asset_id = uuid.uuid4().hex
        self.assets[asset_id] = {
            "data": data,
            "filename": filename,
            "metadata": copy.deepcopy(metadata),
            "url": f"{self.base_url}/{asset_id}/{filename}"
        }
        logging.info(f"Stored asset {asset_id} ({filename})")
        return asset_id

    def add_asset(self, asset_id: str, url: str, filename: str) -> None:
        """Register an existing asset (one not created through ``create_asset``)."""
        self.assets[asset_id] = {"data": b"", "filename": filename, "metadata": {}, "url": url}

    def fetch_asset(self, asset_id: str) -> StoredAsset:
        asset = self.assets.get(asset_id)
        if not asset:
            raise AssetStoreError(f"Asset not found: {asset_id}")
        return StoredAsset(id=asset_id, url=asset["url"], filename=asset["filename"])


class InMemoryRecord(BaseRecordAccessor):
    """
    Record accessor over a dict of field values.

    Alerts, notices and field locking are recorded so callers can inspect them.
    """

    def __init__(
        self,
        fields: List[FieldSchema],
        values: Optional[Dict[str, Any]] = None,
        fieldsets: Optional[List[FieldsetSchema]] = None,
        locales: Optional[List[str]] = None,
        model_name: str = "record",
        current_locale: Optional[str] = None
    ):
        self._fields = list(fields)
        self._fieldsets = list(fieldsets or [])
        self._locales = list(locales or ["en"])
        self._model_name = model_name
        self._current_locale = current_locale or self._locales[0]
        self.values: Dict[str, Any] = copy.deepcopy(values or {})
        self.alerts: List[str] = []
        self.notices: List[str] = []
        self.disabled: Dict[str, bool] = {}
        self.writes: List[Tuple[str, Any]] = []

    @property
    def current_locale(self) -> str:
        return self._current_locale

    @current_locale.setter
    def current_locale(self, locale: str) -> None:
        self._current_locale = locale

    @property
    def model_name(self) -> str:
        return self._model_name

    def locales(self) -> List[str]:
        return list(self._locales)

    def list_fields(self) -> List[FieldSchema]:
        return list(self._fields)

    def list_fieldsets(self) -> List[FieldsetSchema]:
        return list(self._fieldsets)

    def form_values(self) -> Dict[str, Any]:
        return copy.deepcopy(self.values)

    def get_field_value(self, path: str) -> Any:
        return copy.deepcopy(get_path(self.values, path))

    def set_field_value(self, path: str, value: Any) -> None:
        set_path(self.values, path, copy.deepcopy(value))
        self.writes.append((path, value))

    def disable_field(self, path: str, disabled: bool) -> None:
        self.disabled[path] = disabled

    def alert(self, message: str) -> None:
        logging.error(message)
        self.alerts.append(message)

    def notice(self, message: str) -> None:
        logging.warning(message)
        self.notices.append(message)


def load_record_file(path: str) -> Tuple[InMemoryRecord, InMemorySchema]:
    """
    Load a record and its block models from a JSON file.

    The file holds ``model`` ({id, name, api_key}), ``locales``, ``fieldsets``,
    ``fields``, ``values`` and ``block_models`` (each an item type with its
    own ``fields`` list).

    Args:
        path: Path to the JSON record file

    Returns:
        The record accessor and a schema provider knowing the model and every block model
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    model = ItemTypeInfo(**data.get("model", {"id": "record", "name": "record", "api_key": "record"}))
    fields = [FieldSchema(**field) for field in data.get("fields", [])]
    schema = InMemorySchema()
    schema.add_item_type(model, fields)
    for block_model in data.get("block_models", []):
        block_fields = [FieldSchema(**field) for field in block_model.get("fields", [])]
        schema.add_item_type(
            ItemTypeInfo(id=block_model["id"], name=block_model["name"], api_key=block_model["api_key"]),
            block_fields
        )

    record = InMemoryRecord(
        fields=fields,
        values=data.get("values", {}),
        fieldsets=[FieldsetSchema(**fieldset) for fieldset in data.get("fieldsets", [])],
        locales=data.get("locales") or ["en"],
        model_name=model.name,
        current_locale=data.get("current_locale")
    )
    return record, schema


def save_record_file(path: str, record: InMemoryRecord) -> None:
    """Write the record's values back into its JSON record file."""
    file_path = Path(path)
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    data["values"] = record.values
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
