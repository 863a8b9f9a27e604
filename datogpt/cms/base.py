"""
Host CMS interfaces for DatoGPT.

The generation and translation components never talk to the CMS directly;
they go through the three collaborators defined here: the schema provider
(field and block metadata), the asset store (uploads) and the record
accessor (the form currently being edited).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..models import FieldSchema, FieldsetSchema, ItemTypeInfo, StoredAsset


class BaseSchemaProvider(ABC):
    """
    Abstract source of model and block-model metadata.
    """

    @abstractmethod
    def list_fields(self, item_type_id: str) -> List[FieldSchema]:
        """
        List the fields of a model or block model.

        Args:
            item_type_id: Id of the model or block model

        Returns:
            Fields ordered by position
        """
        pass

    @abstractmethod
    def get_item_type(self, item_type_id: str) -> ItemTypeInfo:
        """
        Look up the name and API key of a model or block model.

        Args:
            item_type_id: Id of the model or block model

        Returns:
            The item type info
        """
        pass


class BaseAssetStore(ABC):
    """
    Abstract store for managed assets (uploads).
    """

    @abstractmethod
    def create_asset(self, data: bytes, filename: str, metadata: Dict[str, Dict[str, Any]]) -> str:
        """
        Store a new asset.

        Args:
            data: Raw file bytes
            filename: File name to store the asset under
            metadata: Locale -> {title, alt, custom_data} default metadata

        Returns:
            Id of the created asset
        """
        pass

    @abstractmethod
    def fetch_asset(self, asset_id: str) -> StoredAsset:
        """
        Fetch an asset's URL and filename.

        Args:
            asset_id: Id of the asset

        Returns:
            The stored asset
        """
        pass


class BaseRecordAccessor(ABC):
    """
    Abstract handle on the record being edited.

    Field paths are dot-separated: ``title`` for a whole field, ``title.en``
    for one locale slot, ``blocks.0.heading`` inside nested values.
    """

    @property
    @abstractmethod
    def current_locale(self) -> str:
        """Locale currently shown in the editor."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Name of the record's model."""
        pass

    @abstractmethod
    def locales(self) -> List[str]:
        """Configured locales, primary locale first."""
        pass

    @abstractmethod
    def list_fields(self) -> List[FieldSchema]:
        pass

    @abstractmethod
    def list_fieldsets(self) -> List[FieldsetSchema]:
        pass

    @abstractmethod
    def form_values(self) -> Dict[str, Any]:
        """Snapshot of all current field values."""
        pass

    @abstractmethod
    def get_field_value(self, path: str) -> Any:
        pass

    @abstractmethod
    def set_field_value(self, path: str, value: Any) -> None:
        pass

    @abstractmethod
    def disable_field(self, path: str, disabled: bool) -> None:
        """Lock or unlock a field while a generation runs on it."""
        pass

    @abstractmethod
    def alert(self, message: str) -> None:
        """Show an error to the editor."""
        pass

    @abstractmethod
    def notice(self, message: str) -> None:
        """Show a non-fatal message to the editor."""
        pass

    def field_schema(self, api_key: str) -> Optional[FieldSchema]:
        """Schema of one of the record's fields, or None if unknown."""
        for field in self.list_fields():
            if field.api_key == api_key:
                return field
        return None
