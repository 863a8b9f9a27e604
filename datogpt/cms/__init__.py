"""Host CMS collaborators: interfaces, the DatoCMS client and in-memory fakes."""

from .base import BaseSchemaProvider, BaseAssetStore, BaseRecordAccessor
from .dato import DatoClient
from .memory import InMemorySchema, InMemoryAssetStore, InMemoryRecord, load_record_file, save_record_file

__all__ = [
    "BaseSchemaProvider",
    "BaseAssetStore",
    "BaseRecordAccessor",
    "DatoClient",
    "InMemorySchema",
    "InMemoryAssetStore",
    "InMemoryRecord",
    "load_record_file",
    "save_record_file",
]
