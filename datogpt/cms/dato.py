"""
DatoCMS Content Management API client.

Implements the schema provider and asset store over the CMA with httpx.
Uploads follow the API's three-step flow: request an upload slot, PUT the
bytes to it, then create the upload (an asynchronous job that is polled until
it yields the new upload).
"""

import httpx
import time
from typing import Any, Dict, List, Optional
import logging

from ..config import config
from ..errors import AssetStoreError
from ..models import FieldSchema, ItemTypeInfo, StoredAsset
from .base import BaseAssetStore, BaseSchemaProvider


class DatoClient(BaseSchemaProvider, BaseAssetStore):
    """
    Schema provider and asset store backed by the DatoCMS CMA.
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        api_base: Optional[str] = None,
        poll_interval: Optional[float] = None,
        poll_attempts: Optional[int] = None,
        timeout: Optional[float] = None
    ):
        """
        Initialize the DatoCMS client.

        Args:
            api_token: CMA token (defaults to config value)
            api_base: CMA base URL (defaults to config value)
            poll_interval: Seconds between upload job polls
            poll_attempts: Number of polls before giving up
            timeout: Transport timeout in seconds
        """
        self.api_base = (api_base or config.dato_api_base).rstrip("/")
        self.poll_interval = poll_interval if poll_interval is not None else config.get("dato.job_poll_interval", 1.0)
        self.poll_attempts = poll_attempts or config.get("dato.job_poll_attempts", 60)
        self.client = httpx.Client(
            timeout=timeout or config.oracle_timeout,
            headers={
                "Authorization": f"Bearer {api_token or config.dato_api_token}",
                "Accept": "application/json",
                "Content-Type": "application/vnd.api+json",
                "X-Api-Version": "3"
            }
        )
        self._item_types: Dict[str, ItemTypeInfo] = {}
        self._fields: Dict[str, List[FieldSchema]] = {}

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def close(self):
        self.client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, f"{self.api_base}{path}", **kwargs)
            response.raise_for_status()
            return response
        except httpx.RequestError as e:
            raise AssetStoreError(f"Failed to connect to DatoCMS: {e}") from e
        except httpx.HTTPStatusError as e:
            raise AssetStoreError(
                f"DatoCMS request {method} {path} failed: {e.response.status_code} {e.response.text[:200]}"
            ) from e

    # Schema provider

    def list_fields(self, item_type_id: str) -> List[FieldSchema]:
        if item_type_id not in self._fields:
            data = self._request("GET", f"/item-types/{item_type_id}/fields").json()["data"]
            fields = [parse_field(entry) for entry in data]
            self._fields[item_type_id] = sorted(fields, key=lambda field: field.position)
        return list(self._fields[item_type_id])

    def get_item_type(self, item_type_id: str) -> ItemTypeInfo:
        if item_type_id not in self._item_types:
            data = self._request("GET", f"/item-types/{item_type_id}").json()["data"]
            attributes = data.get("attributes", {})
            self._item_types[item_type_id] = ItemTypeInfo(
                id=data["id"],
                name=attributes.get("name", ""),
                api_key=attributes.get("api_key", "")
            )
        return self._item_types[item_type_id]

    # Asset store

    def create_asset(self, data: bytes, filename: str, metadata: Dict[str, Dict[str, Any]]) -> str:
        slot = self._request("POST", "/upload-requests", json={
            "data": {"type": "upload_request", "attributes": {"filename": filename}}
        }).json()["data"]
        upload_url = slot["attributes"]["url"]
        headers = slot["attributes"].get("request_headers") or {}

        try:
            put = httpx.put(upload_url, content=data, headers=headers, timeout=self.client.timeout)
            put.raise_for_status()
        except httpx.HTTPError as e:
            raise AssetStoreError(f"Failed to upload {filename}: {e}") from e

        job = self._request("POST", "/uploads", json={
            "data": {
                "type": "upload",
                "attributes": {"path": slot["id"], "default_field_metadata": metadata}
            }
        }).json()["data"]

        upload = self._wait_for_job(job["id"])
        logging.info(f"Created upload {upload['id']} ({filename})")
        return upload["id"]

    def _wait_for_job(self, job_id: str) -> Dict[str, Any]:
        for _ in range(self.poll_attempts):
            response = self.client.get(f"{self.api_base}/job-results/{job_id}")
            if response.status_code == 404:
                time.sleep(self.poll_interval)
                continue
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise AssetStoreError(f"Upload job {job_id} failed: {e.response.text[:200]}") from e
            attributes = response.json()["data"]["attributes"]
            if attributes.get("status", 200) >= 400:
                raise AssetStoreError(f"Upload job {job_id} failed: {attributes.get('payload')}")
            return attributes["payload"]["data"]
        raise AssetStoreError(f"Upload job {job_id} did not finish after {self.poll_attempts} attempts")

    def fetch_asset(self, asset_id: str) -> StoredAsset:
        data = self._request("GET", f"/uploads/{asset_id}").json()["data"]
        attributes = data.get("attributes", {})
        return StoredAsset(id=data["id"], url=attributes.get("url", ""), filename=attributes.get("filename", ""))


def parse_field(entry: Dict[str, Any]) -> FieldSchema:
    """Turn a CMA field resource into a FieldSchema (editor first, then field type)."""
    attributes = entry.get("attributes", {})
    appearance = attributes.get("appearance") or {}
    fieldset = ((entry.get("relationships") or {}).get("fieldset") or {}).get("data")
    return FieldSchema(
        api_key=attributes["api_key"],
        label=attributes.get("label", ""),
        field_type=appearance.get("editor") or attributes.get("field_type", ""),
        position=attributes.get("position", 0),
        fieldset_id=fieldset["id"] if fieldset else None,
        localized=bool(attributes.get("localized")),
        validators=attributes.get("validators") or None,
        hint=attributes.get("hint")
    )
