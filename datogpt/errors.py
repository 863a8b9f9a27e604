"""
Exception types for DatoGPT.

Policy no-ops (depth limit reached, asset generation disabled, unsupported
field type) are never represented here: they are returned as ``None`` or the
unchanged value.
"""

from typing import Optional


class DatoGPTError(Exception):
    """Base class for all DatoGPT errors."""


class OracleError(DatoGPTError):
    """The LLM or image oracle could not be reached or returned an error."""


class AssetStoreError(DatoGPTError):
    """The CMS asset store or metadata API rejected a request."""


class MalformedResponseError(DatoGPTError):
    """An oracle response did not match the expected JSON contract."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class GenerationError(DatoGPTError):
    """
    A field could not be generated.

    Wraps oracle and malformed-response failures with the name of the field
    being generated and the raw oracle output, so the caller can surface both.
    """

    def __init__(self, field_name: str, raw_response: Optional[str], cause: Exception):
        self.field_name = field_name
        self.raw_response = raw_response
        self.cause = cause
        message = f'GPT response for the "{field_name}" field: \n'
        if raw_response:
            message += f"{raw_response} "
        message += f"error: {cause}"
        super().__init__(message)


class UnsupportedAssetError(DatoGPTError):
    """Alt text cannot be generated for an asset (for example an SVG or a PDF)."""
