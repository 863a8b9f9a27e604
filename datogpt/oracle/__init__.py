"""HTTP client for the LLM, image and vision oracles."""

from .client import OracleClient

__all__ = ["OracleClient"]
