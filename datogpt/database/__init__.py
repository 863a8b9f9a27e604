"""DuckDB log of oracle calls and generated assets."""

from .manager import DatabaseManager

__all__ = ["DatabaseManager"]
