"""
Value codec for DatoGPT.

Parses raw oracle text into typed field values, one rule per field type, and
renders current field values back into text for improve prompts.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from ..config import PluginSettings
from ..errors import MalformedResponseError
from .assets import AssetGenerator

WRAPPING_QUOTES = "\"'“”"

_CODE_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)
_LEADING_INT = re.compile(r"^[+-]?\d+")
_LEADING_FLOAT = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

JSON_FIELD_TYPES = ("map", "color_picker", "json")


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around the whole response."""
    stripped = text.strip()
    match = _CODE_FENCE.match(stripped)
    return match.group(1).strip() if match else stripped


def strip_wrapping_quotes(text: str) -> str:
    """Remove quote characters around the response, keeping inner quotes."""
    return text.strip().strip(WRAPPING_QUOTES)


def parse_json_response(raw: str) -> Any:
    """
    Parse an oracle response that must be JSON.

    Raises:
        MalformedResponseError: If the response is not valid JSON
    """
    try:
        return json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Invalid JSON response: {e}", raw_response=raw) from e


def parse_number(raw: str, is_float: bool = False) -> Any:
    """
    Leading number of the response, ignoring quotes and anything after it.

    ``"42"`` -> 42, ``3.5 kg`` -> 3.5.
    """
    cleaned = raw.replace('"', "").strip()
    match = (_LEADING_FLOAT if is_float else _LEADING_INT).match(cleaned)
    if not match:
        raise MalformedResponseError(f"Expected a number, got {raw!r}", raw_response=raw)
    return float(match.group(0)) if is_float else int(match.group(0))


class ValueCodec:
    """
    Converts between oracle text and CMS field values.
    """

    def __init__(self, settings: PluginSettings, asset_generator: Optional[AssetGenerator] = None):
        """
        Initialize the codec.

        Args:
            settings: Plugin policy (reads ``seo_generate_asset``)
            asset_generator: Used for SEO images when that policy is on
        """
        self.settings = settings
        self.asset_generator = asset_generator

    def encode(
        self,
        field_type: str,
        raw: str,
        locale: str = "en",
        resolution: str = "1024x1024",
        is_improve: bool = False,
        field_name: Optional[str] = None
    ) -> Any:
        """
        Parse a raw oracle response into a value for ``field_type``.

        Args:
            field_type: Field editor type
            raw: Raw oracle text
            locale: Locale of SEO image metadata
            resolution: Resolution of SEO images
            is_improve: Whether the response answers an improve prompt
            field_name: Field the value is for (call log only)

        Returns:
            The typed field value

        Raises:
            MalformedResponseError: If a JSON or numeric response cannot be parsed
        """
        if field_type == "seo":
            return self._encode_seo(raw, locale, resolution, is_improve, field_name)
        if field_type == "integer":
            return parse_number(raw)
        if field_type == "float":
            return parse_number(raw, is_float=True)
        if field_type == "boolean":
            return strip_wrapping_quotes(raw) == "1"
        if field_type in JSON_FIELD_TYPES:
            return parse_json_response(raw)
        return strip_wrapping_quotes(raw)

    def _encode_seo(
        self,
        raw: str,
        locale: str,
        resolution: str,
        is_improve: bool,
        field_name: Optional[str]
    ) -> Dict[str, Any]:
        parsed = parse_json_response(raw)
        if not isinstance(parsed, dict):
            raise MalformedResponseError("Expected an SEO JSON object", raw_response=raw)

        seo: Dict[str, Any] = {
            "title": parsed.get("title"),
            "description": parsed.get("description"),
            "twitter_card": "summary_large_image",
            "no_index": False,
        }

        if is_improve:
            if parsed.get("image"):
                seo["image"] = parsed["image"]
            return seo

        image_prompt = parsed.get("imagePrompt")
        if self.settings.seo_generate_asset and image_prompt and self.asset_generator:
            assets = self.asset_generator.generate(
                image_prompt, count=1, resolution=resolution, locale=locale, field_name=field_name
            )
            if assets:
                seo["image"] = assets[0].asset_id
        elif image_prompt:
            logging.info("SEO image generation disabled, leaving the SEO image empty")
        return seo

    def serialize(self, field_type: str, value: Any) -> str:
        """
        Render a current field value as prompt text.

        Args:
            field_type: Field editor type
            value: Current value

        Returns:
            Text embedded in improve prompts
        """
        if value is None:
            return ""
        if field_type == "boolean":
            return "1" if value else "0"
        if isinstance(value, (dict, list)):
            return json.dumps(value, indent=2, ensure_ascii=False)
        return str(value)
