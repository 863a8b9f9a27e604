"""
Alt-text generation for image assets.
"""

import logging
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import urlparse

from ..cms import BaseAssetStore
from ..errors import OracleError, UnsupportedAssetError
from ..prompts import PromptBuilder

# Formats accepted by the vision model.
SUPPORTED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}


class AltTextGenerator:
    """
    Describes stored images with the vision oracle.
    """

    def __init__(self, oracle, asset_store: BaseAssetStore, prompt_builder: Optional[PromptBuilder] = None):
        self.oracle = oracle
        self.asset_store = asset_store
        self.prompts = prompt_builder or PromptBuilder()

    def generate_alt(self, image_url: str, locale: str, filename: Optional[str] = None) -> str:
        """
        Write alt text for an image in the language of ``locale``.

        Args:
            image_url: Public URL of the image
            locale: Locale the alt text is written in
            filename: Stored filename, used to reject unsupported formats early

        Returns:
            The alt text

        Raises:
            UnsupportedAssetError: If the image cannot be described
        """
        name = filename or PurePosixPath(urlparse(image_url).path).name
        extension = PurePosixPath(name).suffix.lower()
        if extension and extension not in SUPPORTED_IMAGE_EXTENSIONS:
            raise UnsupportedAssetError(f"The asset {name} has an unsupported format for alt generation")

        try:
            alt = self.oracle.describe_image(self.prompts.alt_text_prompt(locale), image_url)
        except OracleError as e:
            raise UnsupportedAssetError(f"The asset {name} could not be described: {e}") from e

        alt = (alt or "").strip()
        if not alt:
            raise UnsupportedAssetError(f"No alt text returned for {name}")
        return alt

    def describe_asset(self, asset_id: str, locale: str) -> str:
        """Alt text for a stored asset."""
        asset = self.asset_store.fetch_asset(asset_id)
        logging.info(f"Generating alt text for {asset.filename}")
        return self.generate_alt(asset.url, locale, filename=asset.filename)
