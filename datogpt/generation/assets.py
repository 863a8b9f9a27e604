"""
Image asset generation for DatoGPT.

Turns a text prompt into stored CMS assets: image oracle -> image bytes ->
asset store. Each generated image becomes exactly one new asset; existing
assets are never touched.
"""

import concurrent.futures
import logging
import re
from typing import List, Optional

from ..cms import BaseAssetStore
from ..config import config
from ..database import DatabaseManager
from ..models import AssetRef, GeneratedImage, ImageCandidate

AVAILABLE_RESOLUTIONS = ("1024x1024", "256x256", "512x512", "1792x1024", "1024x1792")
CANDIDATE_COUNTS = (1, 2, 4, 6)

MAX_FILENAME_STEM = 100


def kebab_case(text: str) -> str:
    """``Sunset Over_the Bay`` -> ``sunset-over-the-bay``."""
    text = re.sub(r"([a-z])([A-Z])", r"\1-\2", text)
    text = re.sub(r"[\s_]+", "-", text)
    return text.lower()


def asset_filename(prompt: str) -> str:
    """PNG filename derived from the prompt, safe for the asset store."""
    stem = re.sub(r"[^a-z0-9-]", "", kebab_case(prompt.strip()))
    stem = re.sub(r"-{2,}", "-", stem).strip("-")[:MAX_FILENAME_STEM].rstrip("-")
    return f"{stem or 'generated-image'}.png"


class AssetGenerator:
    """
    Generates images with the image oracle and stores them as assets.
    """

    def __init__(
        self,
        oracle,
        asset_store: BaseAssetStore,
        database_manager: Optional[DatabaseManager] = None,
        max_concurrent_images: Optional[int] = None
    ):
        """
        Initialize the asset generator.

        Args:
            oracle: Client exposing ``generate_images`` and ``fetch_bytes``
            asset_store: Where generated images are stored
            database_manager: Optional database manager recording created assets
            max_concurrent_images: Parallelism bound for candidate batches
        """
        self.oracle = oracle
        self.asset_store = asset_store
        self.db = database_manager
        self.max_concurrent_images = max_concurrent_images or config.max_concurrent_images

    def generate(
        self,
        prompt: str,
        count: int = 1,
        resolution: str = "1024x1024",
        locale: str = "en",
        field_name: Optional[str] = None
    ) -> List[AssetRef]:
        """
        Generate ``count`` images for ``prompt`` and store each as an asset.

        Oracle and store failures propagate unchanged; nothing is retried.

        Args:
            prompt: Image description (also the asset title)
            count: Number of images to request
            resolution: One of AVAILABLE_RESOLUTIONS
            locale: Locale the asset metadata is written for
            field_name: Field the images are for (call log only)

        Returns:
            One AssetRef per generated image, in oracle order
        """
        _check_resolution(resolution)
        images = self.oracle.generate_images(prompt, n=count, size=resolution, field_name=field_name)
        return [self._store(image, prompt, locale) for image in images]

    def generate_candidates(self, prompt: str, count: int = 1, resolution: str = "1024x1024") -> List[ImageCandidate]:
        """
        Generate an unstored batch of images for the asset browser.

        ``count`` single-image requests run in parallel; a failed request
        yields an error candidate in its slot without affecting the others.

        Args:
            prompt: Image description
            count: One of CANDIDATE_COUNTS
            resolution: One of AVAILABLE_RESOLUTIONS

        Returns:
            ``count`` candidates in request order
        """
        if count not in CANDIDATE_COUNTS:
            raise ValueError(f"Unsupported image count {count}, expected one of {CANDIDATE_COUNTS}")
        _check_resolution(resolution)

        candidates: List[Optional[ImageCandidate]] = [None] * count
        max_workers = min(self.max_concurrent_images, count)
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {
                pool.submit(self.oracle.generate_images, prompt, n=1, size=resolution): slot
                for slot in range(count)
            }
            for future in concurrent.futures.as_completed(futures):
                slot = futures[future]
                try:
                    images = future.result()
                    if not images:
                        raise ValueError("the image oracle returned no image")
                    candidates[slot] = ImageCandidate(url=images[0].url, revised_prompt=images[0].revised_prompt)
                except Exception as e:
                    logging.warning(f"Image candidate {slot + 1}/{count} failed: {e}")
                    candidates[slot] = ImageCandidate(error=str(e))

        return candidates

    def upload_candidate(self, candidate: ImageCandidate, prompt: str, locale: str = "en") -> AssetRef:
        """
        Store a candidate picked in the asset browser.

        Args:
            candidate: A successful candidate
            prompt: Prompt the candidate was generated from
            locale: Locale the asset metadata is written for

        Returns:
            The new asset reference
        """
        if candidate.failed:
            raise ValueError(f"Cannot upload a failed image candidate: {candidate.error}")
        image = GeneratedImage(url=candidate.url, revised_prompt=candidate.revised_prompt)
        return self._store(image, prompt, locale)

    def _store(self, image: GeneratedImage, prompt: str, locale: str) -> AssetRef:
        data = self.oracle.fetch_bytes(image.url)
        filename = asset_filename(prompt)
        metadata = {
            locale: {
                "title": prompt,
                "alt": image.revised_prompt,
                "custom_data": {}
            }
        }
        asset_id = self.asset_store.create_asset(data, filename, metadata)
        logging.info(f"Generated asset {asset_id} for prompt: {prompt[:60]}")

        if self.db:
            try:
                self.db.log_generated_asset(asset_id, prompt, image.revised_prompt, filename)
            except Exception as log_error:
                logging.warning(f"Failed to log generated asset: {log_error}")

        return AssetRef(asset_id=asset_id, title=prompt, alt=image.revised_prompt)


def _check_resolution(resolution: str) -> None:
    if resolution not in AVAILABLE_RESOLUTIONS:
        raise ValueError(f"Unsupported resolution {resolution}, expected one of {AVAILABLE_RESOLUTIONS}")
