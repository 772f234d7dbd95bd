"""Supabase Storage access to uploaded scan images."""

import logging
from dataclasses import dataclass

from supabase import Client

from cookbook_matcher.domain.errors import TransientIOFailure
from cookbook_matcher.services.scans import ImageStore

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseImageStore(ImageStore):
    """Reads scan images from a Supabase Storage bucket."""

    client: Client
    bucket: str

    async def download(self, path: str) -> bytes:
        """Download an uploaded image by its storage path."""
        try:
            data = self.client.storage.from_(self.bucket).download(path)
        except Exception as exc:  # noqa: BLE001
            _logger.warning("Image download failed: bucket=%s path=%s", self.bucket, path)
            raise TransientIOFailure(f"Failed to download {path}: {exc}") from exc
        if not data:
            raise TransientIOFailure(f"Image {path} is empty")
        return data
