# storage.py
import asyncio
import logging
from typing import Optional

from vercel_blob import put as vercel_put

from uploadflow.errors import StorageFailure
from uploadflow.settings import settings

# --- Module-level Configuration ---
logger = logging.getLogger(__name__)


class BlobStore:
    """
    Object store client backed by Vercel Blob.

    Stores one binary under the caller's key and returns its public URL.
    Keys are used verbatim (no random suffix) since the upload commit
    already makes them unique.
    """

    def __init__(self, token: Optional[str] = None, timeout: int = 30):
        self.token = token if token is not None else settings.BLOB_READ_WRITE_TOKEN
        self.timeout = timeout

    async def put(self, key: str, content: bytes) -> str:
        options = {"addRandomSuffix": "false"}
        if self.token:
            options["token"] = self.token

        def sync_put():
            return vercel_put(key, content, options, timeout=self.timeout)

        try:
            # The SDK is synchronous; keep it off the event loop
            blob_result = await asyncio.to_thread(sync_put)
        except Exception as e:
            logger.error(f"Blob upload failed for key '{key}': {e}")
            raise StorageFailure(f"Could not store asset '{key}': {e}", key=key) from e

        url = blob_result.get("url") if isinstance(blob_result, dict) else None
        if not url:
            logger.error(f"Blob upload for '{key}' returned no URL. Result: {blob_result}")
            raise StorageFailure(f"Object store returned no URL for '{key}'.", key=key)

        logger.info(f"Stored asset: {url}")
        return url
