"""Firmware image fetching.

A firmware reference is either a local path or an ``http(s)://`` URL.
Remote images are streamed to the download directory.
"""

import hashlib
import logging
import tempfile
from pathlib import Path
from typing import Optional, Union

import httpx

from zero_downtime.errors import FirmwareFetchError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536
DOWNLOAD_TIMEOUT = 300.0


def is_remote(firmware_ref: Union[str, Path]) -> bool:
    return str(firmware_ref).startswith(("http://", "https://"))


def sha256_of(path: Path) -> str:
    """SHA-256 hex digest of a file."""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            sha256.update(chunk)
    return sha256.hexdigest()


def verify_checksum(path: Path, expected_checksum: str) -> None:
    """Verify a file's SHA-256 checksum.

    Raises:
        FirmwareFetchError: On mismatch
    """
    actual_checksum = sha256_of(path)
    if actual_checksum.lower() != expected_checksum.lower():
        logger.error(f"Checksum mismatch: expected {expected_checksum}, got {actual_checksum}")
        raise FirmwareFetchError(
            "Checksum verification failed",
            details={"expected": expected_checksum, "actual": actual_checksum}
        )
    logger.info("Firmware checksum verified successfully")


class FirmwareFetcher:
    """Resolves firmware references to local files."""

    def __init__(self, download_dir: Path, client: Optional[httpx.AsyncClient] = None):
        """Initialize fetcher.

        Args:
            download_dir: Where remote images are stored
            client: HTTP client (created per download if not given)
        """
        self.download_dir = Path(download_dir)
        self.client = client

    async def fetch(self, firmware_ref: Union[str, Path], checksum: Optional[str] = None) -> Path:
        """Get a local path for a firmware reference.

        Args:
            firmware_ref: Local path or http(s) URL
            checksum: Expected SHA-256 checksum

        Returns:
            Local firmware path

        Raises:
            FirmwareFetchError: If the image cannot be obtained or verified
        """
        if is_remote(firmware_ref):
            path = await self.download(str(firmware_ref))
        else:
            path = Path(firmware_ref)
            if not path.is_file():
                raise FirmwareFetchError(
                    f"Firmware file not found: {firmware_ref}",
                    details={"reason": "firmware_file_not_found"}
                )

        if checksum:
            try:
                verify_checksum(path, checksum)
            except FirmwareFetchError:
                if is_remote(firmware_ref):
                    path.unlink(missing_ok=True)
                raise

        return path

    async def download(self, url: str) -> Path:
        """Stream a remote image into the download directory."""
        try:
            self.download_dir.mkdir(parents=True, exist_ok=True)
            temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=".fw", dir=self.download_dir)
        except OSError as e:
            raise FirmwareFetchError(f"Cannot create download file: {e}") from e

        temp_path = Path(temp_file.name)
        client = self.client or httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT)

        logger.info(f"Downloading firmware from {url}")
        try:
            with temp_file:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()

                    downloaded = 0
                    async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                        temp_file.write(chunk)
                        downloaded += len(chunk)

        except (httpx.HTTPError, OSError) as e:
            logger.error(f"Failed to download firmware: {e}")
            temp_path.unlink(missing_ok=True)
            raise FirmwareFetchError(
                f"Download failed: {e}",
                details={"url": url}
            ) from e

        finally:
            if self.client is None:
                await client.aclose()

        logger.info(f"Downloaded {downloaded} bytes")
        return temp_path
