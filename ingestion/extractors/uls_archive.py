"""
Download and unpack the FCC ULS amateur license archive (l_amat.zip).

This module provides resilient acquisition with:
- Streaming download straight to disk (the archive is hundreds of MB)
- Exponential backoff retry for timeouts, transport errors and 5xx
- Case-insensitive selection of AM.dat / EN.dat at the archive root
"""

import asyncio
import shutil
import zipfile
from pathlib import Path
from typing import Dict, Iterable
import httpx
from core.exceptions import DownloadError, NetworkError, ArchiveError
import logging

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
LOG_EVERY_BYTES = 50 * 1024 * 1024


class ULSArchiveFetcher:
    """
    Fetch the ULS complete-license archive.

    Attributes:
        url: Archive URL
        timeout: Request timeout in seconds
        max_retries: Maximum number of attempts (default: 3)
        retry_delay: Initial retry delay in seconds (default: 1.0)
    """

    def __init__(
        self,
        url: str,
        timeout: float = 300.0,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def download(self, dest: Path) -> Path:
        """
        Stream the archive to dest.

        Raises:
            DownloadError: 4xx response
            NetworkError: timeouts, transport errors or 5xx after max retries
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            for attempt in range(self.max_retries):
                try:
                    logger.info(f"Downloading {self.url} (attempt {attempt + 1}/{self.max_retries})")
                    size = await self._stream_to_file(client, dest)
                    logger.info(f"Downloaded {size / (1024 * 1024):.1f} MB to {dest}")
                    return dest

                except httpx.HTTPStatusError as e:
                    status_code = e.response.status_code
                    if status_code < 500:
                        raise DownloadError(
                            f"Archive download rejected with HTTP {status_code}",
                            context={"url": self.url, "status_code": status_code, "retry_count": attempt + 1},
                            original_exception=e
                        )
                    reason, cause = f"Server error {status_code}", e
                    context = {"url": self.url, "status_code": status_code}

                except httpx.TimeoutException as e:
                    reason, cause = "Download timeout", e
                    context = {"url": self.url, "timeout": self.timeout}

                except httpx.TransportError as e:
                    reason, cause = "Network error", e
                    context = {"url": self.url}

                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(f"{reason}. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                else:
                    raise NetworkError(
                        f"{reason} after {self.max_retries} retries",
                        context={**context, "retry_count": attempt + 1},
                        original_exception=cause
                    )

        raise DownloadError("Max retries exceeded", context={"url": self.url})

    async def _stream_to_file(self, client: httpx.AsyncClient, dest: Path) -> int:
        downloaded = 0
        next_log = LOG_EVERY_BYTES

        async with client.stream("GET", self.url) as response:
            response.raise_for_status()
            with open(dest, "wb") as f:
                async for chunk in response.aiter_bytes(CHUNK_SIZE):
                    f.write(chunk)
                    downloaded += len(chunk)
                    if downloaded >= next_log:
                        logger.info(f"Downloaded {downloaded / (1024 * 1024):.0f} MB")
                        next_log += LOG_EVERY_BYTES

        return downloaded

    async def extract(self, zip_path: Path, dest_dir: Path, members: Iterable[str]) -> Dict[str, Path]:
        """
        Extract the named members (matched case-insensitively) into dest_dir.

        Returns:
            Mapping of requested member name to extracted path

        Raises:
            ArchiveError: corrupt archive or missing member
        """
        return await asyncio.to_thread(self._extract_sync, Path(zip_path), Path(dest_dir), list(members))

    def _extract_sync(self, zip_path: Path, dest_dir: Path, members) -> Dict[str, Path]:
        dest_dir.mkdir(parents=True, exist_ok=True)
        extracted = {}

        try:
            with zipfile.ZipFile(zip_path, "r") as zip_ref:
                by_name = {name.lower(): name for name in zip_ref.namelist()}

                for member in members:
                    archive_name = by_name.get(member.lower())
                    if archive_name is None:
                        raise ArchiveError(
                            f"{member} not found in archive",
                            context={"zip_path": str(zip_path), "member": member}
                        )

                    target = dest_dir / member
                    with zip_ref.open(archive_name) as source, open(target, "wb") as out:
                        shutil.copyfileobj(source, out, CHUNK_SIZE)
                    extracted[member] = target
                    logger.info(f"Extracted {archive_name} ({target.stat().st_size / (1024 * 1024):.1f} MB)")

        except zipfile.BadZipFile as e:
            raise ArchiveError(
                "Downloaded file is not a valid ZIP archive",
                context={"zip_path": str(zip_path)},
                original_exception=e
            )

        return extracted
