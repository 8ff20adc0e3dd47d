"""HTTP downloads of manifest documents and section parts.

Sections and patches are published as archives split into fixed-size parts.
Parts already on disk with the expected size are not downloaded again, so an
interrupted run resumes at the first incomplete part.
"""

from __future__ import annotations

import os
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import httpx
import structlog

from game_updater.core.errors import DownloadError
from game_updater.core.utils import format_size

logger = structlog.get_logger()


def part_filename(url: str) -> str:
    """File name a part URL is saved under."""
    name = unquote(urlparse(url).path.rsplit("/", 1)[-1])
    if not name:
        raise DownloadError(f"Cannot derive a file name from {url}", url=url)
    return name


def expected_part_size(index: int, split_size: int, total_size: int) -> int:
    """Size part ``index`` must have once fully downloaded.

    Every part is ``split_size`` bytes except the last, which holds the
    remainder of ``total_size``.

    Example:
        >>> expected_part_size(0, 100, 250), expected_part_size(2, 100, 250)
        (100, 50)
    """
    if split_size <= 0:
        return total_size
    if index < total_size // split_size:
        return split_size
    return total_size % split_size


class SectionDownloader:
    """Downloads manifest documents and archive parts over HTTP.

    Args:
        client: HTTP client to use, created lazily when omitted
        timeout: Request timeout in seconds
        progress_interval: Minimum seconds between progress log lines
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
        progress_interval: float = 10.0,
    ):
        self.timeout = timeout
        self.progress_interval = progress_interval
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_json(self, url: str) -> dict[str, Any]:
        """Fetch and decode a JSON object.

        Raises:
            DownloadError: If the request fails or the body is not a JSON object
        """
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise DownloadError(f"Cannot fetch {url}: {e}", url=url) from e

        if not isinstance(data, dict):
            raise DownloadError(f"{url} did not return a JSON object", url=url)
        return data

    async def download_file(
        self, url: str, dest: Path, done_before: int = 0, total_size: int = 0
    ) -> int:
        """Stream ``url`` into ``dest``.

        Args:
            url: Source URL
            dest: Destination file, replaced once the download completes
            done_before: Bytes of the section already downloaded, for progress
            total_size: Total section size, for progress

        Returns:
            Number of bytes written

        Raises:
            DownloadError: On HTTP or file errors
        """
        tmp_path = dest.with_name(dest.name + ".part")
        written = 0
        started = last_log = time.monotonic()

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            async with self.client.stream("GET", url) as response:
                response.raise_for_status()
                with open(tmp_path, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
                        written += len(chunk)

                        now = time.monotonic()
                        if total_size > 0 and now - last_log >= self.progress_interval:
                            logger.info(
                                "download_progress",
                                file=dest.name,
                                downloaded=format_size(written),
                                total_percent=round((done_before + written) / total_size * 100, 2),
                                speed_kib=round(written / (now - started) / 1024, 2),
                            )
                            last_log = now
            os.replace(tmp_path, dest)
        except httpx.HTTPError as e:
            tmp_path.unlink(missing_ok=True)
            raise DownloadError(f"Download of {url} failed: {e}", url=url) from e
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise DownloadError(f"Cannot write {dest}: {e}", url=url) from e

        return written

    async def download_parts(
        self,
        urls: Sequence[str],
        dest_dir: Path,
        split_size: int,
        total_size: int,
        label: str = "",
    ) -> list[Path]:
        """Download every part of a split archive, skipping complete ones.

        Args:
            urls: Part URLs, in order
            dest_dir: Directory the parts are saved in
            split_size: Size of every part but the last
            total_size: Total size of all parts
            label: Section or patch name for log lines

        Returns:
            Local part paths, in order

        Raises:
            DownloadError: If any part fails
        """
        paths: list[Path] = []
        for index, url in enumerate(urls):
            dest = dest_dir / part_filename(url)
            paths.append(dest)

            expected = expected_part_size(index, split_size, total_size)
            if dest.is_file() and dest.stat().st_size == expected:
                logger.info("part_already_downloaded", section=label, file=dest.name)
                continue

            logger.info("part_downloading", section=label, file=dest.name)
            await self.download_file(url, dest, split_size * index, total_size)

        return paths
