"""
download.py

Read path: ask the control plane for a short-lived URL, then fetch the object
straight from storage and save it under the download directory.
"""
import os
from pathlib import Path
from typing import Optional

import aiofiles
import httpx

from bucket_client.api import ApiClient
from bucket_client.exceptions import DownloadError, TransportError
from bucket_client.logger import get_logger
from bucket_client.models import DownloadLink
from bucket_client.notifications import LoggingNotifier, Notifier

logger = get_logger(__name__)


class DownloadClient(ApiClient):
    def __init__(
        self,
        client: httpx.AsyncClient,
        storage_client: httpx.AsyncClient,
        download_dir: str | Path,
        notifier: Optional[Notifier] = None,
    ):
        super().__init__(client)
        self._storage_client = storage_client
        self._download_dir = Path(download_dir)
        self._notifier = notifier or LoggingNotifier()

    async def request_download_url(self, bucket_id: str, file_id: str) -> str:
        data = await self._request(
            "GET", f"/buckets/{bucket_id}/files/{file_id}/download", DownloadError
        )
        if not data:
            raise DownloadError("Empty download URL response")
        return DownloadLink.model_validate(data).url

    async def download_file(self, bucket_id: str, file_id: str, filename: str) -> Path:
        """
        Download a stored file to the download directory.

        An existing file is never overwritten, "name (1).ext" is used instead.

        :param bucket_id: Bucket holding the file.
        :param file_id: File to download.
        :param filename: Name to save the file under.
        :return: Path of the saved file.
        """
        try:
            url = await self.request_download_url(bucket_id, file_id)
            self._notifier.success("Success", f"Download started for file {filename}")
            save_path = await self._fetch(url, filename)
        except (DownloadError, TransportError) as e:
            self._notifier.error("Error", e.message)
            raise

        logger.info(f"Downloaded {filename} to {save_path}", extra={"bucket_id": bucket_id, "file_id": file_id})
        return save_path

    async def _fetch(self, url: str, filename: str) -> Path:
        try:
            save_path, f = await self._reserve(filename)
        except OSError as e:
            raise DownloadError(f"Could not save {filename}: {str(e)}") from e

        completed = False
        try:
            async with f:
                async with self._storage_client.stream("GET", url) as response:
                    if response.status_code != httpx.codes.OK:
                        raise TransportError(
                            f"Storage answered {response.status_code} for {filename}",
                            status_code=response.status_code,
                        )
                    async for chunk in response.aiter_bytes():
                        await f.write(chunk)
            completed = True
        except httpx.HTTPError as e:
            raise TransportError(f"Download of {filename} failed: {str(e)}") from e
        except OSError as e:
            raise TransportError(f"Could not write {save_path.name}: {str(e)}") from e
        finally:
            # Covers cancellation too, a half-written file never stays behind
            if not completed:
                save_path.unlink(missing_ok=True)

        return save_path

    async def _reserve(self, filename: str):
        """
        Pick the first free "name", "name (1)", ... and create it in the same step.

        :param filename: Requested file name.
        :return: The reserved path and its open aiofiles handle.
        """
        safe_name = os.path.basename(filename)
        if not safe_name or safe_name in (".", ".."):
            raise DownloadError(f"Invalid file name: {filename}")

        self._download_dir.mkdir(parents=True, exist_ok=True)

        stem, suffix = os.path.splitext(safe_name)
        save_path = self._download_dir / safe_name
        counter = 1
        while True:
            try:
                return save_path, await aiofiles.open(save_path, "xb")
            except FileExistsError:
                save_path = self._download_dir / f"{stem} ({counter}){suffix}"
                counter += 1
