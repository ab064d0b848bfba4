"""
api.py

Control plane calls: upload credentials, folders, bucket listing and file deletion.

Every call goes through an `httpx.AsyncClient` created by `create_api_client`, which
carries the base URL and the bearer token. Storage traffic never uses this client,
presigned URLs must not receive the control plane token.
"""
import re
from typing import Optional

import httpx

from bucket_client.exceptions import ApiError, CredentialError
from bucket_client.logger import get_logger
from bucket_client.models import Bucket, FileType, UploadCredential
from bucket_client.settings import Settings
from bucket_client.tree import normalize_path

logger = get_logger(__name__)


def create_api_client(settings: Settings) -> httpx.AsyncClient:
    headers = {"Accept": "application/json"}
    if settings.API_TOKEN:
        headers["Authorization"] = f"Bearer {settings.API_TOKEN}"

    return httpx.AsyncClient(
        base_url=settings.API_URL,
        headers=headers,
        timeout=settings.REQUEST_TIMEOUT,
    )


def create_storage_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT)


def error_message(response: httpx.Response) -> str:
    """
    First message of a `{"error": [...]}` body, or the status line.
    """
    try:
        errors = response.json().get("error")
    except (ValueError, AttributeError):
        errors = None

    if isinstance(errors, list) and errors:
        return str(errors[0])
    if isinstance(errors, str) and errors:
        return errors
    return f"{response.status_code} {response.reason_phrase}".strip()


class ApiClient:
    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def _request(
        self,
        method: str,
        url: str,
        error_cls: type[ApiError] = ApiError,
        **kwargs,
    ) -> Optional[dict]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {str(e)}")
            raise error_cls(f"Request to {url} failed: {str(e)}") from e

        if not response.is_success:
            message = error_message(response)
            logger.error(f"{method} {url} returned {response.status_code}: {message}")
            raise error_cls(message, status_code=response.status_code)

        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return None
        return response.json()


class PresignedUploadClient(ApiClient):
    def __init__(self, client: httpx.AsyncClient, max_file_name_length: int = 255):
        super().__init__(client)
        self._max_file_name_length = max_file_name_length

    async def request_upload_slot(
        self,
        name: str,
        path: str = "/",
        bucket_id: Optional[str] = None,
        size: Optional[int] = None,
    ) -> UploadCredential:
        """
        Ask the control plane for a one-shot presigned POST for a new file record.

        :param name: File name of the new record.
        :param path: Parent path of the new record.
        :param bucket_id: Target bucket, if any.
        :param size: Byte size announced to the backend.
        :return: Destination URL and the form fields storage expects.
        """
        self._validate_name(name)
        body = {
            "name": name,
            "type": FileType.FILE.value,
            "path": normalize_path(path),
            "size": size,
        }
        data = await self._request("POST", self._files_url(bucket_id), CredentialError, json=body)
        if not data:
            raise CredentialError("Empty upload credential response")

        logger.debug("Upload slot issued", extra={"file_name": name, "bucket_id": bucket_id})
        return UploadCredential.model_validate(data)

    async def create_folder(self, name: str, path: str, bucket_id: Optional[str] = None) -> Optional[dict]:
        self._validate_name(name)
        body = {
            "name": name,
            "type": FileType.FOLDER.value,
            "path": normalize_path(path),
        }
        logger.info("Creating folder", extra={"folder_name": name, "path": path, "bucket_id": bucket_id})
        return await self._request("POST", self._files_url(bucket_id), json=body)

    @staticmethod
    def _files_url(bucket_id: Optional[str]) -> str:
        return f"/buckets/{bucket_id}/files" if bucket_id else "/files"

    def _validate_name(self, name: str):
        if not name or name.strip() == "":
            raise CredentialError("File name cannot be empty.")

        if re.search(r"[/\\]", name) or name in (".", ".."):
            raise CredentialError(f"Invalid file name: {name}")

        if len(name) > self._max_file_name_length:
            raise CredentialError(
                f"File name is too long. Maximum length is {self._max_file_name_length} characters."
            )


class BucketClient(ApiClient):
    async def get_bucket(self, bucket_id: str) -> Bucket:
        data = await self._request("GET", f"/buckets/{bucket_id}")
        return Bucket.model_validate(data)

    async def delete_file(self, bucket_id: str, file_id: str) -> None:
        logger.info("Deleting file", extra={"bucket_id": bucket_id, "file_id": file_id})
        await self._request("DELETE", f"/buckets/{bucket_id}/files/{file_id}")
