"""
transfer.py

Direct-to-storage upload of a single payload against a presigned POST credential.
"""
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Optional

import httpx

from bucket_client.exceptions import TransportError
from bucket_client.logger import get_logger
from bucket_client.models import UploadCredential, UploadPayload

logger = get_logger(__name__)

ProgressCallback = Callable[[int], None]


def percent(sent: int, total: int) -> int:
    if total <= 0:
        return 100
    return max(0, min(100, round(sent / total * 100)))


class TransferWorker:
    """
    Sends one payload to storage as a multipart form: the credential fields first,
    then the file. Progress is reported as cumulative integer percentages of the
    encoded body, only when the value changes.

    No timeout and no retry: one failed attempt is final.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        chunk_size: int = 64 * 1024,
        file_field: str = "file",
        success_statuses: Iterable[int] = (200, 204),
    ):
        self._client = client
        self._chunk_size = chunk_size
        self._file_field = file_field
        self._success_statuses = frozenset(success_statuses)

    async def run(
        self,
        credential: UploadCredential,
        payload: UploadPayload,
        on_progress: Optional[ProgressCallback] = None,
    ) -> httpx.Response:
        """
        :param credential: Destination URL and opaque form fields.
        :param payload: File to send.
        :param on_progress: Receives 0..100 as bytes leave the client.
        :return: Storage response, only when its status is a success status.
        """
        request = self._build_request(credential, payload, on_progress)

        logger.debug(f"Uploading {payload.name} to storage", extra={"size": payload.size})
        try:
            response = await self._client.send(request)
        except httpx.HTTPError as e:
            logger.error(f"Upload of {payload.name} failed: {str(e)}")
            raise TransportError(f"Upload of {payload.name} failed: {str(e)}") from e

        if response.status_code not in self._success_statuses:
            logger.error(f"Storage rejected {payload.name} with status {response.status_code}")
            raise TransportError(
                f"Storage rejected {payload.name} with status {response.status_code}",
                status_code=response.status_code,
            )

        return response

    def _build_request(
        self,
        credential: UploadCredential,
        payload: UploadPayload,
        on_progress: Optional[ProgressCallback],
    ) -> httpx.Request:
        file = (payload.name, payload.content, payload.content_type or "application/octet-stream")
        form = self._client.build_request(
            "POST",
            credential.url,
            data=credential.fields,
            files={self._file_field: file},
        )
        # The multipart encoder knows the exact body length up front
        total = int(form.headers["Content-Length"])

        return httpx.Request(
            form.method,
            form.url,
            headers=form.headers,
            content=self._counting_stream(form.stream, total, on_progress),
        )

    async def _counting_stream(
        self,
        stream: AsyncIterator[bytes],
        total: int,
        on_progress: Optional[ProgressCallback],
    ) -> AsyncIterator[bytes]:
        sent = 0
        last = None
        async for chunk in stream:
            for start in range(0, len(chunk), self._chunk_size):
                piece = chunk[start:start + self._chunk_size]
                yield piece
                sent += len(piece)

                value = percent(sent, total)
                if on_progress is not None and value != last:
                    last = value
                    on_progress(value)
