"""
manager.py

Upload orchestration.

`TransferManager` is the only writer of transfer state. Every payload passed to
`start_upload` gets its transfer registered right away and then runs in its own
asyncio task: request a credential, stream the payload to storage, fold the
progress and the final status back into the store. A failing transfer never
touches its siblings.
"""
import asyncio
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from bucket_client.api import PresignedUploadClient
from bucket_client.exceptions import ApiError, CredentialError, TransportError
from bucket_client.logger import get_logger
from bucket_client.models import Transfer, TransferStatus, TransferSummary, UploadPayload
from bucket_client.notifications import LoggingNotifier, Notifier
from bucket_client.store import (
    Listener,
    ProgressUpdated,
    Started,
    StatusUpdated,
    TransferState,
    TransferStore,
    summarize,
)
from bucket_client.transfer import TransferWorker
from bucket_client.tree import join_path, normalize_path

logger = get_logger(__name__)


class TransferManager:
    def __init__(
        self,
        upload_client: PresignedUploadClient,
        worker: TransferWorker,
        notifier: Optional[Notifier] = None,
        store: Optional[TransferStore] = None,
    ):
        self._upload_client = upload_client
        self._worker = worker
        self._notifier = notifier or LoggingNotifier()
        self._store = store or TransferStore()
        self._tasks: dict[str, asyncio.Task] = {}

    async def __aenter__(self) -> "TransferManager":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    @property
    def transfers(self) -> TransferState:
        return self._store.state

    def get(self, transfer_id: str) -> Optional[Transfer]:
        return self._store.get(transfer_id)

    def summary(self) -> TransferSummary:
        return summarize(self._store.state)

    def subscribe(self, listener: Listener):
        return self._store.subscribe(listener)

    def apply_progress(self, transfer_id: str, progress: int) -> None:
        self._store.dispatch(ProgressUpdated(id=transfer_id, progress=progress))

    def apply_status(self, transfer_id: str, status: TransferStatus, error: Optional[str] = None) -> None:
        self._store.dispatch(StatusUpdated(id=transfer_id, status=status, error=error))

    def start_upload(
        self,
        payloads: Iterable[UploadPayload],
        target_path: str = "/",
        bucket_id: Optional[str] = None,
    ) -> list[str]:
        """
        Register one transfer per payload and start them all concurrently.

        Must be called from a running event loop.

        :param payloads: Files to upload.
        :param target_path: Folder path the files land in.
        :param bucket_id: Target bucket.
        :return: Ids of the new transfers, in payload order.
        """
        # Fails before any transfer is registered when no loop is running
        asyncio.get_running_loop()
        target_path = normalize_path(target_path)
        transfer_ids = []

        for payload in payloads:
            transfer_id = str(uuid.uuid4())
            self._store.dispatch(
                Started(id=transfer_id, name=payload.name, path=target_path, bucket_id=bucket_id)
            )
            task = asyncio.create_task(
                self._run_transfer(transfer_id, payload, target_path, bucket_id),
                name=f"upload-{transfer_id}",
            )
            self._tasks[transfer_id] = task
            task.add_done_callback(lambda done, key=transfer_id: self._on_task_done(key, done))
            transfer_ids.append(transfer_id)

        logger.info(
            f"Started {len(transfer_ids)} upload(s)",
            extra={"path": target_path, "bucket_id": bucket_id},
        )
        return transfer_ids

    async def upload_directory(
        self,
        local_dir: str | Path,
        target_path: str = "/",
        bucket_id: Optional[str] = None,
    ) -> list[str]:
        """
        Recreate a local directory under `target_path` and upload every file in it.

        Folders are created first, parents before children. Files are then started
        at their own folder path.

        :param local_dir: Directory on disk.
        :param target_path: Folder path the directory lands in.
        :param bucket_id: Target bucket.
        :return: Ids of the new transfers.
        """
        local_dir = Path(local_dir).resolve()
        if not local_dir.is_dir():
            raise NotADirectoryError(f"Not a directory: {local_dir}")

        root = join_path(target_path, local_dir.name)
        entries = sorted(local_dir.rglob("*"))
        folders = [root] + [
            join_path(root, entry.relative_to(local_dir).as_posix())
            for entry in entries
            if entry.is_dir()
        ]
        await self._create_folders(folders, bucket_id)

        transfer_ids = []
        for entry in entries:
            if not entry.is_file():
                continue
            location = join_path(root, entry.parent.relative_to(local_dir).as_posix())
            payload = await UploadPayload.from_path(entry)
            transfer_ids.extend(self.start_upload([payload], location, bucket_id))
        return transfer_ids

    async def create_folder(self, name: str, path: str = "/", bucket_id: Optional[str] = None) -> None:
        try:
            await self._upload_client.create_folder(name, path, bucket_id)
        except ApiError as e:
            self._notifier.error("Error", e.message)
            raise
        self._notifier.success("Success", f"Folder {name} has been created.")

    def cancel(self, transfer_id: str) -> bool:
        task = self._tasks.get(transfer_id)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def join(self) -> TransferState:
        """
        Wait until every started transfer is terminal.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)
        return self._store.state

    async def aclose(self) -> None:
        for task in list(self._tasks.values()):
            task.cancel()
        await self.join()

    def _on_task_done(self, transfer_id: str, task: asyncio.Task):
        self._tasks.pop(transfer_id, None)
        # A task cancelled before its first step never enters _run_transfer
        if task.cancelled():
            logger.info("Upload cancelled", extra={"transfer_id": transfer_id})
            self.apply_status(transfer_id, TransferStatus.FAILED, error="Transfer cancelled")

    async def _create_folders(self, folders: list[str], bucket_id: Optional[str]):
        by_depth: dict[int, list[str]] = {}
        for folder in folders:
            by_depth.setdefault(folder.count("/"), []).append(folder)

        for depth in sorted(by_depth):
            await asyncio.gather(*[
                self.create_folder(folder.rsplit("/", 1)[-1], folder.rsplit("/", 1)[0] or "/", bucket_id)
                for folder in by_depth[depth]
            ])

    async def _run_transfer(
        self,
        transfer_id: str,
        payload: UploadPayload,
        target_path: str,
        bucket_id: Optional[str],
    ):
        try:
            credential = await self._upload_client.request_upload_slot(
                payload.name, target_path, bucket_id, size=payload.size
            )
            self._notifier.success("Uploading", f"Upload started for {payload.name}")
            await self._worker.run(
                credential,
                payload,
                on_progress=lambda progress: self.apply_progress(transfer_id, progress),
            )
        except (CredentialError, TransportError) as e:
            logger.error(f"Upload of {payload.name} failed: {e.message}", extra={"transfer_id": transfer_id})
            self.apply_status(transfer_id, TransferStatus.FAILED, error=e.message)
            return
        except Exception as e:
            logger.exception(f"Unexpected error while uploading {payload.name}")
            self.apply_status(transfer_id, TransferStatus.FAILED, error=str(e))
            return

        logger.info(f"Upload of {payload.name} finished", extra={"transfer_id": transfer_id})
        self.apply_status(transfer_id, TransferStatus.SUCCESS)
