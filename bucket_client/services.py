"""
services.py

Bucket-level operations used by the route handlers: listing a folder through the
content tree and deleting files, with user notifications on both outcomes.
"""
from typing import Optional

from bucket_client.api import BucketClient
from bucket_client.exceptions import ApiError
from bucket_client.logger import get_logger
from bucket_client.models import FileRecord, FileView, Transfer, TransferStatus, TransferView
from bucket_client.notifications import LoggingNotifier, Notifier
from bucket_client.tree import ContentTree, file_category, is_folder

logger = get_logger(__name__)


class BucketService:
    def __init__(self, bucket_client: BucketClient, notifier: Optional[Notifier] = None):
        self._bucket_client = bucket_client
        self._notifier = notifier or LoggingNotifier()

    async def content_tree(self, bucket_id: str) -> ContentTree:
        bucket = await self._bucket_client.get_bucket(bucket_id)
        return ContentTree.from_bucket(bucket)

    async def list_files(self, bucket_id: str, path: str = "/") -> list[FileRecord]:
        tree = await self.content_tree(bucket_id)
        return tree.children_of(path)

    async def delete_file(self, bucket_id: str, file_id: str, filename: Optional[str] = None) -> None:
        try:
            await self._bucket_client.delete_file(bucket_id, file_id)
        except ApiError as e:
            self._notifier.error("Error", e.message)
            raise
        self._notifier.success("Success", f"File {filename or file_id} has been deleted.")


def format_size(size: int) -> str:
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} PB"


def status_text(status: TransferStatus, progress: int) -> str:
    if status is TransferStatus.SUCCESS:
        return "Completed"
    if status is TransferStatus.FAILED:
        return "Failed"
    if progress == 0:
        return "Preparing..."
    return f"{progress}%"


def file_view(record: FileRecord) -> FileView:
    return FileView(
        id=record.id,
        name=record.name,
        type=record.kind,
        category=file_category(record),
        path=record.path,
        size=None if is_folder(record) else record.size,
        size_human=None if is_folder(record) or record.size is None else format_size(record.size),
    )


def transfer_view(transfer: Transfer) -> TransferView:
    return TransferView(
        id=transfer.id,
        name=transfer.name,
        path=transfer.path,
        progress=transfer.progress,
        status=transfer.status,
        status_text=status_text(transfer.status, transfer.progress),
        error=transfer.error,
    )
