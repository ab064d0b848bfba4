"""
router.py

HTTP surface consumed by the UI shell. Every handler is a thin wrapper over the
transfer manager, the download client or the bucket service stored on `app.state`.

Classes and Functions:
----------------------
- router: An instance of `APIRouter` that groups and registers API endpoints.
- Upload routes: start uploads, read the transfer list, cancel a transfer.
- Bucket routes: list a folder, create a folder, download and delete a file.
"""
from typing import Annotated

from fastapi import APIRouter, Form, Response, UploadFile, status
from fastapi.responses import FileResponse, JSONResponse

from bucket_client.dependencies import (
    BucketServiceDep,
    DownloadClientDep,
    TransferManagerDep,
)
from bucket_client.exceptions import TransferNotFound
from bucket_client.logger import get_logger
from bucket_client.models import FileView, FolderCreate, TransferView, UploadPayload, UploadsView
from bucket_client.services import file_view, transfer_view

logger = get_logger(__name__)
router = APIRouter()


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """
    Health check endpoint to verify that the service is running.

    :return: JSON response indicating the health status of the service.
    """
    logger.info("Called /health")
    return JSONResponse({"status": "ok", "message": "Service is running"})


@router.post("/buckets/{bucket_id}/uploads", status_code=status.HTTP_202_ACCEPTED)
async def start_upload(
        bucket_id: str,
        files: list[UploadFile],
        manager: TransferManagerDep,
        path: Annotated[str, Form()] = "/",
) -> list[TransferView]:
    """
    Start one upload per submitted file. Returns as soon as the transfers are registered.

    :param bucket_id: Target bucket.
    :param files: Files to upload.
    :param path: Folder path inside the bucket.
    :return: The new transfers, all uploading.
    """
    logger.info("Called /uploads", extra={"bucket_id": bucket_id, "path": path})

    payloads = []
    for file in files:
        content = await file.read()
        payloads.append(UploadPayload(name=file.filename, content=content, content_type=file.content_type))

    transfer_ids = manager.start_upload(payloads, path, bucket_id)
    return [transfer_view(manager.get(transfer_id)) for transfer_id in transfer_ids]


@router.get("/uploads", response_model=UploadsView)
async def list_uploads(manager: TransferManagerDep) -> UploadsView:
    """
    :return: Every known transfer in creation order, with counters.
    """
    return UploadsView(
        transfers=[transfer_view(transfer) for transfer in manager.transfers],
        summary=manager.summary(),
    )


@router.delete("/uploads/{transfer_id}")
async def cancel_upload(transfer_id: str, manager: TransferManagerDep):
    """
    Abort a running upload. The transfer ends as failed.

    404:
        {
            "detail": "Transfer not found"
        }
    """
    logger.info("Called /uploads cancel", extra={"transfer_id": transfer_id})
    if manager.get(transfer_id) is None:
        raise TransferNotFound

    cancelled = manager.cancel(transfer_id)
    return JSONResponse({"cancelled": cancelled})


@router.get("/buckets/{bucket_id}/ls", response_model=list[FileView])
@router.get("/buckets/{bucket_id}/ls/{file_path:path}", response_model=list[FileView])
async def ls(bucket_id: str, bucket_service: BucketServiceDep, file_path: str = "/") -> list[FileView]:
    """
    :param bucket_id: Bucket to list.
    :param file_path: Folder path to list, root when omitted.
    :return: list[FileView]: Direct children of the folder. Empty for unknown paths.
    """
    logger.info("Called /ls", extra={"bucket_id": bucket_id, "file_path": file_path})
    records = await bucket_service.list_files(bucket_id, file_path)
    return [file_view(record) for record in records]


@router.post("/buckets/{bucket_id}/folders", status_code=status.HTTP_201_CREATED)
async def create_folder(bucket_id: str, folder: FolderCreate, manager: TransferManagerDep):
    logger.info("Called /folders", extra={"bucket_id": bucket_id, "folder_name": folder.name})
    await manager.create_folder(folder.name, folder.path, bucket_id)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"name": folder.name, "path": folder.path},
    )


@router.get("/buckets/{bucket_id}/files/{file_id}/download", response_class=FileResponse)
async def download_file(bucket_id: str, file_id: str, filename: str, download_client: DownloadClientDep):
    """
    Fetch a file from storage through a short-lived URL and hand it back.

    :param bucket_id: Bucket holding the file.
    :param file_id: File to download.
    :param filename: Name to save the file under.
    :return: The saved file.
    """
    logger.info("Called /download", extra={"bucket_id": bucket_id, "file_id": file_id})
    save_path = await download_client.download_file(bucket_id, file_id, filename)
    return FileResponse(save_path, filename=save_path.name)


@router.delete("/buckets/{bucket_id}/files/{file_id}")
async def delete_file(bucket_id: str, file_id: str, bucket_service: BucketServiceDep):
    """
    :param bucket_id: Bucket holding the file.
    :param file_id: File to delete.
    :return: no content
    """
    logger.info("Called /delete", extra={"bucket_id": bucket_id, "file_id": file_id})
    await bucket_service.delete_file(bucket_id, file_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
