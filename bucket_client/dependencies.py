from typing import Annotated

from fastapi import Depends, Request

from bucket_client.download import DownloadClient
from bucket_client.manager import TransferManager
from bucket_client.services import BucketService
from bucket_client.settings import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_transfer_manager(request: Request) -> TransferManager:
    return request.app.state.transfer_manager


def get_download_client(request: Request) -> DownloadClient:
    return request.app.state.download_client


def get_bucket_service(request: Request) -> BucketService:
    return request.app.state.bucket_service


SettingsDep = Annotated[Settings, Depends(get_settings)]
TransferManagerDep = Annotated[TransferManager, Depends(get_transfer_manager)]
DownloadClientDep = Annotated[DownloadClient, Depends(get_download_client)]
BucketServiceDep = Annotated[BucketService, Depends(get_bucket_service)]
