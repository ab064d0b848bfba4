from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from bucket_client.api import (
    BucketClient,
    PresignedUploadClient,
    create_api_client,
    create_storage_client,
)
from bucket_client.download import DownloadClient
from bucket_client.exceptions import ApiError, TransportError
from bucket_client.logger import get_logger, setup_logging
from bucket_client.manager import TransferManager
from bucket_client.notifications import LoggingNotifier
from bucket_client.router import router
from bucket_client.services import BucketService
from bucket_client.settings import Settings
from bucket_client.transfer import TransferWorker


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the clients and the transfer manager once, and dispose of them on shutdown.

    :param app: FastAPI application
    :return:
    """
    settings = getattr(app.state, "settings", None) or Settings()
    setup_logging(settings.LOGGER_CONFIG_PATH)

    api_client = getattr(app.state, "api_client", None) or create_api_client(settings)
    storage_client = getattr(app.state, "storage_client", None) or create_storage_client(settings)
    notifier = LoggingNotifier()

    worker = TransferWorker(
        storage_client,
        chunk_size=settings.CHUNK_SIZE,
        file_field=settings.UPLOAD_FILE_FIELD,
        success_statuses=settings.UPLOAD_SUCCESS_STATUSES,
    )
    upload_client = PresignedUploadClient(api_client, settings.MAX_FILE_NAME_LENGTH)

    app.state.settings = settings
    app.state.transfer_manager = TransferManager(upload_client, worker, notifier)
    app.state.download_client = DownloadClient(
        api_client, storage_client, settings.DOWNLOAD_DATA_PATH, notifier
    )
    app.state.bucket_service = BucketService(BucketClient(api_client), notifier)

    logger.info("Bucket client started", extra={"api_url": settings.API_URL})
    yield

    await app.state.transfer_manager.aclose()
    await api_client.aclose()
    await storage_client.aclose()


def create_app(**state) -> FastAPI:
    """
    :param state: Pre-built objects placed on `app.state` before startup
        (settings, api_client, storage_client).
    """
    app = FastAPI(lifespan=lifespan)
    for key, value in state.items():
        setattr(app.state, key, value)
    app.include_router(router)

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        status_code = exc.status_code
        if status_code is None or status_code >= 500:
            status_code = status.HTTP_502_BAD_GATEWAY
        return JSONResponse(status_code=status_code, content={"detail": exc.message})

    @app.exception_handler(TransportError)
    async def transport_error_handler(request: Request, exc: TransportError):
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": exc.message})

    return app


app = create_app()
