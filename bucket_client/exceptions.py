from typing import Optional

from fastapi import HTTPException, status


class ApiError(Exception):
    """
    Control plane call failed: network error or non-2xx answer.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CredentialError(ApiError):
    """
    Upload credential could not be issued.
    """


class DownloadError(ApiError):
    """
    Download URL could not be issued.
    """


class TransportError(Exception):
    """
    Storage write or read failed, was rejected or was aborted.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


TransferNotFound = HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transfer not found")
