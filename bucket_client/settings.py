from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_URL: str = "http://localhost:8080/api/v1"
    API_TOKEN: Optional[str] = None

    UPLOAD_FILE_FIELD: str = "file"
    UPLOAD_SUCCESS_STATUSES: list[int] = [200, 204]

    CHUNK_SIZE: int = 64 * 1024

    DOWNLOAD_DATA_PATH: str = "/downloads"

    # None disables timeouts for both the control plane and storage
    REQUEST_TIMEOUT: Optional[float] = None

    MAX_FILE_NAME_LENGTH: int = 255

    LOGGER_CONFIG_PATH: str = "logger.json"

    # class Config:
    #     env_file = ".env"
