from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

import aiofiles
from pydantic import BaseModel, ConfigDict, Field


class FileType(Enum):
    FOLDER = "folder"
    FILE = "file"


class FileRecord(BaseModel):
    """
    A file or folder as listed by the backend.

    Folders carry no extension. The kind is derived from that and never stored,
    see `kind` and `bucket_client.tree.is_folder`.
    """
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    size: Optional[int] = None
    extension: Optional[str] = None
    path: str = "/"
    files: list["FileRecord"] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    trashed_at: Optional[datetime] = None

    @property
    def kind(self) -> FileType:
        return FileType.FOLDER if self.extension is None else FileType.FILE


class Bucket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    files: list[FileRecord] = Field(default_factory=list)


class UploadCredential(BaseModel):
    """
    Presigned POST issued by the control plane.

    `fields` is sent back to storage verbatim and never interpreted.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    path: Optional[str] = None
    url: str
    fields: dict[str, str] = Field(default_factory=dict, alias="body")


class DownloadLink(BaseModel):
    url: str


class TransferStatus(Enum):
    UPLOADING = "uploading"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransferStatus.UPLOADING


class Transfer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    path: str
    bucket_id: Optional[str] = None
    progress: int = Field(default=0, ge=0, le=100)
    status: TransferStatus = TransferStatus.UPLOADING
    error: Optional[str] = None


class TransferSummary(BaseModel):
    total: int
    active: int
    completed: int
    failed: int


class UploadPayload(BaseModel):
    name: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    async def from_path(cls, file_path: str | Path, name: Optional[str] = None) -> "UploadPayload":
        file_path = Path(file_path)
        async with aiofiles.open(file_path, "rb") as f:
            content = await f.read()
        return cls(name=name or file_path.name, content=content)


class FileView(BaseModel):
    id: str
    name: str
    type: FileType
    category: str
    path: str
    size: Optional[int] = None
    size_human: Optional[str] = None


class TransferView(BaseModel):
    id: str
    name: str
    path: str
    progress: int
    status: TransferStatus
    status_text: str
    error: Optional[str] = None


class UploadsView(BaseModel):
    transfers: list[TransferView]
    summary: TransferSummary


class FolderCreate(BaseModel):
    name: str
    path: str = "/"
