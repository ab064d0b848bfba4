"""
tree.py

Hierarchical view over a bucket's flat list of file and folder records.

Records are addressed by their parent path, the root being "/". A folder named
"docs" stored at "/" lists its own children at "/docs".

Functions:
----------
- is_folder: The one folder/file predicate, shared by every caller.
- children_of: Records directly under a path.
- ContentTree: Index built once per record list, for repeated lookups.
"""
from collections import defaultdict
from collections.abc import Iterable, Sequence

from bucket_client.models import Bucket, FileRecord, FileType

ROOT = "/"

_FILE_CATEGORIES = {
    "text": ("txt", "md", "html", "xml", "json", "csv"),
    "image": ("jpg", "jpeg", "png", "gif", "bmp", "svg", "webp"),
    "audio": ("mp3", "wav", "ogg", "flac", "aac"),
    "video": ("mp4", "avi", "mkv", "mov", "webm"),
    "document": ("pdf", "doc", "docx", "ppt", "pptx", "xls", "xlsx"),
    "archive": ("zip", "rar", "7z", "tar", "gz"),
    "executable": ("exe", "sh", "bat", "jar"),
}
_CATEGORY_BY_EXTENSION = {
    extension: category
    for category, extensions in _FILE_CATEGORIES.items()
    for extension in extensions
}


def is_folder(record: FileRecord) -> bool:
    return record.kind is FileType.FOLDER


def is_file(record: FileRecord) -> bool:
    return not is_folder(record)


def file_category(record: FileRecord) -> str:
    """
    Coarse category used to pick an icon for a record.

    :param record: File or folder record.
    :return: One of text, image, audio, video, document, archive, executable, folder or unknown.
    """
    if is_folder(record):
        return "folder"
    return _CATEGORY_BY_EXTENSION.get(record.extension.lower().lstrip("."), "unknown")


def normalize_path(path: str | None) -> str:
    """
    "", None, "/", "a", "/a/" and "//a" all map to either "/" or "/a".
    """
    if not path:
        return ROOT
    parts = [part for part in path.split("/") if part and part != "."]
    return ROOT + "/".join(parts)


def join_path(parent: str, name: str) -> str:
    parent = normalize_path(parent)
    if parent == ROOT:
        return normalize_path(name)
    return normalize_path(f"{parent}/{name}")


def parent_location(path: str) -> str:
    path = normalize_path(path)
    if path == ROOT:
        return ROOT
    return normalize_path(path.rsplit("/", 1)[0])


def breadcrumbs(path: str) -> list[tuple[str, str]]:
    """
    Name and location of every level from the root down to `path`.

    :param path: Current location.
    :return: [("/", "/"), ("a", "/a"), ("b", "/a/b")] for "/a/b".
    """
    crumbs = [(ROOT, ROOT)]
    location = ROOT
    for part in normalize_path(path).split("/"):
        if part:
            location = join_path(location, part)
            crumbs.append((part, location))
    return crumbs


def folder_location(record: FileRecord) -> str:
    """
    Location that lists the children of a folder record.
    """
    if not is_folder(record):
        raise ValueError(f"{record.name} is not a folder")
    return join_path(record.path, record.name)


class ContentTree:
    """
    Index of records by parent path.

    Built in a single pass; every record lands under exactly one location.
    Holds no state besides the index, so it is safe to rebuild on every poll.
    """

    def __init__(self, records: Iterable[FileRecord]):
        index: dict[str, list[FileRecord]] = defaultdict(list)
        for record in records:
            index[normalize_path(record.path)].append(record)
        self._index = dict(index)

    @classmethod
    def from_bucket(cls, bucket: Bucket) -> "ContentTree":
        return cls(bucket.files)

    def children_of(self, location: str | None = ROOT) -> list[FileRecord]:
        return list(self._index.get(normalize_path(location), ()))

    def folders_of(self, location: str | None = ROOT) -> list[FileRecord]:
        return [record for record in self.children_of(location) if is_folder(record)]

    def files_of(self, location: str | None = ROOT) -> list[FileRecord]:
        return [record for record in self.children_of(location) if is_file(record)]

    def open(self, folder: FileRecord) -> list[FileRecord]:
        return self.children_of(folder_location(folder))

    def locations(self) -> list[str]:
        return sorted(self._index)

    def __contains__(self, location: str) -> bool:
        return normalize_path(location) in self._index


def children_of(records: Sequence[FileRecord], location: str | None = ROOT) -> list[FileRecord]:
    return ContentTree(records).children_of(location)
