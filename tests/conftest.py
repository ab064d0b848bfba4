import json

import httpx
import pytest

from bucket_client.api import BucketClient, PresignedUploadClient
from bucket_client.download import DownloadClient
from bucket_client.manager import TransferManager
from bucket_client.transfer import TransferWorker

API_URL = "http://api.test"
STORAGE_URL = "http://storage.test"

CREDENTIAL_FIELDS = {
    "bucket": "safe",
    "key": "buckets/b1/key",
    "policy": "cG9saWN5",
    "x-amz-algorithm": "AWS4-HMAC-SHA256",
    "x-amz-credential": "cred",
    "x-amz-date": "20240101T000000Z",
    "x-amz-signature": "sig",
}


class FakeBackend:
    """
    Control plane and storage double, routed by host.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.created: list[dict] = []
        self.failing_credentials: set[str] = set()
        self.failing_uploads: set[str] = set()
        self.storage_status = 204
        self.objects: dict[str, bytes] = {}
        self.records: list[dict] = []
        self.locked_files: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "storage.test":
            return self._storage(request)
        return self._api(request)

    def _api(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        parts = path.strip("/").split("/")

        if request.method == "POST" and parts[-1] == "files":
            body = json.loads(request.content)
            if body["name"] in self.failing_credentials:
                return httpx.Response(400, json={"error": [f"cannot create {body['name']}"]})
            self.created.append(body)
            file_id = f"f{len(self.created)}"
            return httpx.Response(201, json={
                "id": file_id,
                "path": body["path"],
                "url": f"{STORAGE_URL}/upload",
                "body": dict(CREDENTIAL_FIELDS, key=f"buckets/b1/{file_id}"),
            })

        if request.method == "GET" and path.endswith("/download"):
            file_id = parts[-2]
            return httpx.Response(200, json={"url": f"{STORAGE_URL}/objects/{file_id}"})

        if request.method == "DELETE":
            if parts[-1] in self.locked_files:
                return httpx.Response(403, json={"error": ["FORBIDDEN"]})
            return httpx.Response(204)

        if request.method == "GET" and len(parts) == 2 and parts[0] == "buckets":
            if parts[1] != "b1":
                return httpx.Response(404, json={"error": ["BUCKET_NOT_FOUND"]})
            return httpx.Response(200, json={
                "id": "b1",
                "name": "Holidays",
                "created_by": "u1",
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z",
                "files": self.records,
            })

        return httpx.Response(404, json={"error": ["NOT_FOUND"]})

    def _storage(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            for name in self.failing_uploads:
                if f'filename="{name}"'.encode() in request.content:
                    return httpx.Response(403)
            return httpx.Response(self.storage_status)

        object_id = request.url.path.rsplit("/", 1)[-1]
        if object_id not in self.objects:
            return httpx.Response(404)
        return httpx.Response(200, content=self.objects[object_id])

    def requests_to(self, host: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.host == host]


class RecordingNotifier:
    def __init__(self):
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, title: str, message: str) -> None:
        self.successes.append(message)

    def error(self, title: str, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def api_client(backend):
    return httpx.AsyncClient(
        transport=httpx.MockTransport(backend.handler),
        base_url=API_URL,
        headers={"Authorization": "Bearer token"},
    )


@pytest.fixture
def storage_client(backend):
    return httpx.AsyncClient(transport=httpx.MockTransport(backend.handler))


@pytest.fixture
def upload_client(api_client):
    return PresignedUploadClient(api_client)


@pytest.fixture
def bucket_client(api_client):
    return BucketClient(api_client)


@pytest.fixture
def worker(storage_client):
    return TransferWorker(storage_client, chunk_size=1024)


@pytest.fixture
def manager(upload_client, worker, notifier):
    return TransferManager(upload_client, worker, notifier)


@pytest.fixture
def download_client(api_client, storage_client, notifier, tmp_path):
    return DownloadClient(api_client, storage_client, tmp_path / "downloads", notifier)
