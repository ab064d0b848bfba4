import json

import httpx
import pytest

from bucket_client.api import PresignedUploadClient, create_api_client, error_message
from bucket_client.exceptions import ApiError, CredentialError
from bucket_client.settings import Settings

from conftest import CREDENTIAL_FIELDS


@pytest.mark.asyncio
async def test_request_upload_slot(upload_client, backend):
    credential = await upload_client.request_upload_slot("notes.txt", "/docs/", "b1", size=12)

    request = backend.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/buckets/b1/files"
    assert request.headers["Authorization"] == "Bearer token"
    assert json.loads(request.content) == {"name": "notes.txt", "type": "file", "path": "/docs", "size": 12}

    assert credential.id == "f1"
    assert credential.url == "http://storage.test/upload"
    assert credential.fields == dict(CREDENTIAL_FIELDS, key="buckets/b1/f1")


@pytest.mark.asyncio
async def test_request_upload_slot_without_bucket(upload_client, backend):
    await upload_client.request_upload_slot("notes.txt")

    assert backend.requests[0].url.path == "/files"


@pytest.mark.asyncio
async def test_backend_error_becomes_credential_error(upload_client, backend):
    backend.failing_credentials.add("bad.txt")

    with pytest.raises(CredentialError) as exc_info:
        await upload_client.request_upload_slot("bad.txt", "/", "b1")

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "cannot create bad.txt"


@pytest.mark.asyncio
async def test_network_error_becomes_credential_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://api.test")

    with pytest.raises(CredentialError) as exc_info:
        await PresignedUploadClient(client).request_upload_slot("a.txt")

    assert exc_info.value.status_code is None


@pytest.mark.parametrize("name", ["", "   ", "a/b.txt", "a\\b.txt", "..", "x" * 300])
@pytest.mark.asyncio
async def test_invalid_names_never_reach_backend(upload_client, backend, name):
    with pytest.raises(CredentialError):
        await upload_client.request_upload_slot(name, "/", "b1")

    assert backend.requests == []


@pytest.mark.asyncio
async def test_create_folder(upload_client, backend):
    await upload_client.create_folder("photos", "/docs", "b1")

    assert json.loads(backend.requests[0].content) == {"name": "photos", "type": "folder", "path": "/docs"}


@pytest.mark.asyncio
async def test_get_bucket(bucket_client, backend):
    backend.records = [
        {"id": "1", "name": "docs", "path": "/", "type": "folder", "created_at": "2024-01-01T00:00:00Z"},
        {"id": "2", "name": "a.txt", "extension": "txt", "size": 3, "path": "/docs", "type": "file"},
    ]

    bucket = await bucket_client.get_bucket("b1")

    assert bucket.name == "Holidays"
    assert [f.id for f in bucket.files] == ["1", "2"]
    assert bucket.files[1].extension == "txt"


@pytest.mark.asyncio
async def test_get_unknown_bucket(bucket_client):
    with pytest.raises(ApiError) as exc_info:
        await bucket_client.get_bucket("b2")

    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "BUCKET_NOT_FOUND"


@pytest.mark.asyncio
async def test_delete_file(bucket_client, backend):
    await bucket_client.delete_file("b1", "f1")

    assert backend.requests[0].method == "DELETE"
    assert backend.requests[0].url.path == "/buckets/b1/files/f1"


def test_error_message():
    assert error_message(httpx.Response(400, json={"error": ["first", "second"]})) == "first"
    assert error_message(httpx.Response(400, json={"error": "plain"})) == "plain"
    assert error_message(httpx.Response(502, text="<html>")) == "502 Bad Gateway"


def test_api_client_carries_token():
    client = create_api_client(Settings(API_URL="http://api.test/v1", API_TOKEN="secret"))

    assert client.headers["Authorization"] == "Bearer secret"
    assert str(client.base_url) == "http://api.test/v1/"


def test_api_client_without_token():
    client = create_api_client(Settings(API_URL="http://api.test", API_TOKEN=None))

    assert "Authorization" not in client.headers
