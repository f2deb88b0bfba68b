"""
Tests for the email transport and blob storage HTTP clients.
"""
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from broadcaster.delivery.blob_store import StorageBlobStore, object_path
from broadcaster.delivery.transport import OutboundEmail, ResendTransport
from broadcaster.errors import BlobUploadError, TransportError


def mock_async_client(response=None, side_effect=None):
    client = AsyncMock()
    client.__aenter__.return_value = client
    client.__aexit__.return_value = None
    if side_effect is not None:
        client.post.side_effect = side_effect
    else:
        client.post.return_value = response
    return client


MESSAGE = OutboundEmail(
    sender="news@example.com",
    to=["a@example.com"],
    subject="Hi",
    html="<p>Hi</p>",
    tags={"broadcast_id": "b-1"},
)


class TestResendTransport:
    @pytest.mark.asyncio
    async def test_returns_message_id(self):
        client = mock_async_client(httpx.Response(200, json={"id": "re_123"}))

        with patch("httpx.AsyncClient", return_value=client):
            message_id = await ResendTransport("key", "https://api.resend.test").send(MESSAGE)

        assert message_id == "re_123"
        url = client.post.call_args.args[0]
        payload = client.post.call_args.kwargs["json"]
        assert url == "https://api.resend.test/emails"
        assert payload["from"] == "news@example.com"
        assert payload["tags"] == [{"name": "broadcast_id", "value": "b-1"}]
        assert client.post.call_args.kwargs["headers"]["Authorization"] == "Bearer key"

    @pytest.mark.asyncio
    async def test_rejection_raises(self):
        client = mock_async_client(httpx.Response(422, json={"message": "Invalid `to` field"}))

        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(TransportError) as exc:
                await ResendTransport("key").send(MESSAGE)

        assert exc.value.status_code == 422
        assert exc.value.message == "Invalid `to` field"

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        client = mock_async_client(side_effect=httpx.ReadTimeout("slow"))

        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(TransportError, match="timed out"):
                await ResendTransport("key").send(MESSAGE)

    @pytest.mark.asyncio
    async def test_missing_id_raises(self):
        client = mock_async_client(httpx.Response(200, json={}))

        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(TransportError):
                await ResendTransport("key").send(MESSAGE)

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        with pytest.raises(TransportError) as exc:
            await ResendTransport(None).send(MESSAGE)
        assert exc.value.status_code == 401


class TestStorageBlobStore:
    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self):
        client = mock_async_client(httpx.Response(200, json={"Key": "uploads/x"}))
        store = StorageBlobStore("https://storage.test/", "service-key", bucket="media")

        with patch("httpx.AsyncClient", return_value=client):
            url = await store.upload(5, b"bytes", "image/png")

        path = object_path(5, b"bytes", "image/png")
        assert url == f"https://storage.test/storage/v1/object/public/media/{path}"
        assert client.post.call_args.args[0] == f"https://storage.test/storage/v1/object/media/{path}"
        assert client.post.call_args.kwargs["headers"]["x-upsert"] == "true"

    @pytest.mark.asyncio
    async def test_upload_failure(self):
        client = mock_async_client(httpx.Response(413, text="Payload too large"))

        with patch("httpx.AsyncClient", return_value=client):
            with pytest.raises(BlobUploadError) as exc:
                await StorageBlobStore("https://storage.test", "service-key").upload(5, b"bytes", "image/png")

        assert exc.value.status_code == 413

    def test_object_path_is_content_addressed(self):
        assert object_path(1, b"same", "image/png") == object_path(1, b"same", "image/png")
        assert object_path(1, b"same", "image/png") != object_path(2, b"same", "image/png")
        assert object_path(1, b"same", "image/jpeg").endswith(".jpg")
