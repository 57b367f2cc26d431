import asyncio
from types import SimpleNamespace

import httpx
import pytest

from product_imager.errors import (
    ImageGenerationError,
    InvalidAuthorizationError,
    QuotaExceededError,
    StorageNotConfiguredError,
    StorageUploadError,
)
from product_imager.models.schemas import CredentialSet
from product_imager.services.authorization import ApiKeyAuthorization, DefaultAuthorization
from product_imager.services.image_backend import (
    GeminiImageClient,
    classify_api_error,
    extract_image,
)
from product_imager.services.storage_backend import BlobStorageClient, build_blob_path

CREDENTIALS = CredentialSet(
    storage_url="https://cdn.example.blob.core.windows.net",
    container="catalog",
    token="?sv=2024&sig=secret",
)


class ProviderError(Exception):
    def __init__(self, code, status, message):
        super().__init__(f"{code} {status}. {message}")
        self.code = code
        self.status = status


def image_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def inline_part(data, mime_type):
    return SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)


class StubModels:
    def __init__(self, response):
        self.response = response
        self.requests = []

    async def generate_content(self, **kwargs):
        self.requests.append(kwargs)
        return self.response


def stub_client(response):
    models = StubModels(response)
    return SimpleNamespace(aio=SimpleNamespace(models=models)), models


# ---------------------------------------------------------------------------
# Image backend
# ---------------------------------------------------------------------------
def test_classify_api_error():
    assert isinstance(classify_api_error(ProviderError(429, "RESOURCE_EXHAUSTED", "quota")), QuotaExceededError)
    assert isinstance(classify_api_error(ProviderError(400, "RESOURCE_EXHAUSTED", "quota")), QuotaExceededError)
    assert isinstance(
        classify_api_error(ProviderError(404, "NOT_FOUND", "Requested entity was not found.")),
        InvalidAuthorizationError,
    )
    assert isinstance(classify_api_error(ProviderError(500, "INTERNAL", "oops")), ImageGenerationError)


def test_extract_image_picks_first_inline_part():
    response = image_response(SimpleNamespace(inline_data=None, text="caption"), inline_part(b"png", "image/png"))

    image = extract_image(response)

    assert image.data == b"png"
    assert image.mime_type == "image/png"


def test_extract_image_defaults_mime_type():
    assert extract_image(image_response(inline_part(b"raw", None))).mime_type == "image/jpeg"


def test_extract_image_handles_empty_responses():
    assert extract_image(SimpleNamespace(candidates=None)) is None
    assert extract_image(SimpleNamespace(candidates=[SimpleNamespace(content=None)])) is None


def test_generate_sends_prompt_to_configured_model():
    client, models = stub_client(image_response(inline_part(b"png", "image/png")))
    backend = GeminiImageClient("key", "gemini-2.5-flash-image", client=client)

    image = asyncio.run(backend.generate("A lamp"))

    assert image.data == b"png"
    assert models.requests[0]["model"] == "gemini-2.5-flash-image"
    assert models.requests[0]["contents"] == "A lamp"


def test_generate_without_image_parts_fails():
    client, _ = stub_client(image_response(SimpleNamespace(inline_data=None, text="sorry")))
    backend = GeminiImageClient("key", "gemini-2.5-flash-image", client=client)

    with pytest.raises(ImageGenerationError):
        asyncio.run(backend.generate("A lamp"))


def test_generate_without_api_key_is_unauthorized():
    backend = GeminiImageClient(None, "gemini-2.5-flash-image")

    with pytest.raises(InvalidAuthorizationError):
        asyncio.run(backend.generate("A lamp"))


# ---------------------------------------------------------------------------
# Storage backend
# ---------------------------------------------------------------------------
def test_build_blob_path_uses_mime_subtype():
    assert build_blob_path("image/png").startswith("product-images/")
    assert build_blob_path("image/png").endswith(".png")
    assert build_blob_path("application").endswith(".jpg")
    assert build_blob_path("image/png") != build_blob_path("image/png")


def test_upload_puts_block_blob_and_returns_public_url():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201)

    client = BlobStorageClient(transport=httpx.MockTransport(handler))

    url = asyncio.run(client.upload(b"img", "image/png", CREDENTIALS))

    assert url.startswith("https://cdn.example.blob.core.windows.net/catalog/product-images/")
    assert url.endswith(".png")
    assert "sig=secret" not in url
    request = requests[0]
    assert request.method == "PUT"
    assert str(request.url).startswith(url)
    assert request.url.params["sig"] == "secret"
    assert request.headers["x-ms-blob-type"] == "BlockBlob"
    assert request.headers["content-type"] == "image/png"
    assert request.content == b"img"


def test_upload_failure_carries_status_and_body():
    client = BlobStorageClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(403, text="AuthenticationFailed"))
    )

    with pytest.raises(StorageUploadError) as excinfo:
        asyncio.run(client.upload(b"img", "image/png", CREDENTIALS))

    assert excinfo.value.status_code == 403
    assert excinfo.value.body == "AuthenticationFailed"
    assert "CDN upload failed" in str(excinfo.value)


def test_upload_transport_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    client = BlobStorageClient(transport=httpx.MockTransport(handler))

    with pytest.raises(StorageUploadError) as excinfo:
        asyncio.run(client.upload(b"img", "image/png", CREDENTIALS))

    assert excinfo.value.status_code is None


def test_upload_requires_configured_credentials():
    client = BlobStorageClient(transport=httpx.MockTransport(lambda request: httpx.Response(201)))

    with pytest.raises(StorageNotConfiguredError):
        asyncio.run(client.upload(b"img", "image/png", CredentialSet(storage_url="https://x", container="c")))


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------
def test_authorization_providers():
    assert asyncio.run(DefaultAuthorization().has_authorization()) is True
    assert asyncio.run(ApiKeyAuthorization("key").has_authorization()) is True
    assert asyncio.run(ApiKeyAuthorization(None).has_authorization()) is False
    assert asyncio.run(ApiKeyAuthorization(None).request_authorization()) is False
