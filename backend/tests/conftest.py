import importlib
import os
import sys
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import AsyncClient, ASGITransport

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mirror_proxy.core.codec import bytes_to_base64
from mirror_proxy.core.config import get_settings
from mirror_proxy.core.security import import_private_key, sign_message
from mirror_proxy.services import storage as storage_service
from mirror_proxy.services.auth import AuthConfig, Authenticator
from mirror_proxy.services.mirror import MirrorService

ALLOWED_IP = "203.0.113.7"
OTHER_ALLOWED_IP = "198.51.100.2"
UPSTREAM_FILES = {
    "https://files.example.com/mods/a.zip": b"PK\x03\x04zip-bytes",
}


def _generate_key_strings() -> tuple[str, str]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    public_der = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    private_der = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return bytes_to_base64(public_der), bytes_to_base64(private_der)


PUBLIC_KEY_STRING, PRIVATE_KEY_STRING = _generate_key_strings()


class MemoryBucket:
    def __init__(self, name: str) -> None:
        self.name = name
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple] = []

    async def put(self, key: str, data: bytes) -> None:
        self.calls.append(("put", key, data))
        self.objects[key] = data

    async def delete(self, keys: list[str]) -> None:
        self.calls.append(("delete", list(keys)))
        for key in keys:
            self.objects.pop(key, None)


class DummyStorage(storage_service.StorageService):
    def __init__(self) -> None:  # type: ignore[super-init-not-called]
        self.settings = get_settings()
        self.buckets: dict[str, MemoryBucket] = {}

    def open_bucket(self, name: str) -> MemoryBucket:  # type: ignore[override]
        return self.buckets.setdefault(name, MemoryBucket(name))

    def all_calls(self) -> list[tuple]:
        return [call for bucket in self.buckets.values() for call in bucket.calls]


def upstream_handler(request: httpx.Request) -> httpx.Response:
    content = UPSTREAM_FILES.get(str(request.url))
    if content is None:
        return httpx.Response(404, content=b"not found")
    return httpx.Response(200, content=content)


@pytest.fixture(scope="session", autouse=True)
def configure_environment():
    os.environ["ENVIRONMENT"] = "test"
    os.environ["PERMITTED_IPS"] = f"{ALLOWED_IP},{OTHER_ALLOWED_IP}"
    os.environ["PUBLIC_KEY_STRING"] = PUBLIC_KEY_STRING
    os.environ.pop("PRIVATE_KEY_STRING", None)
    os.environ["MIRROR_DOMAIN"] = "mirror.test"
    os.environ["S3_ACCESS_KEY"] = "test"
    os.environ["S3_SECRET_KEY"] = "test"
    os.environ["S3_BUCKET_MODS"] = "mods-bucket"
    os.environ["S3_BUCKET_SCREENSHOTS"] = "screenshots-bucket"
    os.environ.pop("S3_BUCKET_RICH_PRESENCE_ICONS", None)
    os.environ["STORAGE_BACKEND"] = "local"
    get_settings.cache_clear()
    storage_service.reset_storage_service()
    storage_service._storage_service = DummyStorage()


@pytest.fixture
def storage(configure_environment) -> DummyStorage:
    dummy = storage_service._storage_service
    dummy.buckets.clear()  # type: ignore[union-attr]
    return dummy  # type: ignore[return-value]


@pytest.fixture(scope="session")
def key_strings() -> tuple[str, str]:
    return PUBLIC_KEY_STRING, PRIVATE_KEY_STRING


@pytest.fixture(scope="session")
def sign():
    signing_key = import_private_key(PRIVATE_KEY_STRING)

    def _sign(body: bytes) -> str:
        return sign_message(signing_key, body)

    return _sign


@pytest_asyncio.fixture
async def mirror_service(storage):
    transport = httpx.MockTransport(upstream_handler)
    async with httpx.AsyncClient(transport=transport) as http_client:
        yield MirrorService(
            storage=storage,
            http_client=http_client,
            mirror_domain="mirror.test",
        )


@pytest.fixture(scope="session")
def app_instance(configure_environment):
    from mirror_proxy import main as app_module

    importlib.reload(app_module)
    app = app_module.app

    # Setup state for tests, mimicking lifespan events
    settings = get_settings()
    app.state.authenticator = Authenticator(AuthConfig.from_settings(settings))
    return app


@pytest_asyncio.fixture
async def client(app_instance, mirror_service):
    app_instance.state.mirror_service = mirror_service
    transport = ASGITransport(app=app_instance)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
