import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from mirror_proxy.core.config import get_settings
from mirror_proxy.schemas import FileCategory

logger = logging.getLogger(__name__)


BUCKET_SUBDOMAINS: Final[dict[FileCategory, str]] = {
    FileCategory.MODS: "banana-mirror-mods",
    FileCategory.SCREENSHOTS: "banana-mirror-images",
    FileCategory.RICH_PRESENCE_ICONS: "banana-mirror-rich-presence-icons",
}


class BucketBindingError(Exception):
    """Raised when a file category has no configured bucket."""


class StorageError(Exception):
    """Raised when the object store rejects a put or delete."""


class Bucket(Protocol):
    name: str

    async def put(self, key: str, data: bytes) -> None: ...

    async def delete(self, keys: list[str]) -> None: ...


@dataclass(frozen=True)
class BucketBinding:
    bucket: Bucket
    subdomain: str


class S3Bucket:
    """A single bucket on an S3-compatible store."""

    def __init__(self, client, name: str) -> None:
        self.client = client
        self.name = name

    async def put(self, key: str, data: bytes) -> None:
        def _put() -> None:
            self.client.put_object(Bucket=self.name, Key=key, Body=data)

        try:
            await asyncio.to_thread(_put)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to store {key} in {self.name}") from exc

    async def delete(self, keys: list[str]) -> None:
        def _delete() -> dict:
            return self.client.delete_objects(
                Bucket=self.name,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
            )

        try:
            response = await asyncio.to_thread(_delete)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to delete {len(keys)} objects from {self.name}") from exc

        errors = response.get("Errors") or []
        if errors:
            failed = ", ".join(error.get("Key", "?") for error in errors)
            raise StorageError(f"Failed to delete from {self.name}: {failed}")


class LocalBucket:
    """A bucket backed by a directory, intended for development use."""

    def __init__(self, base_path: Path, name: str) -> None:
        self.name = name
        self.base_path = (base_path / name).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _key_path(self, key: str) -> Path:
        # Prevent directory traversal by resolving inside base path
        candidate = self.base_path.joinpath(*Path(key).parts).resolve()
        if not candidate.is_relative_to(self.base_path) or candidate == self.base_path:
            raise StorageError(f"Invalid storage key {key!r}")
        return candidate

    async def put(self, key: str, data: bytes) -> None:
        target = self._key_path(key)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise StorageError(f"Failed to store {key} in {self.name}") from exc

    async def delete(self, keys: list[str]) -> None:
        targets = [self._key_path(key) for key in keys]

        def _remove() -> None:
            for target in targets:
                target.unlink(missing_ok=True)

        try:
            await asyncio.to_thread(_remove)
        except OSError as exc:
            raise StorageError(f"Failed to delete {len(keys)} objects from {self.name}") from exc


class StorageService:
    """Default S3-compatible storage backend."""

    scheme: Final[str] = "s3"

    def __init__(self) -> None:
        self.settings = get_settings()
        session = boto3.session.Session()
        self.client = session.client(
            "s3",
            endpoint_url=str(self.settings.s3_endpoint) if self.settings.s3_endpoint else None,
            aws_access_key_id=self.settings.s3_access_key,
            aws_secret_access_key=self.settings.s3_secret_key,
            region_name=self.settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    def bucket_names(self) -> dict[FileCategory, str | None]:
        return {
            FileCategory.MODS: self.settings.s3_bucket_mods,
            FileCategory.SCREENSHOTS: self.settings.s3_bucket_screenshots,
            FileCategory.RICH_PRESENCE_ICONS: self.settings.s3_bucket_rich_presence_icons,
        }

    def open_bucket(self, name: str) -> Bucket:
        return S3Bucket(self.client, name)

    def resolve(self, category: FileCategory) -> BucketBinding:
        logger.info("Getting bucket for fileCategory: %s", category.value)

        subdomain = BUCKET_SUBDOMAINS.get(category)
        bucket_name = self.bucket_names().get(category)
        if subdomain is None or not bucket_name:
            raise BucketBindingError(f"No bucket bound to fileCategory {category.value}")

        return BucketBinding(bucket=self.open_bucket(bucket_name), subdomain=subdomain)


class LocalStorageService(StorageService):
    """Local filesystem storage intended for development use."""

    scheme: Final[str] = "local"

    def __init__(self) -> None:  # type: ignore[super-init-not-called]
        self.settings = get_settings()
        self.base_path = Path(self.settings.local_storage_dir).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def open_bucket(self, name: str) -> Bucket:  # type: ignore[override]
        return LocalBucket(self.base_path, name)


_storage_service: StorageService | LocalStorageService | None = None


def get_storage_service() -> StorageService | LocalStorageService:
    global _storage_service
    if _storage_service is None:
        settings = get_settings()
        if settings.storage_backend == "local":
            _storage_service = LocalStorageService()
        else:
            _storage_service = StorageService()
    return _storage_service


def reset_storage_service() -> None:
    global _storage_service
    _storage_service = None
