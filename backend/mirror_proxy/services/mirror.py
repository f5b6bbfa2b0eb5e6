"""Routes a classified request to the matching bucket operation."""

import logging

import httpx

from mirror_proxy.core.codec import DecodeError, base64_to_bytes
from mirror_proxy.schemas import (
    ClassifiedRequest,
    DeletionRequest,
    DownloadRequest,
    UploadRequest,
)
from mirror_proxy.services.storage import BucketBinding, StorageError, StorageService

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Raised when the outbound fetch, payload decoding or the object store fails."""


def public_url(subdomain: str, mirror_domain: str, file_name: str) -> str:
    path = file_name.replace("_", "/")
    return f"https://{subdomain}.{mirror_domain}/{path}"


class MirrorService:
    def __init__(
        self,
        storage: StorageService,
        http_client: httpx.AsyncClient,
        mirror_domain: str,
    ) -> None:
        self.storage = storage
        self.http_client = http_client
        self.mirror_domain = mirror_domain

    async def dispatch(self, request: ClassifiedRequest) -> str:
        binding = self.storage.resolve(request.file_category)

        if isinstance(request, UploadRequest):
            return await self.upload(request, binding)
        if isinstance(request, DownloadRequest):
            return await self.download(request, binding)
        if isinstance(request, DeletionRequest):
            return await self.delete(request, binding)
        raise TypeError(f"Unsupported request type {type(request).__name__}")

    async def upload(self, request: UploadRequest, binding: BucketBinding) -> str:
        """Decode base64 file contents sent in the body and store them."""
        logger.info("Decoding %s", request.file_name)
        try:
            data = base64_to_bytes(request.file)
        except DecodeError as exc:
            raise UpstreamError(f"Could not decode contents of {request.file_name}") from exc

        await self._put(binding, request.file_name, data)

        message = (
            f"Saved {request.file_name} to "
            f"{public_url(binding.subdomain, self.mirror_domain, request.file_name)}"
        )
        logger.info(message)
        return message

    async def download(self, request: DownloadRequest, binding: BucketBinding) -> str:
        """Fetch the file from its source URL and store the response body."""
        logger.info("Fetching %s", request.download_url)
        try:
            response = await self.http_client.get(request.download_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Failed to fetch {request.download_url}") from exc

        await self._put(binding, request.file_name, response.content)

        message = (
            f"Saved {request.download_url} to "
            f"{public_url(binding.subdomain, self.mirror_domain, request.file_name)}"
        )
        logger.info(message)
        return message

    async def delete(self, request: DeletionRequest, binding: BucketBinding) -> str:
        file_names = list(request.file_names)
        logger.info("Deleting %d files from %s", len(file_names), binding.bucket.name)
        try:
            await binding.bucket.delete(file_names)
        except StorageError as exc:
            raise UpstreamError(str(exc)) from exc

        origin = f"https://{binding.subdomain}.{self.mirror_domain}"
        logger.info("Deleted from %s : %s", origin, ", ".join(file_names))
        return f"Deleted {len(file_names)} files from {origin}"

    async def _put(self, binding: BucketBinding, key: str, data: bytes) -> None:
        logger.info("Storing %s in %s", key, binding.bucket.name)
        try:
            await binding.bucket.put(key, data)
        except StorageError as exc:
            raise UpstreamError(str(exc)) from exc
