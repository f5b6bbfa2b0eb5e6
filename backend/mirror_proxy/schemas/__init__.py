from mirror_proxy.schemas.requests import (
    ClassifiedRequest,
    DeletionRequest,
    DownloadRequest,
    FileCategory,
    RequestBodyError,
    UploadRequest,
    classify,
)

__all__ = [
    "FileCategory",
    "UploadRequest",
    "DownloadRequest",
    "DeletionRequest",
    "ClassifiedRequest",
    "RequestBodyError",
    "classify",
]
