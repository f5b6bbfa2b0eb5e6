"""Request body variants and the classifier that picks exactly one of them."""

import json
from enum import Enum
from typing import Annotated, Any, ClassVar, Union

from pydantic import (
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    field_validator,
)

MAX_FILE_NAME_LENGTH = 255
DELETE_BATCH_SIZE = 50


class FileCategory(str, Enum):
    MODS = "mods"
    SCREENSHOTS = "screenshots"
    RICH_PRESENCE_ICONS = "richPresenceIcons"


FileName = Annotated[StrictStr, StringConstraints(min_length=1, max_length=MAX_FILE_NAME_LENGTH)]

_url_adapter: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)


class RequestBodyError(Exception):
    """Raised when a request body matches no variant, several variants, or fails validation."""


class RequestBodyBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    kind: ClassVar[str]

    file_category: FileCategory = Field(alias="fileCategory")

    @classmethod
    def required_keys(cls) -> frozenset[str]:
        return frozenset(
            field.alias or name
            for name, field in cls.model_fields.items()
            if field.is_required()
        )


class UploadRequest(RequestBodyBase):
    kind: ClassVar[str] = "upload"

    file_name: FileName = Field(alias="fileName")
    # base64 encoded contents; decoded by the dispatcher
    file: StrictStr = Field(min_length=1)


class DownloadRequest(RequestBodyBase):
    kind: ClassVar[str] = "download"

    file_name: FileName = Field(alias="fileName")
    download_url: StrictStr = Field(alias="downloadUrl")

    @field_validator("download_url")
    @classmethod
    def check_absolute_url(cls, value: str) -> str:
        try:
            _url_adapter.validate_python(value)
        except ValidationError as exc:
            raise ValueError("downloadUrl must be an absolute URL") from exc
        return value


class DeletionRequest(RequestBodyBase):
    kind: ClassVar[str] = "delete"

    file_names: list[FileName] = Field(
        alias="fileNames",
        min_length=1,
        max_length=DELETE_BATCH_SIZE,
    )


ClassifiedRequest = Union[UploadRequest, DownloadRequest, DeletionRequest]

VARIANTS: tuple[type[RequestBodyBase], ...] = (UploadRequest, DownloadRequest, DeletionRequest)


def parse_body(raw_body: bytes | str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw_body)
    except ValueError as exc:
        raise RequestBodyError("Request body is not valid JSON") from exc
    if not isinstance(parsed, dict):
        raise RequestBodyError("Request body must be a JSON object")
    return parsed


def classify(
    raw_body: bytes | str,
    allowed: tuple[type[RequestBodyBase], ...] = VARIANTS,
) -> ClassifiedRequest:
    """Return the single variant whose required keys are all present.

    Every known variant takes part in matching, so a body carrying the key
    set of two variants is rejected even if only one of them is in
    ``allowed``.
    """
    body = parse_body(raw_body)
    matches = [variant for variant in VARIANTS if variant.required_keys().issubset(body)]
    if len(matches) != 1:
        raise RequestBodyError(f"Request body matches {len(matches)} variants")

    (variant,) = matches
    if variant not in allowed:
        raise RequestBodyError(f"{variant.kind} request is not allowed here")

    try:
        return variant.model_validate(body)
    except ValidationError as exc:
        raise RequestBodyError(f"Invalid {variant.kind} request") from exc
