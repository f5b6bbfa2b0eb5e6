import base64
import binascii
import re

_ASCII_WHITESPACE = re.compile(r"[\t\n\f\r ]")
_BASE64_ALPHABET = re.compile(r"[A-Za-z0-9+/]*")


class DecodeError(ValueError):
    """Raised when a base64 string cannot be decoded."""


def bytes_to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def base64_to_bytes(value: str) -> bytes:
    """Decode base64 the forgiving way browsers' ``atob`` does.

    ASCII whitespace anywhere is ignored and trailing ``=`` padding is optional.
    """
    data = _ASCII_WHITESPACE.sub("", value)
    if len(data) % 4 == 0:
        if data.endswith("=="):
            data = data[:-2]
        elif data.endswith("="):
            data = data[:-1]
    if len(data) % 4 == 1 or not _BASE64_ALPHABET.fullmatch(data):
        raise DecodeError("Invalid base64 data")

    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError("Invalid base64 data") from exc


def text_to_bytes(value: str) -> bytes:
    return value.encode("utf-8")
