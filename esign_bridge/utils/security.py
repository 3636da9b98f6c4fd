"""
Encoding helpers: base64url for JWT segments, strict base64 for uploads.
"""
import base64
import binascii
import hashlib
from pathlib import Path
from typing import Union

from esign_bridge.exceptions import ConfigurationError


def base64url_encode(data: Union[bytes, str]) -> str:
    """
    URL-safe base64 without padding (RFC 7515 section 2).
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def base64url_decode(value: Union[bytes, str]) -> bytes:
    """
    Decode unpadded URL-safe base64. Raises ValueError on malformed input.
    """
    if isinstance(value, bytes):
        value = value.decode("ascii")
    if len(value) % 4 == 1:
        raise ValueError("Invalid base64url length")
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64url data: {e}")


def decode_base64_strict(value: str) -> bytes:
    """
    Decode standard base64, rejecting characters outside the alphabet.

    Accepts an optional data URL prefix (data:application/pdf;base64,...)
    and ignores whitespace, so line-wrapped input decodes.
    """
    value = value.strip()
    if value.startswith("data:") and "," in value:
        value = value.split(",", 1)[1]
    # line-wrapped encoders (MIME, base64 CLI)
    value = "".join(value.split())
    return base64.b64decode(value, validate=True)


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def compute_bytes_hash(data: bytes) -> str:
    """Compute SHA-256 hash of bytes."""
    return hashlib.sha256(data).hexdigest()


def read_private_key_file(path: Union[str, Path]) -> bytes:
    """
    Read PEM bytes from disk.

    Raises ConfigurationError if the file is missing, unreadable or empty.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"Private key not found: {path}")
    try:
        key_bytes = path.read_bytes()
    except OSError as e:
        raise ConfigurationError(f"Private key file is unreadable: {path} ({e})")
    if not key_bytes.strip():
        raise ConfigurationError(f"Private key file is empty or unreadable: {path}")
    return key_bytes
