"""
Content sniffing for uploaded documents.

The MIME type comes from libmagic (python-magic) reading the leading bytes;
the extension mapping is a fixed table with "bin" for anything unknown.
"""
import logging
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

SNIFF_BYTES = 2048
DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_EXTENSION = "bin"

MIME_EXTENSIONS = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/zip": "zip",
    "image/png": "png",
    "image/jpeg": "jpg",
}

Sniffer = Callable[[bytes], str]


def extension_for_mime(mime_type: Optional[str]) -> str:
    """application/pdf -> pdf; unknown or empty -> bin."""
    if not mime_type:
        return DEFAULT_EXTENSION
    return MIME_EXTENSIONS.get(mime_type.split(";", 1)[0].strip().lower(), DEFAULT_EXTENSION)


def sniff_mime_type(data: bytes) -> str:
    """Detect the MIME type of a buffer with libmagic."""
    import magic

    if not data:
        return DEFAULT_MIME_TYPE
    return magic.from_buffer(data[:SNIFF_BYTES], mime=True) or DEFAULT_MIME_TYPE


class DocumentClassifier:
    """Maps raw bytes to (mime_type, extension)."""

    def __init__(self, sniffer: Optional[Sniffer] = None):
        self.sniffer = sniffer or sniff_mime_type

    def classify(self, data: bytes) -> Tuple[str, str]:
        mime_type = self.sniffer(data) or DEFAULT_MIME_TYPE
        extension = extension_for_mime(mime_type)
        logger.debug(f"classify: {len(data)} bytes -> {mime_type} ({extension})")
        return mime_type, extension
