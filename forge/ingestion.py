"""Research ingestion: turn uploaded files into typed research documents."""

from __future__ import annotations

import base64
import binascii
import logging
import re
import uuid
from typing import BinaryIO, Optional, Union

import fitz  # PyMuPDF

from .errors import IngestError
from .schemas import (
    DocumentKind,
    DocumentSource,
    ResearchDocument,
    classify_media_type,
    normalize_media_type,
)
from .utils import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

_DATA_URI_PATTERN = re.compile(rb"^\s*data:[^,]*;base64,", re.IGNORECASE)

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO]


def _read_all(name: str, stream: ByteSource) -> bytes:
    if isinstance(stream, (bytes, bytearray, memoryview)):
        return bytes(stream)
    try:
        data = stream.read()
    except (OSError, ValueError) as exc:
        raise IngestError(f"Failed to read {name}: {exc}") from exc
    if not isinstance(data, (bytes, bytearray)):
        raise IngestError(f"Failed to read {name}: stream did not return bytes")
    return bytes(data)


def encode_binary(data: bytes) -> str:
    """Base64-encode raw bytes, or keep the payload of an existing data URI."""
    match = _DATA_URI_PATTERN.match(data)
    if not match:
        return base64.b64encode(data).decode("ascii")
    payload = data[match.end():].strip()
    try:
        base64.b64decode(payload, validate=True)
        return payload.decode("ascii")
    except (binascii.Error, ValueError) as exc:
        raise IngestError("Data URI payload is not valid base64") from exc


def _pdf_page_count(name: str, encoded: str) -> Optional[int]:
    raw = base64.b64decode(encoded)
    try:
        doc = fitz.open(stream=raw, filetype="pdf")
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not open %s with PyMuPDF; page count unknown: %s", name, exc)
        return None
    try:
        return doc.page_count
    finally:
        doc.close()


def ingest_document(
    name: str,
    stream: ByteSource,
    media_type: Optional[str] = None,
    source: DocumentSource = DocumentSource.UPLOAD,
) -> ResearchDocument:
    """Read an uploaded file completely and wrap it as a research document."""
    normalized = normalize_media_type(media_type)
    kind = classify_media_type(normalized)
    data = _read_all(name, stream)

    page_count: Optional[int] = None
    if kind == DocumentKind.BINARY:
        content = encode_binary(data)
        if normalized == "application/pdf":
            page_count = _pdf_page_count(name, content)
    else:
        content = data.decode("utf-8", errors="replace")

    document = ResearchDocument(
        id=uuid.uuid4().hex[:12],
        name=name,
        content=content,
        media_type=normalized,
        kind=kind,
        source=source,
        page_count=page_count,
    )
    logger.info(
        "Ingested %s as %s (%s, %d chars)", name, kind.value, normalized, len(content)
    )
    return document

