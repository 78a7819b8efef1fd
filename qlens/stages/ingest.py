"""Transcript upload validation and loading."""

from __future__ import annotations

import logging
from pathlib import Path, PurePath

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS: frozenset[str] = frozenset({".txt", ".md", ".rtf"})
MAX_UPLOAD_BYTES = 5 * 1024 * 1024

TOO_LARGE_MESSAGE = "File is too large. Please upload a file smaller than 5MB."
BAD_TYPE_MESSAGE = "Invalid file type. Please upload a TXT, MD, or RTF file."
EMPTY_MESSAGE = "File is empty or invalid. Please upload a transcript with content."
UNREADABLE_MESSAGE = "Failed to read the file."


class UploadError(ValueError):
    """A rejected transcript upload.

    ``clears_transcript`` tells the caller whether the previously accepted
    transcript must be dropped (the file was accepted for reading but had no
    usable content) or kept (the file was refused before reading).
    """

    def __init__(self, message: str, *, clears_transcript: bool) -> None:
        super().__init__(message)
        self.message = message
        self.clears_transcript = clears_transcript


def has_allowed_extension(filename: str) -> bool:
    return PurePath(filename).suffix.lower() in ALLOWED_EXTENSIONS


def validate_upload(filename: str, data: bytes) -> str:
    """Check an uploaded file and return its text.

    Size is checked first, then the extension, then the content.  RTF is
    accepted as-is; control words are left in the text for the model.

    Raises:
        UploadError: The upload was refused.
    """
    if len(data) > MAX_UPLOAD_BYTES:
        logger.warning("Upload %s refused: %d bytes", filename, len(data))
        raise UploadError(TOO_LARGE_MESSAGE, clears_transcript=False)

    if not has_allowed_extension(filename):
        logger.warning("Upload %s refused: unsupported extension", filename)
        raise UploadError(BAD_TYPE_MESSAGE, clears_transcript=False)

    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        logger.warning("Upload %s could not be decoded: %s", filename, exc)
        raise UploadError(UNREADABLE_MESSAGE, clears_transcript=True) from exc

    if not text.strip():
        logger.warning("Upload %s has no content", filename)
        raise UploadError(EMPTY_MESSAGE, clears_transcript=True)

    logger.info("Accepted transcript %s (%d chars)", filename, len(text))
    return text


def read_transcript_file(path: Path) -> str:
    """Load a transcript from disk under the same rules as an upload."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.warning("Could not read %s: %s", path, exc)
        raise UploadError(UNREADABLE_MESSAGE, clears_transcript=True) from exc
    return validate_upload(path.name, data)
