import logging
from pathlib import Path
from typing import Dict, Optional

log = logging.getLogger("contractguard.ingest")

SUPPORTED_SUFFIXES = (".txt",)
SUPPORTED_CONTENT_TYPES = ("text/plain",)


class UnsupportedFileError(ValueError):
    pass


class EmptyFileError(ValueError):
    pass


def is_supported(filename: Optional[str], content_type: Optional[str] = None) -> bool:
    if content_type and content_type.split(";")[0].strip().lower() in SUPPORTED_CONTENT_TYPES:
        return True
    return bool(filename) and filename.lower().endswith(SUPPORTED_SUFFIXES)


def ingest_bytes_to_text(data: bytes, filename: Optional[str] = None, content_type: Optional[str] = None) -> str:
    """
    Decode an uploaded plain-text contract.

    Only TXT is handled; PDF and DOCX are rejected with an explicit error
    rather than returning garbled text.

    Raises:
        UnsupportedFileError: Not a TXT file
        EmptyFileError: Nothing but whitespace after decoding
    """
    if not is_supported(filename, content_type):
        raise UnsupportedFileError(
            "Only TXT files are supported at this time. PDF and DOCX are not yet supported."
        )
    # utf-8-sig drops a leading BOM from editors that add one
    text = data.decode("utf-8-sig", errors="replace")
    if not text.strip():
        raise EmptyFileError("File appears to be empty or could not be read")
    return text


def ingest(folder: str | Path = "data") -> Dict[str, str]:
    """Load every .txt contract in ``folder``, keyed by file stem. Empty files are skipped."""
    text_store: Dict[str, str] = {}
    for path in sorted(Path(folder).glob("*.txt")):
        log.info("Reading %s...", path.name)
        try:
            text_store[path.stem] = ingest_bytes_to_text(path.read_bytes(), path.name)
        except EmptyFileError:
            log.warning("Skipping empty file %s", path.name)
    return text_store
