"""Archive sniffing and extraction.

Downloaded artifacts are either gzip-compressed tar archives or bare
(optionally gzip-compressed) single files. Detection produces an explicit
two-variant result so the single-file fallback is an ordinary case rather
than an error handler. Extraction never fails an install: anything that
cannot be read as an archive degrades to one file named after the package.
"""

from __future__ import annotations

import gzip
import io
import logging
import shutil
import tarfile
import tempfile
import zlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from aipm.resolver import strip_namespace
from aipm.types import ExtractedFile

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
USTAR_MAGIC = b"ustar"
USTAR_OFFSET = 257
SCRATCH_PREFIX = "aipm-extract-"

# Root-level entries that describe the package instead of being installed.
MANIFEST_FILES = frozenset({"aipm.json", "package.json"})
METADATA_PREFIXES = ("license", "licence", "readme")


@dataclass(frozen=True)
class Container:
    """Archive payload with its installable files."""

    files: list[ExtractedFile]


@dataclass(frozen=True)
class SingleFile:
    """Bare payload installed as one file."""

    content: bytes


Payload = Container | SingleFile


def decompress(raw: bytes) -> bytes:
    """Strip the gzip layer if present; other bytes are returned unchanged."""
    if not raw.startswith(GZIP_MAGIC):
        return raw
    try:
        return gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as e:
        logger.info("Payload looks gzip-compressed but could not be inflated: %s", e)
        return raw


def is_container(data: bytes) -> bool:
    """Check for the ustar magic marker at its fixed header offset."""
    return data[USTAR_OFFSET : USTAR_OFFSET + len(USTAR_MAGIC)] == USTAR_MAGIC


def is_metadata_entry(relative_path: str) -> bool:
    """Check whether a root-level archive entry is package metadata.

    Only entries at the archive root are excluded, so a skill's nested
    ``docs/README.md`` is still installed.
    """
    path = PurePosixPath(relative_path)
    if len(path.parts) != 1:
        return False
    lower = path.name.lower()
    return lower in MANIFEST_FILES or lower.startswith(METADATA_PREFIXES)


def _is_safe_member(name: str) -> bool:
    if not name or name.startswith("/") or "\\" in name:
        return False
    return ".." not in PurePosixPath(name).parts


def _unpack(data: bytes, scratch: Path) -> None:
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:") as tar:
        for member in tar.getmembers():
            if not member.isfile():
                continue
            if not _is_safe_member(member.name):
                logger.warning("Skipping unsafe archive member: %s", member.name)
                continue
            source = tar.extractfile(member)
            if source is None:
                continue
            target = scratch / member.name
            target.parent.mkdir(parents=True, exist_ok=True)
            with source:
                target.write_bytes(source.read())


def _collect(scratch: Path) -> list[ExtractedFile]:
    files = []
    for path in sorted(scratch.rglob("*")):
        if not path.is_file():
            continue
        relative = path.relative_to(scratch).as_posix()
        if is_metadata_entry(relative):
            logger.debug("Excluding metadata entry %s", relative)
            continue
        files.append(ExtractedFile(relative_path=relative, content=path.read_bytes()))
    return files


def unpack_container(data: bytes) -> list[ExtractedFile]:
    """Unpack a tar archive into a scratch directory and read its files back.

    The scratch directory is removed on every exit path.

    Raises:
        tarfile.TarError: If the archive cannot be parsed.
        OSError: If the scratch directory cannot be written.
    """
    scratch = Path(tempfile.mkdtemp(prefix=SCRATCH_PREFIX))
    try:
        _unpack(data, scratch)
        return _collect(scratch)
    finally:
        shutil.rmtree(scratch, ignore_errors=True)


def detect_payload(raw: bytes) -> Payload:
    """Classify downloaded bytes as an archive container or a single file.

    Args:
        raw: Bytes exactly as downloaded.

    Returns:
        ``Container`` with at least one installable file, otherwise
        ``SingleFile`` holding the decompressed payload.
    """
    data = decompress(raw)
    if not is_container(data):
        logger.info("Payload is not an archive; installing as a single file")
        return SingleFile(content=data)

    try:
        files = unpack_container(data)
    except (tarfile.TarError, OSError, ValueError) as e:
        logger.info("Archive could not be read (%s); installing as a single file", e)
        return SingleFile(content=data)

    if not files:
        logger.info("Archive has no installable files; installing as a single file")
        return SingleFile(content=data)
    return Container(files=files)


def single_file_name(package_id: str) -> str:
    """Name given to a bare payload."""
    return f"{strip_namespace(package_id)}.md"


def extract(raw: bytes, package_id: str) -> list[ExtractedFile]:
    """Turn downloaded bytes into installable files.

    Args:
        raw: Bytes exactly as downloaded.
        package_id: Package id, used to name a bare payload.

    Returns:
        At least one file.
    """
    payload = detect_payload(raw)
    if isinstance(payload, Container):
        return payload.files
    return [ExtractedFile(relative_path=single_file_name(package_id), content=payload.content)]
