"""Reading the single-file tar archives returned by copy-from-container."""

from __future__ import annotations

import posixpath
import tarfile
from typing import BinaryIO

from .errors import FormatError
from .logger import BoundLogger, create_logger
from .types import TarEntryResult


def extract_single_entry(
    tar_stream: BinaryIO,
    desired_name: str,
    *,
    logger: BoundLogger | None = None,
) -> TarEntryResult:
    """Return the content of the first entry of ``tar_stream``.

    Copying a single file yields an archive holding exactly that file, so
    only the first header is read; ``desired_name`` is only compared for
    diagnostics. Archives with several entries (directory copies) are not
    handled here.
    """
    log = (logger or create_logger()).child("archive")
    try:
        with tarfile.open(fileobj=tar_stream, mode="r|") as archive:
            member = archive.next()
            if member is None:
                raise FormatError(f"tar stream for '{desired_name}' contains no entry")
            log.debug("entry name: %s, size: %d", member.name, member.size)
            if posixpath.basename(member.name.rstrip("/")) != posixpath.basename(desired_name.rstrip("/")):
                log.debug("first entry '%s' does not match requested '%s'", member.name, desired_name)

            content = b""
            if member.size:
                extracted = archive.extractfile(member)
                if extracted is None:
                    raise FormatError(f"tar entry '{member.name}' has no readable content")
                content = extracted.read(member.size)
    except tarfile.TarError as exc:
        raise FormatError(f"invalid tar stream for '{desired_name}': {exc}") from exc

    if len(content) != member.size:
        raise FormatError(f"tar entry '{member.name}' declares {member.size} bytes, got {len(content)}")
    return TarEntryResult(name=member.name, size=member.size, content=content)


__all__ = ["extract_single_entry"]
