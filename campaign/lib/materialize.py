"""Writes exported records below the destination root."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from campaign.lib.errors import WriteError

logger = logging.getLogger(__name__)

__all__ = ["RecordWriter"]


class RecordWriter:
    """Materializes record payloads as files under a root directory.

    Filenames are relative to the root even when they start with ``/``.
    Parent directories are created as needed and existing files are
    overwritten. Any filesystem failure raises WriteError.

    Example:
        >>> writer = RecordWriter("./export")
        >>> writer.write("/Forms/nms/recipient.xml", b"<form/>")
        PosixPath('.../export/Forms/nms/recipient.xml')
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self.files_written = 0
        self.bytes_written = 0

    def resolve(self, filename: str) -> Path:
        """Map a computed filename to its absolute path under the root.

        Raises:
            WriteError: If the filename is empty or points outside the root
        """
        relative = filename.replace("\\", "/").lstrip("/")
        if not relative:
            raise WriteError("Computed filename is empty", path=filename)

        root = self.root.resolve()
        target = (root / relative).resolve()
        if target != root and root not in target.parents:
            raise WriteError(
                "Computed filename escapes the destination directory",
                path=filename,
            )
        return target

    def write(self, filename: str, payload: Union[bytes, str]) -> Path:
        """Write one record's payload, replacing any existing file."""
        target = self.resolve(filename)
        data = payload.encode("utf-8") if isinstance(payload, str) else payload

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise WriteError(f"Failed to write {target}", path=str(target), cause=e) from e

        self.files_written += 1
        self.bytes_written += len(data)
        logger.debug("Wrote %d bytes to %s", len(data), target)
        return target
