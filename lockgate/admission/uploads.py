"""Request-scoped temporary storage for incoming uploads."""

import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional, Protocol

from lockgate.core.errors import FileTooLarge
from lockgate.core.logging import get_logger

logger = get_logger(__name__)


class AsyncReadable(Protocol):
    """Anything with an async ``read`` (e.g. starlette's UploadFile)."""

    async def read(self, size: int = -1) -> bytes: ...


class TemporaryUpload:
    """An uploaded file spooled to disk for the duration of one request.

    :meth:`release` deletes the file. It is safe to call any number of times;
    only the first call removes anything.
    """

    def __init__(self, path: Path, filename: str, size: int):
        self.path = path
        self.filename = filename
        self.size = size
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def open(self) -> BinaryIO:
        if self._released:
            raise RuntimeError(f"Upload {self.filename} was already released")
        return self.path.open("rb")

    def release(self) -> bool:
        """Delete the spooled file.

        Returns:
            True if this call removed the file, False if already released
        """
        if self._released:
            return False
        self._released = True
        self.path.unlink(missing_ok=True)
        logger.debug("upload_released", filename=self.filename, path=str(self.path))
        return True

    @classmethod
    def from_bytes(
        cls, data: bytes, filename: str = "upload", directory: Optional[Path] = None
    ) -> "TemporaryUpload":
        """Spool an in-memory payload."""
        fd, name = tempfile.mkstemp(prefix="lockgate-", dir=directory)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        return cls(Path(name), filename, len(data))


async def spool_upload(
    source: AsyncReadable,
    filename: Optional[str],
    max_bytes: int,
    chunk_bytes: int = 64 * 1024,
    directory: Optional[Path] = None,
) -> TemporaryUpload:
    """Copy an upload stream to a temporary file while enforcing a size cap.

    Args:
        source: Stream to read from
        filename: Client supplied filename
        max_bytes: Largest accepted upload
        chunk_bytes: Read size
        directory: Optional directory for the temp file

    Returns:
        TemporaryUpload owning the spooled file

    Raises:
        FileTooLarge: If the stream is larger than ``max_bytes``; nothing is
            left on disk
    """
    fd, name = tempfile.mkstemp(prefix="lockgate-", dir=directory)
    path = Path(name)
    size = 0
    try:
        with os.fdopen(fd, "wb") as fh:
            while chunk := await source.read(chunk_bytes):
                size += len(chunk)
                if size > max_bytes:
                    raise FileTooLarge(
                        f"The maximum allowable file size is {max_bytes} bytes. "
                        "Please upload another file.",
                        context={"maxBytes": max_bytes},
                    )
                fh.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise

    return TemporaryUpload(path, filename or "upload", size)
