"""Base backend interface, entry metadata and error types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class ResourceInfo:
    """Metadata about a resource (file or directory).

    `path` is relative to the backend root, '/'-separated, without leading
    or trailing slash. The root itself has path "".
    """
    path: str
    is_dir: bool
    size: int = 0
    content_type: str = "application/octet-stream"
    mod_time: datetime = EPOCH
    md5: str = ""
    sha1: str = ""

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class BackendError(Exception):
    """Base error for backend operations."""
    pass


class NotFoundError(BackendError):
    """Resource does not exist, or is not of the requested kind."""
    pass


class ProtocolError(BackendError):
    """The remote answered with something we cannot make sense of."""
    pass


class RemoteError(BackendError):
    """Non-success response from the remote.

    403 errors are fatal: retrying them won't help.
    """

    def __init__(self, status: int, code: str, message: str):
        super().__init__(f"{message} ({status} {code})")
        self.status = status
        self.code = code
        self.message = message

    @property
    def fatal(self) -> bool:
        return self.status == 403


class Backend:
    """Abstract filesystem interface.

    Paths are '/'-separated and relative to the backend root; leading,
    trailing and doubled slashes are ignored. The root "" is always a
    directory.
    """

    def info(self, path: str) -> ResourceInfo:
        """Return metadata for the resource at path."""
        raise NotImplementedError

    def list(self, path: str, recursive: bool = False) -> list[ResourceInfo]:
        """Return the children of a directory, or with `recursive` every file below it.

        Raises NotFoundError if path is not a directory.
        """
        raise NotImplementedError

    def walk(self, path: str) -> list[ResourceInfo]:
        """Return every directory and file below a directory."""
        raise NotImplementedError

    def get(self, path: str) -> bytes:
        """Return the content of a file. Raises NotFoundError if not a file."""
        raise NotImplementedError

    def put(self, stream, path: str, size: int, content_type: str) -> ResourceInfo:
        """Store a file and return its metadata."""
        raise NotImplementedError

    def mkdir(self, path: str) -> None:
        raise NotImplementedError

    def rmdir(self, path: str) -> None:
        raise NotImplementedError
