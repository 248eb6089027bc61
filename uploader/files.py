"""Upload sources: files on disk and in-memory content."""

import mimetypes
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


class UploadFile(ABC):
    """
    Byte-addressable upload source.

    Subclasses provide id, name, size, mime_type and read(offset, length).
    Content must not change once the file has been admitted.
    """
    id: str
    name: str
    size: int
    mime_type: Optional[str]

    @abstractmethod
    def read(self, offset: int, length: int) -> bytes:
        """Return length bytes starting at offset."""


@dataclass(frozen=True)
class LocalFile(UploadFile):
    """File on the local filesystem."""
    path: Path
    name: str
    size: int
    mime_type: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def from_path(cls, path, file_id: Optional[str] = None) -> 'LocalFile':
        """
        Build a LocalFile from a path, reading its size and guessing its MIME type.

        Args:
            path: Path to an existing regular file
            file_id: Optional client id (a fresh UUID by default)

        Returns:
            LocalFile instance

        Raises:
            FileNotFoundError: If path does not exist
            IsADirectoryError: If path is not a regular file
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        if not path.is_file():
            raise IsADirectoryError(f"Not a file: {path}")

        mime_type, _ = mimetypes.guess_type(path.name)
        kwargs = {'id': file_id} if file_id else {}
        return cls(
            path=path,
            name=path.name,
            size=path.stat().st_size,
            mime_type=mime_type,
            **kwargs
        )

    def read(self, offset: int, length: int) -> bytes:
        with open(self.path, 'rb') as f:
            f.seek(offset)
            data = f.read(length)
        if len(data) != length:
            raise OSError(
                f"Short read from {self.path}: expected {length} bytes at offset {offset}, got {len(data)}"
            )
        return data


@dataclass(frozen=True)
class BytesFile(UploadFile):
    """In-memory content, mostly useful for generated data and tests."""
    name: str
    content: bytes = field(repr=False)
    mime_type: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def size(self) -> int:
        return len(self.content)

    def read(self, offset: int, length: int) -> bytes:
        return self.content[offset:offset + length]


def describe(file: UploadFile) -> str:
    """Short label for log lines."""
    return f"{file.name} [id={file.id[:8]}, size={file.size}]"
