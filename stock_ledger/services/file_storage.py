"""
File Storage

Disks that hold uploaded import files:
1. local  - a directory on the filesystem shared by API and workers
2. remote - an HTTP object store (PUT/GET/DELETE on {base_url}/{path})

Remote files have no local path; readers must copy them first
(see StockImportFileResolver).
"""

import os
import shutil
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Optional

import requests

from stock_ledger.config import (
    STOCK_IMPORT_LOCAL_ROOT,
    STOCK_IMPORT_REMOTE_URL,
    STOCK_IMPORT_REMOTE_TIMEOUT,
)
from stock_ledger.exceptions import StorageError
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)


class FileStorage(ABC):
    """Abstract storage disk."""

    @abstractmethod
    def store(self, content: bytes, path: str) -> str:
        """Write content at path and return the stored path."""

    @abstractmethod
    def open_stream(self, path: str):
        """Context manager yielding a readable binary stream for path."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """Remove the file at path if it exists."""

    def local_path(self, path: str) -> Optional[str]:
        """Filesystem path of the file, or None when the disk is not local."""
        return None


class LocalFileStorage(FileStorage):
    """Disk backed by a directory on the local filesystem."""

    def __init__(self, root: str = STOCK_IMPORT_LOCAL_ROOT):
        self.root = os.path.abspath(root)

    def _full_path(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([self.root, full_path]) != self.root:
            raise StorageError(f"Path escapes storage root: {path}")
        return full_path

    def store(self, content: bytes, path: str) -> str:
        full_path = self._full_path(path)
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            with open(full_path, "wb") as handle:
                handle.write(content)
        except OSError as e:
            raise StorageError(f"Unable to write {path}: {e}") from e
        return path

    @contextmanager
    def open_stream(self, path: str) -> Iterator[BinaryIO]:
        try:
            handle = open(self._full_path(path), "rb")
        except OSError as e:
            raise StorageError(f"Unable to read {path}: {e}") from e
        try:
            yield handle
        finally:
            handle.close()

    def delete(self, path: str) -> None:
        try:
            os.remove(self._full_path(path))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Unable to delete {path}: {e}") from e

    def local_path(self, path: str) -> Optional[str]:
        return self._full_path(path)


class HttpFileStorage(FileStorage):
    """Disk backed by an HTTP object store."""

    def __init__(self, base_url: str = STOCK_IMPORT_REMOTE_URL, timeout: int = STOCK_IMPORT_REMOTE_TIMEOUT,
                 session: Optional[requests.Session] = None):
        if not base_url:
            raise StorageError("Remote storage URL is not configured (STOCK_IMPORT_REMOTE_URL)")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def store(self, content: bytes, path: str) -> str:
        try:
            response = self.session.put(self._url(path), data=content, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise StorageError(f"Unable to upload {path}: {e}") from e
        return path

    @contextmanager
    def open_stream(self, path: str) -> Iterator[BinaryIO]:
        try:
            response = self.session.get(self._url(path), stream=True, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise StorageError(f"Unable to read {path} from remote storage: {e}") from e

        try:
            response.raw.decode_content = True
            yield response.raw
        finally:
            response.close()

    def delete(self, path: str) -> None:
        try:
            response = self.session.delete(self._url(path), timeout=self.timeout)
            if response.status_code != 404:
                response.raise_for_status()
        except requests.RequestException as e:
            raise StorageError(f"Unable to delete {path} from remote storage: {e}") from e


_DISK_FACTORIES = {
    "local": LocalFileStorage,
    "remote": HttpFileStorage,
}


def get_storage(disk: str) -> FileStorage:
    """
    Build the storage for a disk name.

    Raises:
        StorageError: If the disk is unknown or misconfigured
    """
    factory = _DISK_FACTORIES.get(disk)
    if factory is None:
        raise StorageError(f"Unknown storage disk: {disk}")
    return factory()


def copy_stream(source: BinaryIO, destination: BinaryIO) -> None:
    shutil.copyfileobj(source, destination, length=64 * 1024)
