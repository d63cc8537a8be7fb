"""
Stock Import File Resolver

Gives the import orchestrator a locally readable path for a stored import
file. Local disks resolve in place; remote disks are copied into a temporary
file that the caller must release (ResolvedStockImportFile is a context
manager that does so).
"""

import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

from stock_ledger.exceptions import StorageError
from stock_ledger.services.file_storage import FileStorage, copy_stream, get_storage
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)


class ResolvedStockImportFile:
    """Local path of an import file, plus the temporary copy to clean up (if any)."""

    def __init__(self, path: str, temporary: bool = False):
        self.path = path
        self.temporary = temporary

    def release(self) -> None:
        if not self.temporary:
            return
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Unable to remove temporary import file {self.path}: {e}")
        self.temporary = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class StockImportFileResolver:
    """Resolves (disk, stored_path) pairs to local files."""

    def __init__(self, storage_factory: Callable[[str], FileStorage] = get_storage):
        self.storage_factory = storage_factory

    def resolve(self, disk: str, stored_path: str) -> ResolvedStockImportFile:
        """
        Args:
            disk: Storage disk name ("local", "remote")
            stored_path: Path of the file on that disk

        Returns:
            ResolvedStockImportFile: Readable local file

        Raises:
            StorageError: If the file cannot be located or copied
        """
        storage = self.storage_factory(disk)

        local_path = storage.local_path(stored_path)
        if local_path is not None:
            if not os.path.isfile(local_path):
                raise StorageError(f"Stock import file not found: {stored_path}")
            return ResolvedStockImportFile(local_path)

        return self._copy_to_temporary_file(storage, stored_path)

    def _copy_to_temporary_file(self, storage: FileStorage, stored_path: str) -> ResolvedStockImportFile:
        # Keep the extension so the spreadsheet reader can pick a parser
        suffix = Path(stored_path).suffix
        handle = tempfile.NamedTemporaryFile(prefix="stock-import-", suffix=suffix, delete=False)
        resolved = ResolvedStockImportFile(handle.name, temporary=True)

        try:
            with handle:
                with storage.open_stream(stored_path) as source:
                    copy_stream(source, handle)
        except OSError as e:
            resolved.release()
            raise StorageError(f"Unable to copy stock import file to a temporary file: {e}") from e
        except Exception:
            resolved.release()
            raise

        logger.debug(f"Copied remote import file {stored_path} to {resolved.path}")
        return resolved
