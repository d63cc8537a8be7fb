"""
Spreadsheet Reader

Streams rows of a CSV or Excel file as dictionaries keyed by normalized
headers ("  Stock Price " -> "stock_price"), in fixed-size chunks.

CSV files are read incrementally; Excel workbooks are loaded once and then
sliced, since openpyxl cannot be chunked by pandas.
"""

import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import pandas as pd

from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)

CSV_EXTENSIONS = {".csv", ".txt"}
EXCEL_EXTENSIONS = {".xlsx", ".xlsm", ".xls"}


def normalize_header(header: Any) -> str:
    """
    Trim a header and convert it to snake_case.

    Examples:
        " Stock Price " -> "stock_price"
        "tradedOn" -> "traded_on"
    """
    text = str(header).strip()
    text = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", text)
    text = re.sub(r"[^0-9a-zA-Z]+", "_", text)
    return text.strip("_").lower()


class SpreadsheetReader:
    """Chunked row reader for an import file on the local filesystem."""

    def __init__(self, path: str, file_type: Optional[str] = None):
        """
        Args:
            path: Local path of the spreadsheet
            file_type: Extension override (e.g. ".csv"); inferred from path when omitted
        """
        self.path = path
        self.file_type = (file_type or Path(path).suffix).lower()
        self._csv_reader = None

        if self.file_type not in CSV_EXTENSIONS | EXCEL_EXTENSIONS:
            raise ValueError(f"Unsupported spreadsheet type: {self.file_type or 'unknown'}")

    def chunks(self, chunk_size: int) -> Iterator[List[Dict[str, Any]]]:
        """
        Yield lists of at most chunk_size row dictionaries.

        Args:
            chunk_size: Maximum rows per chunk (values below 1 are treated as 1)
        """
        chunk_size = max(1, int(chunk_size))

        if self.file_type in CSV_EXTENSIONS:
            yield from self._csv_chunks(chunk_size)
        else:
            yield from self._excel_chunks(chunk_size)

    def _csv_chunks(self, chunk_size: int) -> Iterator[List[Dict[str, Any]]]:
        try:
            self._csv_reader = pd.read_csv(
                self.path,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                chunksize=chunk_size,
            )
        except pd.errors.EmptyDataError:
            logger.info(f"Spreadsheet {self.path} is empty")
            return

        for frame in self._csv_reader:
            yield self._records(frame)

    def _excel_chunks(self, chunk_size: int) -> Iterator[List[Dict[str, Any]]]:
        frame = pd.read_excel(self.path, dtype=object)

        for start in range(0, len(frame), chunk_size):
            yield self._records(frame.iloc[start:start + chunk_size])

    def _records(self, frame: pd.DataFrame) -> List[Dict[str, Any]]:
        frame = frame.rename(columns=normalize_header)
        return frame.to_dict(orient="records")

    def close(self) -> None:
        if self._csv_reader is not None:
            self._csv_reader.close()
            self._csv_reader = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
