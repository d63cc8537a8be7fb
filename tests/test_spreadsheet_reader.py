"""Tests for chunked spreadsheet reading."""

import pandas as pd
import pytest

from stock_ledger.services.spreadsheet_reader import SpreadsheetReader, normalize_header


class TestNormalizeHeader:
    @pytest.mark.parametrize(
        "header, expected",
        [
            (" Stock Price ", "stock_price"),
            ("Date", "date"),
            ("stockPrice", "stock_price"),
            ("stock-price", "stock_price"),
            ("PRICE", "price"),
        ],
    )
    def test_normalizes_to_snake_case(self, header, expected):
        assert normalize_header(header) == expected


class TestSpreadsheetReader:
    def test_reads_csv_in_chunks(self, tmp_path, make_csv):
        path = tmp_path / "prices.csv"
        path.write_bytes(make_csv([(f"2024-01-{day:02d}", day) for day in range(1, 8)], header=" Date , Stock Price "))

        with SpreadsheetReader(str(path)) as reader:
            chunks = list(reader.chunks(3))

        assert [len(chunk) for chunk in chunks] == [3, 3, 1]
        assert chunks[0][0] == {"date": "2024-01-01", "stock_price": "1"}

    def test_csv_values_stay_strings(self, tmp_path):
        path = tmp_path / "prices.csv"
        path.write_text("date,price\n2024-01-01,\n2024-01-02,00012.50\n")

        with SpreadsheetReader(str(path)) as reader:
            rows = [row for chunk in reader.chunks(10) for row in chunk]

        assert rows == [
            {"date": "2024-01-01", "price": ""},
            {"date": "2024-01-02", "price": "00012.50"},
        ]

    def test_empty_csv_yields_nothing(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")

        with SpreadsheetReader(str(path)) as reader:
            assert list(reader.chunks(10)) == []

    def test_header_only_csv_yields_no_rows(self, tmp_path):
        path = tmp_path / "header.csv"
        path.write_text("date,stock_price\n")

        with SpreadsheetReader(str(path)) as reader:
            assert sum(len(chunk) for chunk in reader.chunks(10)) == 0

    def test_reads_excel_in_chunks(self, tmp_path):
        path = tmp_path / "prices.xlsx"
        frame = pd.DataFrame({
            "Date": pd.to_datetime(["2024-01-01", "2024-01-02", "2024-01-03"]),
            "Stock Price": [1.5, 2.5, 3.5],
        })
        frame.to_excel(path, index=False)

        with SpreadsheetReader(str(path)) as reader:
            chunks = list(reader.chunks(2))

        assert [len(chunk) for chunk in chunks] == [2, 1]
        assert chunks[0][0]["stock_price"] == 1.5
        assert pd.Timestamp(chunks[1][0]["date"]) == pd.Timestamp("2024-01-03")

    def test_rejects_unsupported_files(self, tmp_path):
        with pytest.raises(ValueError):
            SpreadsheetReader(str(tmp_path / "prices.pdf"))

    def test_file_type_override(self, tmp_path, make_csv):
        path = tmp_path / "upload.bin"
        path.write_bytes(make_csv([("2024-01-01", 1)]))

        with SpreadsheetReader(str(path), file_type=".csv") as reader:
            assert sum(len(chunk) for chunk in reader.chunks(10)) == 1
