"""CSV and Excel parsing utilities for hours import."""

import csv
import io
from typing import BinaryIO
from zipfile import BadZipFile

import pandas as pd

from app.imports.exceptions import MalformedTableError
from app.imports.schemas import ParsedTable

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls")


def _clean_cell(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_headers(raw_headers: list) -> list[str]:
    """Strip header names and name blank ones by position.

    Raises:
        MalformedTableError: If there is no header or a header is repeated.
    """
    headers = []
    for i, raw in enumerate(raw_headers, start=1):
        name = _clean_cell(raw)
        headers.append(name if name else f"column_{i}")

    if not headers:
        raise MalformedTableError("File has no header row")

    seen = set()
    duplicates = []
    for name in headers:
        key = name.lower()
        if key in seen and name not in duplicates:
            duplicates.append(name)
        seen.add(key)
    if duplicates:
        raise MalformedTableError(f"Duplicate column headers: {', '.join(duplicates)}")

    return headers


def check_table(table: ParsedTable) -> ParsedTable:
    """Validate the structure of an already-parsed table.

    Args:
        table: Parsed table supplied by the caller.

    Returns:
        ParsedTable: The table with normalized headers and rows.

    Raises:
        MalformedTableError: If the header row is missing or malformed.
    """
    headers = _clean_headers(table.headers)
    rows = []
    for raw_row in table.rows:
        row = {
            header: _clean_cell(raw_row.get(original))
            for header, original in zip(headers, table.headers)
        }
        rows.append(row)
    line_numbers = table.line_numbers if len(table.line_numbers) == len(rows) else []
    return ParsedTable(headers=headers, rows=rows, line_numbers=line_numbers)


def parse_csv_raw(file: BinaryIO, max_rows: int | None = None) -> ParsedTable:
    """Parse CSV file into a table of raw string cells.

    Args:
        file: File-like object containing CSV data.
        max_rows: Reject files with more data rows than this.

    Returns:
        ParsedTable: Header row and data rows.

    Raises:
        MalformedTableError: If the file is not decodable or has no header row.
    """
    try:
        content = file.read().decode("utf-8-sig")  # Handle BOM
    except UnicodeDecodeError as e:
        raise MalformedTableError(f"File is not valid UTF-8 text: {e}") from e

    reader = csv.reader(io.StringIO(content))
    raw_headers = next(reader, None)
    if raw_headers is None:
        raise MalformedTableError("File has no header row")
    headers = _clean_headers(raw_headers)

    rows = []
    line_numbers = []
    for record in reader:
        # Skip blank lines
        if not any(cell.strip() for cell in record):
            continue
        row = {header: None for header in headers}
        for header, cell in zip(headers, record):
            row[header] = _clean_cell(cell)
        rows.append(row)
        line_numbers.append(reader.line_num)
        if max_rows is not None and len(rows) > max_rows:
            raise MalformedTableError(f"File has more than {max_rows} data rows")

    return ParsedTable(headers=headers, rows=rows, line_numbers=line_numbers)


def parse_excel_raw(file: BinaryIO, max_rows: int | None = None) -> ParsedTable:
    """Parse the first sheet of an Excel file into a table of raw string cells.

    Args:
        file: File-like object containing Excel data.
        max_rows: Reject files with more data rows than this.

    Returns:
        ParsedTable: Header row and data rows.

    Raises:
        MalformedTableError: If the workbook cannot be read or has no header row.
    """
    try:
        df = pd.read_excel(file, engine="openpyxl", dtype=str)
    except (ValueError, OSError, BadZipFile) as e:
        raise MalformedTableError(f"Could not read Excel file: {e}") from e

    headers = _clean_headers([str(c) for c in df.columns])

    rows = []
    line_numbers = []
    for index, record in df.iterrows():
        row = {}
        for header, col in zip(headers, df.columns):
            value = record[col]
            row[header] = None if pd.isna(value) else _clean_cell(value)
        if not any(row.values()):
            continue
        rows.append(row)
        line_numbers.append(index + 2)  # +2 for 1-indexed and header row
        if max_rows is not None and len(rows) > max_rows:
            raise MalformedTableError(f"File has more than {max_rows} data rows")

    return ParsedTable(headers=headers, rows=rows, line_numbers=line_numbers)


def parse_upload(filename: str, file: BinaryIO, max_rows: int | None = None) -> ParsedTable:
    """Parse an uploaded file by extension.

    Args:
        filename: Original file name.
        file: File-like object.
        max_rows: Reject files with more data rows than this.

    Returns:
        ParsedTable: Header row and data rows.

    Raises:
        MalformedTableError: If the format is unsupported or the content is malformed.
    """
    lowered = (filename or "").lower()
    if lowered.endswith(".csv"):
        return parse_csv_raw(file, max_rows=max_rows)
    elif lowered.endswith((".xlsx", ".xls")):
        return parse_excel_raw(file, max_rows=max_rows)
    raise MalformedTableError("Unsupported file format. Use CSV or Excel (.xlsx)")


def generate_sample_csv() -> str:
    """Generate a sample hours import file.

    Returns:
        str: CSV content with headers and example rows.
    """
    headers = [
        "Employee ID",
        "First Name",
        "Last Name",
        "Email",
        "Hours Worked",
        "Period Start",
        "Period End",
        "Notes",
    ]
    example_rows = [
        ["E100", "Maria", "Lopez", "maria.lopez@example.com", "40", "2024-01-01", "2024-01-07", ""],
        ["E101", "James", "Carter", "james.carter@example.com", "32.5", "2024-01-01", "2024-01-07", "PTO Friday"],
    ]

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in example_rows:
        writer.writerow(row)
    return output.getvalue()
