"""
File loader utilities with format registry and parsing support.

Supports CSV/XLSX/XLSM/XLS exports, given as a path or as an uploaded
binary file object exposing ``name``. CSV cells are kept as raw strings so
locale-aware parsing happens downstream; spreadsheet cells keep their
native types with blanks turned into "".
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import IO, Any, Union

import pandas as pd

from traffic_kpi.exceptions import StructuralError
from traffic_kpi.logger import get_logger
from traffic_kpi.models import RawRow
from traffic_kpi.row_filter import is_completely_empty_row

logger = get_logger(__name__)

ALLOWED_SUFFIXES = (".csv", ".xlsx", ".xls", ".xlsm")
CSV_ENCODINGS = ["utf-8-sig", "utf-8", "latin-1", "cp1252"]
CSV_DELIMITERS = [",", ";", "\t", "|"]

FileSource = Union[str, Path, IO[bytes]]


def source_name(source: FileSource) -> str:
    if isinstance(source, (str, Path)):
        return Path(source).name
    return Path(getattr(source, "name", "upload")).name


def _read_bytes(source: FileSource) -> bytes:
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise StructuralError(f"File not found: {path}")
        return path.read_bytes()

    if hasattr(source, "seek"):
        source.seek(0)
    data = source.read()
    if isinstance(data, str):
        return data.encode("utf-8")
    return data


def _decode(data: bytes, encodings: list[str]) -> tuple[str, str]:
    last_error: Exception | None = None
    for candidate in encodings:
        try:
            return data.decode(candidate), candidate
        except UnicodeDecodeError as exc:
            last_error = exc
            continue
    raise StructuralError("Failed to decode CSV with any known encoding") from last_error


def sniff_csv_delimiter(text: str, sample_size: int = 8192) -> str | None:
    sample = text[:sample_size]
    if not sample:
        return None
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters="".join(CSV_DELIMITERS))
        return dialect.delimiter
    except csv.Error:
        return None


def _drop_blank_rows(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    blank_mask = df.apply(lambda row: is_completely_empty_row(row.to_dict()), axis=1)
    dropped = int(blank_mask.sum())
    if dropped:
        logger.debug(f"Dropped {dropped} completely blank rows")
    return df.loc[~blank_mask].reset_index(drop=True)


def load_csv(
    source: FileSource,
    *,
    delimiter: str | None = None,
    encoding: str | None = None,
    nrows: int | None = None,
) -> pd.DataFrame:
    data = _read_bytes(source)
    if not data.strip():
        raise StructuralError(f"File is empty: {source_name(source)}")

    text, used_encoding = _decode(data, [encoding] if encoding else CSV_ENCODINGS)
    sep = delimiter or sniff_csv_delimiter(text) or ","
    logger.debug(f"Reading CSV {source_name(source)} (encoding={used_encoding}, sep={sep!r})")

    try:
        return pd.read_csv(
            io.StringIO(text),
            sep=sep,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            nrows=nrows,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as exc:
        raise StructuralError(f"Failed to load CSV: {source_name(source)}: {exc}") from exc


def load_excel(
    source: FileSource,
    *,
    sheet_name: str | int | None = None,
    nrows: int | None = None,
) -> pd.DataFrame:
    suffix = Path(source_name(source)).suffix.lower()
    engine = "openpyxl" if suffix in (".xlsx", ".xlsm") else None
    buffer = io.BytesIO(_read_bytes(source))

    try:
        df = pd.read_excel(buffer, engine=engine, sheet_name=sheet_name or 0, nrows=nrows)
    except (ValueError, OSError, KeyError, ImportError) as exc:
        raise StructuralError(f"Failed to load spreadsheet: {source_name(source)}: {exc}") from exc

    return df.astype(object).where(df.notna(), "")


def load_file(
    source: FileSource,
    *,
    delimiter: str | None = None,
    sheet_name: str | int | None = None,
    encoding: str | None = None,
    nrows: int | None = None,
) -> pd.DataFrame:
    """
    Load an export into a DataFrame with string headers.

    Args:
        source: Path or binary file object with a ``name``.
        delimiter: Force a CSV delimiter instead of sniffing.
        sheet_name: Spreadsheet sheet (defaults to the first).
        encoding: Force a CSV encoding instead of trying CSV_ENCODINGS.
        nrows: Read at most this many data rows.

    Returns:
        DataFrame with fully blank rows removed.

    Raises:
        StructuralError: If the file is missing, unsupported, or unreadable.
    """
    suffix = Path(source_name(source)).suffix.lower()
    if suffix not in ALLOWED_SUFFIXES:
        raise StructuralError(f"Unsupported file format: {suffix or source_name(source)}")

    if suffix == ".csv":
        df = load_csv(source, delimiter=delimiter, encoding=encoding, nrows=nrows)
    else:
        df = load_excel(source, sheet_name=sheet_name, nrows=nrows)

    df.columns = [str(col).strip() for col in df.columns]
    return _drop_blank_rows(df)


def frame_to_rows(df: pd.DataFrame) -> list[RawRow]:
    return [{str(k): v for k, v in row.items()} for row in df.to_dict(orient="records")]


def load_rows(source: FileSource, **kwargs: Any) -> tuple[list[str], list[RawRow]]:
    """Load a file and return (headers, rows)."""
    df = load_file(source, **kwargs)
    return list(df.columns), frame_to_rows(df)
