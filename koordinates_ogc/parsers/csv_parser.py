"""
CSV Batch Reader
================

This module reads the cached "initial dataset" of a Koordinates layer,
a delimited text file whose first line holds the column names, in
bounded windows.  Two functions are provided:

:func:`read_csv_in_batches`
    Return the records whose zero-based position after the header falls
    in ``[start, start + batch)``.
:func:`count_records`
    Return the number of data lines in the file (header excluded).

Initial datasets can be several gigabytes, so neither function loads
the file into memory.  Lines are streamed through a generator and only
the lines inside the requested window are handed to
:func:`pandas.read_csv`, together with the header, to be split into
fields.  Consumption of the generator stops as soon as the window has
been filled.

Example
-------
>>> from koordinates_ogc.parsers.csv_parser import count_records, read_csv_in_batches
>>> count_records("datasets/addresses.csv")
2
>>> read_csv_in_batches("datasets/addresses.csv", start=0, batch=1)
[{'id': '1', 'name': 'Alice'}]

The reader does **not** download anything; use
:func:`koordinates_ogc.downloader.ensure_dataset` to obtain a local file
first.
"""

from __future__ import annotations

import codecs
import io
import logging
import os
import warnings
from itertools import islice
from typing import Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

import pandas as pd

from ..exceptions import DatasetReadError

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100_000
FALLBACK_ENCODING = "ISO-8859-1"

T = TypeVar("T")


def _detect_encoding(sample: bytes) -> Optional[str]:
    """Guess the encoding of a byte sample taken from the start of a file.

    Only a handful of encodings are tried, in order of preference.
    ``utf-8-sig`` comes first so that a leading byte order mark never ends
    up in the first column name.  An incremental decoder is used because
    the sample may stop in the middle of a multi-byte character.
    """
    for enc in ("utf-8-sig", "windows-1252", "ISO-8859-1"):
        try:
            codecs.getincrementaldecoder(enc)().decode(sample, final=False)
        except UnicodeDecodeError:
            continue
        else:
            return enc
    return None


def _resolve_encoding(file_path: str, encoding: Optional[str]) -> str:
    if encoding is not None:
        return encoding
    with open(file_path, "rb") as f:
        sample = f.read(4096)
    return _detect_encoding(sample) or "utf-8"


def _with_encoding_fallback(read: Callable[[str], T], file_path: str, encoding: Optional[str]) -> T:
    """Call ``read(encoding)``, retrying with ISO-8859-1 on a decoding error.

    The encoding is sniffed from the start of the file only, so a byte
    further down may still not decode.  ISO-8859-1 maps every byte and
    splits lines on the same bytes, so line positions are unchanged.
    """
    encoding = _resolve_encoding(file_path, encoding)
    try:
        return read(encoding)
    except UnicodeDecodeError as exc:
        if codecs.lookup(encoding).name == codecs.lookup(FALLBACK_ENCODING).name:
            raise
        logger.warning(
            "File %s is not valid %s (%s), reading it as %s", file_path, encoding, exc, FALLBACK_ENCODING
        )
        return read(FALLBACK_ENCODING)


def _iter_lines(file_path: str, encoding: str) -> Iterator[str]:
    """Yield the lines of ``file_path`` without their line terminator.

    The file is closed when the generator is exhausted or closed.
    """
    with open(file_path, "r", encoding=encoding, newline="") as f:
        for line in f:
            yield line.rstrip("\r\n")


def _read_window(file_path: str, encoding: str, start: int, batch: int) -> Tuple[Optional[str], List[str]]:
    """Return the header line and the raw lines of the window."""
    lines = _iter_lines(file_path, encoding)
    try:
        header = next(lines, None)
        if header is None:
            return None, []
        return header, list(islice(lines, start, start + batch))
    finally:
        lines.close()


def _parse_lines(header: str, lines: List[str], delimiter: str) -> List[Dict[str, str]]:
    """Split ``lines`` into records keyed by the fields of ``header``.

    Every line yields exactly one record at its position: a blank line
    becomes a record of empty values.

    Raises
    ------
    pandas.errors.ParserWarning
        If a line has more fields than the header.
    """
    filled = [line for line in lines if line.strip()]
    buffer = io.StringIO("\n".join([header, *filled]))
    with warnings.catch_warnings():
        # pandas only warns when it drops the extra fields of a long row
        warnings.simplefilter("error", category=pd.errors.ParserWarning)
        df = pd.read_csv(
            buffer,
            sep=delimiter,
            quotechar='"',
            dtype=str,
            keep_default_na=False,
            index_col=False,
            engine="c",
        )
    # Rows shorter than the header leave NaN in the trailing columns.
    df = df.fillna("")
    parsed = iter(df.to_dict(orient="records"))
    blank = {column: "" for column in df.columns}
    return [next(parsed) if line.strip() else dict(blank) for line in lines]


def read_csv_in_batches(
    file_path: str,
    start: int,
    batch: int,
    *,
    delimiter: str = ",",
    encoding: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Return one window of records from a delimited text file.

    Parameters
    ----------
    file_path : str
        Path to the file on disk.  The first line is the header.
    start : int
        Zero-based index of the first data line to return.  The header
        is not counted.
    batch : int
        Maximum number of records to return, between 1 and
        ``MAX_BATCH_SIZE``.
    delimiter : str, optional
        Field separator, ``","`` by default.  Fields enclosed in double
        quotes may contain the delimiter.
    encoding : str, optional
        Text encoding of the file.  Detected from the first few kilobytes
        when omitted.  If the file turns out not to decode, it is read
        again as ISO-8859-1.

    Returns
    -------
    list of dict
        Records in file order, each mapping a column name to its string
        value.  Empty when ``start`` lies beyond the last data line.

    Raises
    ------
    ValueError
        If ``start`` is negative or ``batch`` is out of range.
    DatasetReadError
        If the file cannot be opened, decoded or parsed.  No partial
        result is returned.
    """
    if start < 0:
        raise ValueError("start must be zero or positive")
    if batch <= 0 or batch > MAX_BATCH_SIZE:
        raise ValueError(f"Batch size must be between 1 and {MAX_BATCH_SIZE}")
    if len(delimiter) != 1:
        raise ValueError("delimiter must be a single character")

    file_path = os.fspath(file_path)
    try:
        header, window = _with_encoding_fallback(
            lambda enc: _read_window(file_path, enc, start, batch), file_path, encoding
        )
        if header is None or not window:
            return []
        if not header.strip():
            logger.warning("File %s has an empty header line, no records returned", file_path)
            return []
        records = _parse_lines(header, window, delimiter)
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Failed reading file %s: %s", file_path, exc)
        raise DatasetReadError(f"Failed reading file {file_path}", file_path) from exc
    except pd.errors.ParserWarning as exc:
        logger.error(
            "Line with more fields than the header in records %d-%d of %s: %s", start, start + batch, file_path, exc
        )
        raise DatasetReadError(f"Failed parsing file {file_path}: {exc}", file_path) from exc
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        logger.error("Failed parsing records %d-%d of %s: %s", start, start + batch, file_path, exc)
        raise DatasetReadError(f"Failed parsing file {file_path}", file_path) from exc

    logger.debug("Read %d records from %s starting at %d", len(records), file_path, start)
    return records


def count_records(file_path: str, *, encoding: Optional[str] = None) -> int:
    """Return the number of data lines in ``file_path``.

    The header line is excluded, so a file holding only a header (or no
    line at all) has zero records.

    Raises
    ------
    DatasetReadError
        If the file cannot be opened or read.
    """
    file_path = os.fspath(file_path)
    try:
        total = _with_encoding_fallback(
            lambda enc: sum(1 for _ in _iter_lines(file_path, enc)), file_path, encoding
        )
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Failed reading file %s: %s", file_path, exc)
        raise DatasetReadError(f"Failed reading file {file_path}", file_path) from exc
    return total - 1 if total > 0 else 0


__all__ = ["MAX_BATCH_SIZE", "count_records", "read_csv_in_batches"]
