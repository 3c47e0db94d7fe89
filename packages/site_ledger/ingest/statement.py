"""Statement parser: raw export content -> normalized transactions.

Pipeline
--------
1. Decode (``bytes`` input only) with the statement's declared encoding. The
   bank's exports use the legacy single-byte Cyrillic code page ``cp1251``.
   Decoding happens strictly before any CSV work.
2. Reject content that is not text at all (PDF binaries, NUL bytes, mostly
   control characters) with :class:`StatementDecodeError`.
3. Locate the header row (preamble lines such as account holder or period are
   skipped) and detect the delimiter from it.
4. Dispatch the remaining rows to the adapter for the detected layout.

Per-row problems never abort parsing: rows with the wrong column count,
unreadable amounts or dates are logged and skipped. Empty or header-only
content yields an empty list.
"""

from __future__ import annotations

import codecs
import csv
import io
from collections.abc import Iterator

from ..logging_setup import get_logger
from ..models import NormalizedTransaction
from ..settings import DEFAULT_CURRENCY, DEFAULT_STATEMENT_ENCODING
from .adapters import signed_amount_csv, split_columns_csv
from .columns import ColumnMap, detect_delimiter, match_header

_logger = get_logger("site_ledger.ingest.statement")

# Fraction of control characters above which decoded content is treated as binary
_MAX_CONTROL_RATIO = 0.05
_ALLOWED_CONTROLS = frozenset("\t\n\r\f\v")


class StatementDecodeError(ValueError):
    """The statement as a whole could not be read as text.

    This is the single "could not parse statement" outcome surfaced to
    callers; per-row problems are recovered locally instead.
    """


def _looks_binary(text: str) -> bool:
    if "\x00" in text:
        return True
    sample = text[:8192]
    controls = sum(1 for ch in sample if ord(ch) < 32 and ch not in _ALLOWED_CONTROLS)
    return controls > len(sample) * _MAX_CONTROL_RATIO


def decode_statement(raw: str | bytes, source_encoding: str = DEFAULT_STATEMENT_ENCODING) -> str:
    """Return the statement text, decoding ``bytes`` with ``source_encoding``.

    ``str`` input is assumed to be decoded already. Raises
    :class:`StatementDecodeError` when the content cannot be decoded or is
    not text.
    """

    if isinstance(raw, bytes):
        if raw.startswith(b"%PDF"):
            raise StatementDecodeError(
                "could not parse statement: PDF documents are not supported, "
                "export the statement as CSV"
            )
        try:
            codecs.lookup(source_encoding)
        except LookupError as exc:
            raise StatementDecodeError(
                f"could not parse statement: unknown encoding {source_encoding!r}"
            ) from exc
        # A UTF-8 byte order mark wins over the declared legacy encoding.
        if raw.startswith(codecs.BOM_UTF8):
            raw, source_encoding = raw[len(codecs.BOM_UTF8) :], "utf-8"
        try:
            text = raw.decode(source_encoding)
        except UnicodeDecodeError as exc:
            raise StatementDecodeError(
                f"could not parse statement: content is not valid {source_encoding}"
            ) from exc
    else:
        text = raw

    text = text.lstrip("\ufeff")
    if _looks_binary(text):
        raise StatementDecodeError("could not parse statement: content is not text")
    return text


def _locate_header(lines: list[str]) -> tuple[int, str, ColumnMap] | None:
    for idx, line in enumerate(lines):
        if not line.strip():
            continue
        delimiter = detect_delimiter(line)
        cells = next(csv.reader([line], delimiter=delimiter), [])
        columns = match_header(cells)
        if columns is not None:
            return idx, delimiter, columns
    return None


def _data_rows(
    body: str, *, delimiter: str, columns: ColumnMap, first_line_no: int
) -> Iterator[tuple[int, list[str]]]:
    """Yield ``(line_no, cells)`` for rows with the header's column count."""

    reader = csv.reader(io.StringIO(body), delimiter=delimiter)
    for cells in reader:
        # ``line_num`` counts physical lines read so far, including quoted newlines
        line_no = first_line_no + reader.line_num - 1
        if not any(c.strip() for c in cells):
            continue
        # Tolerate a trailing delimiter at the end of data rows
        if len(cells) == columns.width + 1 and not cells[-1].strip():
            cells = cells[:-1]
        if len(cells) != columns.width:
            _logger.warning(
                "statement:row_skipped line=%d reason=expected %d columns, got %d",
                line_no,
                columns.width,
                len(cells),
            )
            continue
        yield line_no, cells


def parse_statement(
    raw: str | bytes,
    source_encoding: str = DEFAULT_STATEMENT_ENCODING,
    *,
    default_currency: str | None = None,
) -> list[NormalizedTransaction]:
    """Parse a bank statement export into normalized transactions.

    Parameters
    ----------
    raw:
        Full statement content. ``bytes`` are decoded with ``source_encoding``
        first; ``str`` is taken as already decoded.
    source_encoding:
        Declared byte encoding of the export (default ``cp1251``).
    default_currency:
        Currency code for rows without a currency column/value.

    Returns
    -------
    list[NormalizedTransaction]
        Transactions in statement order. Empty for empty or header-only
        content.

    Raises
    ------
    StatementDecodeError
        When the content cannot be decoded, is binary, or has content but no
        recognizable header row.
    """

    text = decode_statement(raw, source_encoding)
    if not text.strip():
        return []

    lines = text.splitlines(keepends=True)
    located = _locate_header(lines)
    if located is None:
        raise StatementDecodeError("could not parse statement: no recognizable header row")
    header_idx, delimiter, columns = located

    # Rebuild the body from the original lines so quoted newlines stay intact
    body = "".join(lines[header_idx + 1 :])
    rows = _data_rows(
        body, delimiter=delimiter, columns=columns, first_line_no=header_idx + 2
    )
    adapter = split_columns_csv if columns.layout == "split" else signed_amount_csv
    transactions = list(
        adapter.to_transactions(
            rows, columns, default_currency=(default_currency or DEFAULT_CURRENCY).upper()
        )
    )

    _logger.info(
        "statement:parsed layout=%s delimiter=%r transactions=%d",
        columns.layout,
        delimiter,
        len(transactions),
    )
    return transactions


__all__ = ["StatementDecodeError", "decode_statement", "parse_statement"]
