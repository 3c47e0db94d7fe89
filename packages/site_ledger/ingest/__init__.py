"""Statement ingest: decoding, header detection and layout adapters."""

from .statement import StatementDecodeError, decode_statement, parse_statement

__all__ = ["StatementDecodeError", "decode_statement", "parse_statement"]
