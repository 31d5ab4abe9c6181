"""
CSV source adapter for waybill uploads.

Uses csv.reader in strict mode so that a broken line (a stray quote, an
unterminated field) is reported for that line only and parsing resumes on
the next one.  Decodes UTF-8 with BOM stripping; undecodable bytes are
replaced rather than failing the whole upload.  Blank lines are skipped and
never counted.

Row numbers are physical source lines: the header is line 1, so the first
data record is row 2.  A quoted field spanning several lines is numbered by
the line it starts on.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Iterator

from waybill_ingestion.adapters.base import Payload, SourceRow

_QUOTING = {
    "minimal": csv.QUOTE_MINIMAL,
    "all": csv.QUOTE_ALL,
    "none": csv.QUOTE_NONE,
}


def _get_encoding(options: dict[str, Any]) -> str:
    enc = options.get("encoding", "utf-8")
    if enc.lower() in ("utf-8", "utf8"):
        return "utf-8-sig"  # Strip BOM if present
    return enc


def _get_quoting(options: dict[str, Any]) -> int:
    q = options.get("quoting", "minimal")
    if isinstance(q, int):
        return q
    return _QUOTING.get(str(q).lower(), csv.QUOTE_MINIMAL)


def read_text(payload: Payload, options: dict[str, Any] | None = None) -> str:
    """Return the payload as text, decoding bytes and draining streams."""
    options = options or {}
    if hasattr(payload, "read"):
        payload = payload.read()
    if isinstance(payload, bytes):
        return payload.decode(_get_encoding(options), errors="replace")
    if payload.startswith("\ufeff"):
        return payload[1:]
    return payload


class CsvSourceAdapter:
    """Read a CSV payload as one header-keyed dict per data record."""

    def _records(
        self, payload: Payload, options: dict[str, Any],
    ) -> Iterator[tuple[int, list[str] | None]]:
        """Yield (start line, cells) for every non-blank record, header included."""
        text = read_text(payload, options)
        reader = csv.reader(
            io.StringIO(text, newline=""),
            delimiter=options.get("delimiter", ","),
            quoting=_get_quoting(options),
            strict=True,
        )
        while True:
            start_line = reader.line_num + 1
            try:
                cells = next(reader)
            except StopIteration:
                return
            except csv.Error:
                yield start_line, None
                continue
            if not cells or (len(cells) == 1 and not cells[0].strip()):
                continue
            yield start_line, cells

    def columns(
        self, payload: Payload, options: dict[str, Any] | None = None,
    ) -> tuple[str, ...]:
        for _, cells in self._records(payload, options or {}):
            return tuple(c.strip() for c in cells) if cells is not None else ()
        return ()

    def read(
        self, payload: Payload, options: dict[str, Any] | None = None,
    ) -> Iterator[SourceRow]:
        """
        Yield data rows keyed by trimmed header name.

        When a header name repeats, the first column wins.  Cells beyond the
        header width are ignored; missing trailing cells are simply absent.
        An unreadable header leaves every data row with no mapped values.
        """
        records = self._records(payload, options or {})
        header: tuple[str, ...] | None = None
        for row_number, cells in records:
            if header is None:
                header = tuple(c.strip() for c in cells) if cells is not None else ()
                continue
            if cells is None:
                yield SourceRow(row_number=row_number, values=None)
                continue
            values: dict[str, str] = {}
            for name, cell in zip(header, cells):
                if name and name not in values:
                    values[name] = cell
            yield SourceRow(row_number=row_number, values=values)
