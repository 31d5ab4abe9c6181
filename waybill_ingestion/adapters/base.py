"""
Source adapter protocol and the row DTO.

Contract:
    SourceAdapter.read() yields one SourceRow per non-blank data record, in
    file order, after the header.  A record the parser could not read is
    yielded with ``values=None`` so that it is reported, not skipped.

Architecture: waybill_ingestion/adapters.  Decoding and parsing only, no DB
    or kernel imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import IO, Any, Iterator, Protocol, Union, runtime_checkable

Payload = Union[bytes, str, IO[bytes], IO[str]]


@dataclass(frozen=True)
class SourceRow:
    """One data record.  ``row_number`` is the 1-based source line it starts on."""

    row_number: int
    values: dict[str, str] | None  # None when the line could not be parsed


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for reading an uploaded payload into header-keyed rows."""

    def columns(self, payload: Payload, options: dict[str, Any] | None = None) -> tuple[str, ...]:
        ...

    def read(self, payload: Payload, options: dict[str, Any] | None = None) -> Iterator[SourceRow]:
        ...
