"""
Row version tokens for optimistic concurrency.

A row version is 16 opaque bytes regenerated on every write to a waybill.
Clients receive it base64-encoded and must echo it back on update.
"""

import base64
import binascii
from uuid import uuid4

from waybill_kernel.exceptions import WaybillValidationError

ROW_VERSION_LENGTH = 16


def new_row_version() -> bytes:
    return uuid4().bytes


def encode_row_version(token: bytes) -> str:
    return base64.b64encode(token).decode("ascii")


def decode_row_version(value: str | None) -> bytes:
    """
    Decode a client-supplied token.

    Raises:
        WaybillValidationError: ROW_VERSION_MISSING when absent or blank,
            ROW_VERSION_INVALID when not base64 of exactly 16 bytes.
    """
    if value is None or not value.strip():
        raise WaybillValidationError(
            "ROW_VERSION_MISSING", "rowVersionBase64 is required"
        )
    try:
        token = base64.b64decode(value.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise WaybillValidationError(
            "ROW_VERSION_INVALID", "rowVersionBase64 is not valid base64"
        ) from None
    if len(token) != ROW_VERSION_LENGTH:
        raise WaybillValidationError(
            "ROW_VERSION_INVALID",
            f"rowVersionBase64 must decode to {ROW_VERSION_LENGTH} bytes",
        )
    return token
