"""Tests for waybill_kernel.domain.row_version."""

import base64

import pytest

from waybill_kernel.domain.row_version import (
    ROW_VERSION_LENGTH,
    decode_row_version,
    encode_row_version,
    new_row_version,
)
from waybill_kernel.exceptions import WaybillValidationError


class TestNewRowVersion:
    def test_length_and_uniqueness(self):
        a, b = new_row_version(), new_row_version()
        assert len(a) == ROW_VERSION_LENGTH
        assert a != b


class TestDecodeRowVersion:
    def test_decodes_what_was_encoded(self):
        token = new_row_version()
        assert decode_row_version(encode_row_version(token)) == token

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing(self, value):
        with pytest.raises(WaybillValidationError) as exc_info:
            decode_row_version(value)
        assert exc_info.value.code == "ROW_VERSION_MISSING"

    @pytest.mark.parametrize("value", ["not base64!!", "abc", "@@@@"])
    def test_malformed(self, value):
        with pytest.raises(WaybillValidationError) as exc_info:
            decode_row_version(value)
        assert exc_info.value.code == "ROW_VERSION_INVALID"

    def test_wrong_length(self):
        short = base64.b64encode(b"\x01" * 8).decode()
        with pytest.raises(WaybillValidationError) as exc_info:
            decode_row_version(short)
        assert exc_info.value.code == "ROW_VERSION_INVALID"
