"""Tests for waybill_kernel.domain.status -- the status transition table."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from waybill_kernel.domain.status import (
    WaybillStatus,
    allowed_targets,
    is_valid_transition,
    parse_status,
)

S = WaybillStatus


class TestTransitionTable:
    @pytest.mark.parametrize(
        "current,target",
        [
            (S.PENDING, S.DELIVERED),
            (S.PENDING, S.CANCELLED),
            (S.DELIVERED, S.DISPUTED),
        ],
    )
    def test_allowed(self, current, target):
        assert is_valid_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.PENDING, S.DISPUTED),
            (S.DELIVERED, S.PENDING),
            (S.DELIVERED, S.CANCELLED),
            (S.CANCELLED, S.PENDING),
            (S.CANCELLED, S.DELIVERED),
            (S.DISPUTED, S.DELIVERED),
            (S.DISPUTED, S.PENDING),
        ],
    )
    def test_rejected(self, current, target):
        assert not is_valid_transition(current, target)

    @given(st.sampled_from(list(WaybillStatus)))
    def test_same_status_always_allowed(self, status):
        assert is_valid_transition(status, status)

    @given(st.sampled_from([S.CANCELLED, S.DISPUTED]), st.sampled_from(list(WaybillStatus)))
    def test_terminal_states_only_stay(self, terminal, target):
        assert is_valid_transition(terminal, target) == (terminal == target)

    def test_allowed_targets_include_current(self):
        assert allowed_targets(S.PENDING) == {S.PENDING, S.DELIVERED, S.CANCELLED}
        assert allowed_targets(S.DISPUTED) == {S.DISPUTED}


class TestParseStatus:
    @pytest.mark.parametrize("raw", ["PENDING", "pending", "  Pending  "])
    def test_by_name_case_insensitive(self, raw):
        assert parse_status(raw) is S.PENDING

    @pytest.mark.parametrize("raw", [None, "", "0", "1", "SHIPPED", "PEND"])
    def test_unknown_is_none(self, raw):
        assert parse_status(raw) is None
