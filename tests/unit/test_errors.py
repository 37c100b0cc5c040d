"""Unit tests for position error classification."""

import pytest

from ridertrack.core.errors import (
    DEFAULT_MESSAGES,
    PositionError,
    PositionErrorCode,
    classify_position_error,
    session_error,
)
from ridertrack.domain.models import ErrorKind


class TestClassification:
    @pytest.mark.parametrize(
        "code, kind, fatal",
        [
            (PositionErrorCode.PERMISSION_DENIED, ErrorKind.PERMISSION_DENIED, True),
            (PositionErrorCode.POSITION_UNAVAILABLE, ErrorKind.POSITION_UNAVAILABLE, False),
            (PositionErrorCode.TIMEOUT, ErrorKind.TIMEOUT, False),
            (0, ErrorKind.UNKNOWN, False),
            (42, ErrorKind.UNKNOWN, False),
        ],
    )
    def test_table(self, code, kind, fatal):
        assert classify_position_error(PositionError(code)) == (kind, fatal)

    def test_plain_int_codes(self):
        assert classify_position_error(PositionError(1))[0] is ErrorKind.PERMISSION_DENIED
        assert classify_position_error(PositionError(3))[0] is ErrorKind.TIMEOUT


class TestSessionError:
    def test_default_message(self):
        err = session_error(ErrorKind.TIMEOUT)
        assert err.kind is ErrorKind.TIMEOUT
        assert err.message == DEFAULT_MESSAGES[ErrorKind.TIMEOUT]

    def test_custom_message(self):
        err = session_error(ErrorKind.UNKNOWN, "gpsd crashed")
        assert err.message == "gpsd crashed"

    def test_every_kind_has_message(self):
        assert set(DEFAULT_MESSAGES) == set(ErrorKind)

    def test_position_error_repr(self):
        err = PositionError(PositionErrorCode.TIMEOUT, "slow")
        assert err.code == 3
        assert "slow" in str(err)
