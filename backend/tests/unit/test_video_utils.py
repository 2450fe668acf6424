"""Tests for the video session join window."""

import pytest

from app.domain.video_utils import compute_join_window, is_within_join_window
from tests.helpers import MINUTE, TUESDAY_1300_UTC


@pytest.mark.unit
class TestJoinWindow:
    def test_window_bounds(self) -> None:
        opens, closes = compute_join_window(TUESDAY_1300_UTC)
        assert opens == TUESDAY_1300_UTC - 10 * MINUTE
        assert closes == TUESDAY_1300_UTC + 60 * MINUTE

    @pytest.mark.parametrize(
        "offset_minutes, expected",
        [
            (-11, False),
            (-10, True),
            (0, True),
            (45, True),
            (60, True),
            (61, False),
        ],
    )
    def test_is_within(self, offset_minutes: int, expected: bool) -> None:
        now = TUESDAY_1300_UTC + offset_minutes * MINUTE
        assert is_within_join_window(TUESDAY_1300_UTC, now) is expected
