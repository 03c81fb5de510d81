"""Unit tests for timestamp formatting and parsing."""

import pytest
from dictateflow.transcription.timecode import format_time, parse_time, shift_time


@pytest.mark.unit
class TestFormatTime:
    """Test cases for format_time."""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "00:00"),
        (5, "00:05"),
        (65, "01:05"),
        (65.9, "01:05"),
        (599, "09:59"),
        (4500, "75:00"),
    ])
    def test_format(self, seconds, expected):
        assert format_time(seconds) == expected

    def test_negative_clamps_to_zero(self):
        assert format_time(-3) == "00:00"


@pytest.mark.unit
class TestParseTime:
    """Test cases for parse_time."""

    @pytest.mark.parametrize("timestamp,expected", [
        ("00:00", 0),
        ("00:07", 7),
        ("01:05", 65),
        ("75:00", 4500),
        ("1:02:03", 3723),
        ("42", 42),
        (" 02:10 ", 130),
    ])
    def test_parse(self, timestamp, expected):
        assert parse_time(timestamp) == expected

    @pytest.mark.parametrize("timestamp", ["", "garbage", "ab:cd", "1:x"])
    def test_unparseable_is_zero(self, timestamp):
        assert parse_time(timestamp) == 0

    def test_format_then_parse_is_whole_seconds(self):
        for seconds in (0, 1, 59, 60, 61, 3599, 3600, 7322):
            assert parse_time(format_time(seconds)) == seconds


@pytest.mark.unit
def test_shift_time():
    assert shift_time("00:02", 5) == "00:07"
    assert shift_time("00:58", 5) == "01:03"
    assert shift_time("garbage", 15) == "00:15"
