"""Unit tests for segment shifting and merging."""

import random
import pytest

from dictateflow.models.transcription import Segment
from dictateflow.transcription.merger import merge_segments, segment_offset, shift_segments


def seg(timestamp, text):
    return Segment(timestamp=timestamp, text=text)


@pytest.mark.unit
class TestShiftSegments:
    """Test cases for shift_segments."""

    def test_shift_by_chunk_offset(self):
        shifted = shift_segments([seg("00:00", "a"), seg("00:03", "b")], 10)
        assert shifted == [seg("00:10", "a"), seg("00:13", "b")]

    def test_zero_offset_keeps_timestamps(self):
        segments = [seg("01:02", "a")]
        assert shift_segments(segments, 0) == segments

    def test_does_not_mutate_input(self):
        segments = [seg("00:01", "a")]
        shift_segments(segments, 5)
        assert segments == [seg("00:01", "a")]


@pytest.mark.unit
class TestMergeSegments:
    """Test cases for merge_segments."""

    def test_late_chunk_lands_in_time_order(self):
        existing = [seg("00:05", "second chunk")]
        merged = merge_segments(existing, [seg("00:00", "first chunk")])
        assert [s.text for s in merged] == ["first chunk", "second chunk"]

    def test_equal_offsets_keep_submission_order(self):
        merged = merge_segments([seg("00:05", "existing")], [seg("00:05", "incoming")])
        assert [s.text for s in merged] == ["existing", "incoming"]

    def test_no_deduplication(self):
        merged = merge_segments([seg("00:01", "same")], [seg("00:01", "same")])
        assert len(merged) == 2

    def test_unparseable_timestamp_sorts_first(self):
        merged = merge_segments([seg("00:03", "b")], [seg("??", "a")])
        assert [s.text for s in merged] == ["a", "b"]

    def test_empty_inputs(self):
        assert merge_segments([], []) == []
        assert merge_segments([], [seg("00:01", "a")]) == [seg("00:01", "a")]

    def test_any_arrival_order_yields_sorted_transcript(self):
        """Merging chunks in any order gives the same non-decreasing transcript."""
        rng = random.Random(1234)
        for _ in range(50):
            chunks = []
            for chunk_index in range(rng.randint(1, 6)):
                offset = chunk_index * 5
                chunk = [seg("00:00", f"c{chunk_index}-{i}") for i in range(rng.randint(0, 3))]
                chunks.append(shift_segments(
                    [Segment(timestamp=f"00:0{min(i, 4)}", text=s.text) for i, s in enumerate(chunk)],
                    offset))

            arrival = list(chunks)
            rng.shuffle(arrival)
            transcript = []
            for chunk in arrival:
                transcript = merge_segments(transcript, chunk)

            offsets = [segment_offset(s) for s in transcript]
            assert offsets == sorted(offsets)
            assert sorted(s.text for s in transcript) == sorted(s.text for c in chunks for s in c)
