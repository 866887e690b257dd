"""Tests for transcript segments."""

from __future__ import annotations

from meetnote.l1_entities.transcript import TranscriptSegment, join_segments


class TestJoinSegments:
    def test_joins_with_single_space(self):
        segs = [
            TranscriptSegment(text='Hello', start=0.0, end=1.0),
            TranscriptSegment(text='world', start=1.0, end=2.0),
        ]
        assert join_segments(segs) == 'Hello world'

    def test_skips_empty_text(self):
        segs = [
            TranscriptSegment(text='', start=0.0, end=1.0),
            TranscriptSegment(text='only', start=1.0, end=2.0),
        ]
        assert join_segments(segs) == 'only'

    def test_empty(self):
        assert join_segments([]) == ''
