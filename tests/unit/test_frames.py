"""Unit tests for SSE frame reassembly and classification."""

from __future__ import annotations

import json
import random

import pytest

from mcp_stream_client.protocol.frames import (
    Frame,
    FrameReassembler,
    encode_frame,
    iter_frames,
    parse_frame,
)

STREAM = (
    'event: endpoint\ndata: /messages?session_id=abc\n\n'
    'data: {"jsonrpc": "2.0", "method": "notifications/progress", '
    '"params": {"progressToken": "tb", "progress": 1, "total": 2, '
    '"message": "héllo \U0001f30d"}}\n\n'
    'id: 7\ndata: {"jsonrpc": "2.0", "id": 2, "result": {"text": "日本語"}}\n\n'
).encode("utf-8")


def _frames_for_chunks(chunks: list[bytes]) -> list[str]:
    reassembler = FrameReassembler()
    frames: list[str] = []
    for chunk in chunks:
        frames.extend(reassembler.feed(chunk))
    reassembler.finish()
    return frames


class TestFrameReassembler:
    """Tests for FrameReassembler."""

    def test_complete_frames_in_order(self) -> None:
        """Every delimited frame is emitted in arrival order."""
        frames = _frames_for_chunks([b"data: a\n\ndata: b\n\n"])
        assert frames == ["data: a", "data: b"]

    def test_incomplete_frame_is_buffered(self) -> None:
        """A frame without its delimiter is held back until completed."""
        reassembler = FrameReassembler()

        assert reassembler.feed(b"data: par") == []
        assert reassembler.buffered == "data: par"
        assert reassembler.feed(b"tial\n") == []
        assert reassembler.feed(b"\n") == ["data: partial"]
        assert reassembler.buffered == ""

    def test_delimiter_split_across_chunks(self) -> None:
        """The two newlines of a delimiter may arrive separately."""
        assert _frames_for_chunks([b"data: x\n", b"\ndata: y\n", b"\n"]) == ["data: x", "data: y"]

    def test_multibyte_sequence_split_across_chunks(self) -> None:
        """UTF-8 continuation state survives chunk boundaries."""
        encoded = "data: \U0001f30d\n\n".encode()
        # Split inside the 4-byte emoji
        frames = _frames_for_chunks([encoded[:8], encoded[8:9], encoded[9:]])
        assert frames == ["data: \U0001f30d"]

    def test_trailing_incomplete_frame_dropped(self) -> None:
        """Input ending mid-frame drops the remainder without error."""
        reassembler = FrameReassembler()
        assert reassembler.feed(b"data: done\n\ndata: cut") == ["data: done"]

        reassembler.finish()

        assert reassembler.buffered == ""

    def test_blank_frames_skipped(self) -> None:
        """Runs of blank lines do not produce empty frames."""
        assert _frames_for_chunks([b"\n\n\n\ndata: a\n\n\n\n"]) == ["data: a"]

    def test_accepts_text_chunks(self) -> None:
        """Already-decoded text can be fed directly."""
        reassembler = FrameReassembler()
        assert reassembler.feed("data: t\n\n") == ["data: t"]

    def test_every_two_way_split_matches_unsplit(self) -> None:
        """Splitting the stream at any byte offset yields the same frames."""
        expected = _frames_for_chunks([STREAM])
        assert len(expected) == 3

        for offset in range(len(STREAM) + 1):
            assert _frames_for_chunks([STREAM[:offset], STREAM[offset:]]) == expected

    def test_random_chunkings_match_unsplit(self) -> None:
        """Arbitrary chunk sizes yield the same frames."""
        expected = _frames_for_chunks([STREAM])
        rng = random.Random(1234)

        for _ in range(200):
            chunks: list[bytes] = []
            position = 0
            while position < len(STREAM):
                size = rng.randint(1, 12)
                chunks.append(STREAM[position : position + size])
                position += size
            assert _frames_for_chunks(chunks) == expected

    def test_byte_at_a_time(self) -> None:
        """One byte per chunk still reassembles correctly."""
        chunks = [STREAM[i : i + 1] for i in range(len(STREAM))]
        assert _frames_for_chunks(chunks) == _frames_for_chunks([STREAM])


class TestIterFrames:
    """Tests for the async frame iterator."""

    @pytest.mark.asyncio
    async def test_yields_frames_from_byte_stream(self) -> None:
        """Frames are yielded lazily from an async byte stream."""

        async def chunks():
            yield b"data: one\n"
            yield b"\ndata: tw"
            yield b"o\n\ndata: never completed"

        frames = [frame async for frame in iter_frames(chunks())]

        assert frames == ["data: one", "data: two"]


class TestParseFrame:
    """Tests for parse_frame."""

    def test_defaults(self) -> None:
        """Missing event and id lines fall back to defaults."""
        frame = parse_frame("data: hello")

        assert frame == Frame(event="message", id="", data="hello")

    def test_event_and_id(self) -> None:
        """event: and id: lines are picked up and trimmed."""
        frame = parse_frame("event: endpoint\nid: 42 \ndata: /messages")

        assert frame.event == "endpoint"
        assert frame.id == "42"
        assert frame.data == "/messages"

    def test_data_lines_concatenated(self) -> None:
        """Multiple data lines are joined in order."""
        frame = parse_frame('data: {"a":\ndata: 1}')

        assert frame.data == '{"a":1}'
        assert json.loads(frame.data) == {"a": 1}

    def test_only_one_leading_space_stripped(self) -> None:
        """data: keeps all but the first leading space."""
        assert parse_frame("data:  indented").data == " indented"
        assert parse_frame("data:tight").data == "tight"

    def test_unknown_lines_ignored(self) -> None:
        """Comments and unknown fields do not affect the frame."""
        frame = parse_frame(": keep-alive\nretry: 1000\nfoo: bar\ndata: x")

        assert frame == Frame(data="x")

    def test_frame_without_data(self) -> None:
        """A frame with no data line has an empty payload."""
        frame = parse_frame("event: ping")

        assert frame.event == "ping"
        assert frame.has_data() is False


class TestEncodeFrame:
    """Tests for encode_frame."""

    def test_round_trip_through_parser(self) -> None:
        """Encoded frames parse back to the same event, id and data."""
        wire = encode_frame('{"id": 1}', event="message", event_id="9")

        assert wire.endswith("\n\n")
        frames = _frames_for_chunks([wire.encode()])
        assert parse_frame(frames[0]) == Frame(event="message", id="9", data='{"id": 1}')
