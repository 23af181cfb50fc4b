"""Tests for the chunk stream state machine."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from mock_llm_server import emitter
from mock_llm_server.emitter import DONE_FRAME, ChunkStream, Phase
from mock_llm_server.errors import EncodingError

from conftest import CREATED, STREAM_ID, parse_frames


def _stream(fragments, **kwargs):
    return ChunkStream(STREAM_ID, CREATED, fragments, **kwargs)


async def _drain(stream, n=-1):
    out = b""
    while True:
        data = await stream.read(n)
        if not data:
            return out
        out += data


class TestPullInterface:
    def test_frame_sequence(self):
        frames = list(_stream(["one", "two", "three"]))
        assert len(frames) == 5
        payloads = parse_frames(b"".join(frames))
        assert [p["choices"][0]["delta"] for p in payloads[:3]] == [
            {"content": "one "},
            {"content": "two "},
            {"content": "three "},
        ]
        assert payloads[3]["choices"][0] == {"index": 0, "delta": {}, "finish_reason": "stop"}
        assert payloads[4] == "[DONE]"
        assert frames[4] == DONE_FRAME == b"data: [DONE]\n\n"

    def test_empty_fragments_still_finish(self):
        stream = _stream([])
        assert stream.phase is Phase.FINISHING
        payloads = parse_frames(b"".join(stream))
        assert len(payloads) == 2
        assert payloads[0]["choices"][0]["finish_reason"] == "stop"
        assert payloads[1] == "[DONE]"

    def test_exhausted_stream_stays_exhausted(self):
        stream = _stream(["only"])
        list(stream)
        for _ in range(3):
            with pytest.raises(StopIteration):
                next(stream)
        assert stream.phase is Phase.DONE

    def test_payload_shape(self):
        stream = ChunkStream("abc", 42, ["hi"], model="mock-model")
        frame = next(stream)
        assert frame.startswith(b"data: ")
        assert frame.endswith(b"\n\n")
        payload = json.loads(frame[len(b"data: "):-2])
        assert payload == {
            "id": "abc",
            "object": "chat.completion.chunk",
            "created": 42,
            "model": "mock-model",
            "choices": [{"index": 0, "delta": {"content": "hi "}, "finish_reason": None}],
        }

    def test_every_chunk_is_well_formed(self):
        payloads = parse_frames(b"".join(_stream(["a", "b", "c", "d"])))
        for payload in payloads[:-1]:
            assert payload["object"] == "chat.completion.chunk"
            assert payload["id"] == STREAM_ID
            assert payload["created"] == CREATED
            assert len(payload["choices"]) == 1
            assert payload["choices"][0]["index"] == 0
        finishes = [p for p in payloads[:-1] if p["choices"][0]["finish_reason"] == "stop"]
        assert len(finishes) == 1
        assert payloads.count("[DONE]") == 1

    def test_non_ascii_fragments(self):
        payloads = parse_frames(b"".join(_stream(["héllo", "世界"])))
        assert payloads[1]["choices"][0]["delta"]["content"] == "世界 "

    def test_non_ascii_written_as_utf8(self):
        frame = next(_stream(["世界"]))
        assert "世界 ".encode("utf-8") in frame
        assert b"\\u" not in frame


class TestPhases:
    def test_phase_progression(self):
        stream = _stream(["a", "b"])
        assert stream.phase is Phase.EMITTING
        next(stream)
        assert stream.phase is Phase.EMITTING
        next(stream)
        # Last fragment is out, the stop frame is still owed.
        assert stream.phase is Phase.FINISHING
        assert not stream.finish_sent
        next(stream)
        assert stream.finish_sent and not stream.done_sent
        assert stream.phase is Phase.FINISHING
        next(stream)
        assert stream.phase is Phase.DONE

    def test_last_fragment_does_not_carry_stop(self):
        stream = _stream(["a"])
        first = json.loads(next(stream)[6:-2])
        assert first["choices"][0]["finish_reason"] is None
        assert first["choices"][0]["delta"] == {"content": "a "}

    def test_pending_shrinks_from_front(self):
        stream = _stream(["a", "b", "c"])
        next(stream)
        assert list(stream.pending) == ["b", "c"]
        assert stream.frames_sent == 1


class TestReaderInterface:
    @pytest.mark.asyncio
    async def test_matches_pull_bytes(self):
        fragments = ["the", "quick", "brown", "fox"]
        pulled = b"".join(_stream(fragments))
        read = await _drain(_stream(fragments))
        assert read == pulled

    @pytest.mark.asyncio
    async def test_small_reads_never_truncate(self):
        fragments = ["lorem", "ipsum"]
        pulled = b"".join(_stream(fragments))
        assert await _drain(_stream(fragments), n=7) == pulled

    @pytest.mark.asyncio
    async def test_end_of_stream_is_sticky(self):
        stream = _stream([])
        await _drain(stream)
        assert await stream.read() == b""
        assert await stream.read() == b""
        assert stream.phase is Phase.DONE

    @pytest.mark.asyncio
    async def test_async_iteration(self):
        frames = [frame async for frame in _stream(["x", "y"])]
        assert len(frames) == 4
        assert frames[-1] == DONE_FRAME

    @pytest.mark.asyncio
    async def test_delay_only_after_content_frames(self):
        sleep = AsyncMock()
        with patch.object(emitter.asyncio, "sleep", sleep):
            await _drain(_stream(["a", "b", "c"], delay=0.25))
        assert sleep.await_count == 3
        sleep.assert_awaited_with(0.25)

    @pytest.mark.asyncio
    async def test_zero_delay_does_not_sleep(self):
        sleep = AsyncMock()
        with patch.object(emitter.asyncio, "sleep", sleep):
            await _drain(_stream(["a", "b"]))
        sleep.assert_not_awaited()


class TestAbort:
    def test_encoding_error_stops_stream(self):
        stream = ChunkStream(object(), CREATED, ["a", "b"])
        with pytest.raises(EncodingError):
            next(stream)
        assert stream.closed
        with pytest.raises(StopIteration):
            next(stream)
        assert stream.frames_sent == 0

    @pytest.mark.asyncio
    async def test_close_ends_both_interfaces(self):
        stream = _stream(["a", "b", "c"])
        next(stream)
        stream.close()
        with pytest.raises(StopIteration):
            next(stream)
        assert await stream.read() == b""
        assert not stream.finish_sent
