"""Replays a reply as a paced sequence of ``chat.completion.chunk`` frames.

A stream is a one-shot state machine: every content fragment becomes one
``data: {...}\\n\\n`` frame, followed by exactly one ``finish_reason: "stop"``
frame and exactly one ``data: [DONE]\\n\\n`` sentinel. The frames come from a
single generator so the pull side (``next(stream)``) and the reader side
(``await stream.read()``) produce byte-identical output.
"""

import asyncio
import collections
import enum
import json
import logging
from typing import Any, Dict, Iterable, Iterator, NamedTuple, Optional

from mock_llm_server.config import DEFAULT_MODEL
from mock_llm_server.errors import EncodingError

logger = logging.getLogger(__name__)

DATA_PREFIX = b"data: "
FRAME_END = b"\n\n"
DONE_FRAME = DATA_PREFIX + b"[DONE]" + FRAME_END
CHUNK_OBJECT = "chat.completion.chunk"


class Phase(enum.Enum):
    EMITTING = "emitting"
    FINISHING = "finishing"
    DONE = "done"


class Frame(NamedTuple):
    data: bytes
    # Only content frames are followed by the inter-chunk delay.
    content: bool


class ChunkStream:
    def __init__(
        self,
        job_id: str,
        created: int,
        fragments: Iterable[str],
        *,
        model: str = DEFAULT_MODEL,
        delay: float = 0.0,
    ):
        self.id = job_id
        self.created = created
        self.model = model
        self.delay = delay
        self.pending = collections.deque(fragments)
        self.finish_sent = False
        self.done_sent = False
        self.closed = False
        self.frames_sent = 0
        self._frames = self._generate()
        self._buffer = b""
        self._paced = False

    def __repr__(self):
        return (
            f"<ChunkStream id={self.id!r} phase={self.phase.value} "
            f"pending={len(self.pending)} sent={self.frames_sent}>"
        )

    @property
    def phase(self) -> Phase:
        if self.finish_sent and self.done_sent:
            return Phase.DONE
        if self.pending:
            return Phase.EMITTING
        return Phase.FINISHING

    def _generate(self) -> Iterator[Frame]:
        while self.pending:
            frame = self._encode({"content": self.pending[0] + " "}, None)
            self.pending.popleft()
            yield Frame(frame, True)

        # The stop frame goes out on the call after the last fragment, never
        # together with it.
        frame = self._encode({}, "stop")
        self.finish_sent = True
        yield Frame(frame, False)

        self.done_sent = True
        yield Frame(DONE_FRAME, False)

    def _encode(self, delta: Dict[str, str], finish_reason: Optional[str]) -> bytes:
        payload: Dict[str, Any] = {
            "id": self.id,
            "object": CHUNK_OBJECT,
            "created": self.created,
            "model": self.model,
            "choices": [
                {
                    "index": 0,
                    "delta": delta,
                    "finish_reason": finish_reason,
                }
            ],
        }
        try:
            body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as exc:
            self.closed = True
            raise EncodingError(f"failed to encode chunk for stream {self.id!r}: {exc}") from exc
        return DATA_PREFIX + body.encode("utf-8") + FRAME_END

    def _next_frame(self) -> Optional[Frame]:
        if self.closed:
            return None
        frame = next(self._frames, None)
        if frame is None:
            return None
        self.frames_sent += 1
        return frame

    def close(self):
        """Abort the stream; both interfaces report end-of-stream afterwards."""
        if not self.closed and self.phase is not Phase.DONE:
            logger.debug("closing %r", self)
        self.closed = True
        self._buffer = b""
        self._frames.close()

    # Pull interface: one frame per call, no pacing.

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        frame = self._next_frame()
        if frame is None:
            raise StopIteration
        return frame.data

    # Reader interface: paced, returns b"" at end-of-stream.

    async def read(self, n: int = -1) -> bytes:
        if n == 0:
            return b""
        if not self._buffer:
            if self._paced and self.delay > 0:
                await asyncio.sleep(self.delay)
            self._paced = False
            frame = self._next_frame()
            if frame is None:
                return b""
            self._buffer = frame.data
            self._paced = frame.content
        if n < 0 or n >= len(self._buffer):
            data, self._buffer = self._buffer, b""
        else:
            data, self._buffer = self._buffer[:n], self._buffer[n:]
        return data

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        data = await self.read()
        if not data:
            raise StopAsyncIteration
        return data
