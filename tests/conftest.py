import json

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from mock_llm_server.config import ServerConfig
from mock_llm_server.server import create_app
from mock_llm_server.words import FixedWordSource

CREATED = 1700000000
STREAM_ID = "chatcmpl-test-1"


def parse_frames(body: bytes):
    """Split a streamed body into decoded chunk payloads plus the trailing sentinel."""
    frames = body.split(b"\n\n")
    assert frames[-1] == b"", "stream must end with a blank line"
    out = []
    for frame in frames[:-1]:
        assert frame.startswith(b"data: ")
        data = frame[len(b"data: "):]
        out.append("[DONE]" if data == b"[DONE]" else json.loads(data))
    return out


@pytest.fixture
def config():
    return ServerConfig(reply_words=3, stream_delay=0)


@pytest.fixture
def words():
    return FixedWordSource(["alpha", "beta", "gamma"], ids=[STREAM_ID])


@pytest_asyncio.fixture
async def client(config, words):
    app = create_app(config, words=words, clock=lambda: CREATED)
    async with TestClient(TestServer(app)) as client:
        yield client
