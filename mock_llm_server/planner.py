import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple, Union

from mock_llm_server.errors import BadRequest
from mock_llm_server.words import WordSource

logger = logging.getLogger(__name__)

GREETING = "Hello, World!"


@dataclass(frozen=True)
class ChatRequest:
    stream: bool = False
    messages: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MessageReply:
    content: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": self.content},
                }
            ]
        }


@dataclass(frozen=True)
class StreamPlan:
    id: str
    created: int
    fragments: Tuple[str, ...]


def parse_request(body: bytes) -> ChatRequest:
    """Pull ``stream`` and the message contents out of a chat request body.

    Unknown fields are ignored; fields of the wrong type are rejected.
    """
    try:
        data = json.loads(body)
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise BadRequest(f"failed to parse request body: {exc}") from exc
    if not isinstance(data, dict):
        raise BadRequest("request body must be a JSON object")

    stream = data.get("stream")
    if stream is None:
        stream = False
    elif not isinstance(stream, bool):
        raise BadRequest("'stream' must be a boolean")

    raw_messages = data.get("messages")
    if raw_messages is None:
        raw_messages = []
    elif not isinstance(raw_messages, list):
        raise BadRequest("'messages' must be an array")

    messages = []
    for i, message in enumerate(raw_messages):
        if not isinstance(message, dict):
            raise BadRequest(f"messages[{i}] must be an object")
        content = message.get("content")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            raise BadRequest(f"messages[{i}].content must be a string")
        messages.append(content)

    return ChatRequest(stream=stream, messages=messages)


class ResponsePlanner:
    """Decides what the mock assistant says and whether it is streamed."""

    def __init__(
        self,
        reply_words: int,
        mode: str,
        words: WordSource,
        clock: Callable[[], float] = time.time,
    ):
        self.reply_words = reply_words
        self.mode = mode
        self.words = words
        self.clock = clock

    def plan(self, request: ChatRequest) -> Union[MessageReply, StreamPlan]:
        if not request.stream:
            return MessageReply(self._reply_text(request))

        if self.mode == "echo":
            fragments = tuple(self._echo(request).split())
        else:
            fragments = tuple(self._random_words())
        plan = StreamPlan(
            id=self.words.next_id(),
            created=int(self.clock()),
            fragments=fragments,
        )
        logger.debug("planned stream %s with %d fragments", plan.id, len(fragments))
        return plan

    def _reply_text(self, request: ChatRequest) -> str:
        if self.mode == "echo":
            return self._echo(request)
        return " ".join(self._random_words())

    def _echo(self, request: ChatRequest) -> str:
        if not request.messages:
            return GREETING
        return "You said: " + json.dumps(request.messages[-1], ensure_ascii=False)

    def _random_words(self) -> List[str]:
        return [self.words.next_word() for _ in range(self.reply_words)]
