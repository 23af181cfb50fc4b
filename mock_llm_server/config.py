from dataclasses import dataclass
from typing import Optional, Tuple

from mock_llm_server.errors import ConfigError

DEFAULT_ADDR = ":1323"
DEFAULT_MODEL = "gpt-3.5-turbo"
REPLY_MODES = ("random", "echo")


@dataclass(frozen=True)
class ServerConfig:
    addr: str = DEFAULT_ADDR
    # Number of words in every generated reply.
    reply_words: int = 20
    reply_mode: str = "random"
    # Seconds to wait after each streamed content chunk.
    stream_delay: float = 0.5
    model: str = DEFAULT_MODEL
    stream_content_type: str = "application/json"
    seed: Optional[int] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.addr:
            raise ConfigError("missing listen address")
        if isinstance(self.reply_words, bool) or not isinstance(self.reply_words, int):
            raise ConfigError("reply word count must be an integer")
        if self.reply_words <= 0:
            raise ConfigError("reply word count must be greater than 0")
        if self.reply_mode not in REPLY_MODES:
            raise ConfigError(
                f"unknown reply mode {self.reply_mode!r}, expected one of {', '.join(REPLY_MODES)}"
            )
        if self.stream_delay < 0:
            raise ConfigError("stream delay must not be negative")
        parse_addr(self.addr)

    @property
    def host(self) -> str:
        return parse_addr(self.addr)[0]

    @property
    def port(self) -> int:
        return parse_addr(self.addr)[1]


def parse_addr(addr: str) -> Tuple[str, int]:
    """Split a ``host:port`` listen address.

    An empty host (``":1323"``) listens on every interface.
    """
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ConfigError(f"listen address {addr!r} has no port")
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigError(f"invalid port in listen address {addr!r}") from None
    if not 0 <= port_num <= 65535:
        raise ConfigError(f"port out of range in listen address {addr!r}")
    return host.strip("[]") or "0.0.0.0", port_num
