"""Mock OpenAI-style chat-completion server with paced chunk streaming."""

from mock_llm_server.config import ServerConfig
from mock_llm_server.emitter import ChunkStream, Phase
from mock_llm_server.server import create_app

__all__ = ["ChunkStream", "Phase", "ServerConfig", "create_app"]
__version__ = "0.1.0"
