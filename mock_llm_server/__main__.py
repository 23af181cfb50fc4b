"""Mock chat-completion server.

Usage: python -m mock_llm_server --addr :1323 --res-len 20
Serves POST /v1/chat/completions; replies are random words (or an echo of the
last message with --mode echo), streamed word by word when the request sets
"stream": true.
"""

import argparse
import logging
import sys

from aiohttp import web

from mock_llm_server.config import DEFAULT_ADDR, DEFAULT_MODEL, REPLY_MODES, ServerConfig
from mock_llm_server.errors import ConfigError
from mock_llm_server.server import create_app

logger = logging.getLogger("mock_llm_server")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mock-llm-server",
        description="Mock OpenAI chat completions server (streaming + non-streaming)",
    )
    parser.add_argument("--addr", default=DEFAULT_ADDR, help="HTTP server address")
    parser.add_argument(
        "--res-len", type=int, default=20, help="Number of words to return per response"
    )
    parser.add_argument("--mode", choices=REPLY_MODES, default="random")
    parser.add_argument(
        "--delay", type=float, default=0.5, help="Seconds between streamed chunks"
    )
    parser.add_argument("--model", default=DEFAULT_MODEL)
    parser.add_argument(
        "--seed", type=int, default=None, help="Fix RNG seed for reproducible output"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ServerConfig:
    return ServerConfig(
        addr=args.addr,
        reply_words=args.res_len,
        reply_mode=args.mode,
        stream_delay=args.delay,
        model=args.model,
        seed=args.seed,
        log_level=args.log_level,
    )


def main(argv=None):
    args = parse_args(argv)
    try:
        config = build_config(args)
    except ConfigError as exc:
        sys.exit(f"invalid configuration: {exc}")

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )

    logger.info(
        "Mock LLM server starting on %s (%d words per reply, mode=%s, delay=%.3fs)",
        config.addr,
        config.reply_words,
        config.reply_mode,
        config.stream_delay,
    )
    web.run_app(create_app(config), host=config.host, port=config.port, print=None)


if __name__ == "__main__":
    main()
