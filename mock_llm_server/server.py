import logging
import time
from typing import Any, Callable, Dict, Optional

from aiohttp import web

from mock_llm_server.config import ServerConfig
from mock_llm_server.emitter import ChunkStream
from mock_llm_server.errors import BadRequest, EncodingError, MockServerError, StreamIOError
from mock_llm_server.planner import MessageReply, ResponsePlanner, parse_request
from mock_llm_server.words import RandomWordSource, WordSource

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", ServerConfig)
PLANNER_KEY = web.AppKey("planner", ResponsePlanner)


def build_openai_error(message: str, error_type: str = "invalid_request_error") -> Dict[str, Any]:
    return {
        "error": {
            "message": message,
            "type": error_type,
            "param": None,
            "code": None,
        }
    }


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except BadRequest as exc:
        logger.info("%s %s -> 400 (%s)", request.method, request.path, exc)
        return web.json_response(build_openai_error(str(exc), exc.error_type), status=exc.status)
    except MockServerError as exc:
        logger.exception("%s %s failed", request.method, request.path)
        return web.json_response(build_openai_error(str(exc), exc.error_type), status=exc.status)


@web.middleware
async def body_dump_middleware(request: web.Request, handler):
    if logger.isEnabledFor(logging.DEBUG) and request.can_read_body:
        body = await request.read()
        logger.debug("Request body: %r", body.decode("utf-8", errors="replace"))
    return await handler(request)


async def chat_completions(request: web.Request) -> web.StreamResponse:
    config = request.app[CONFIG_KEY]
    planner = request.app[PLANNER_KEY]

    try:
        body = await request.read()
    except ConnectionError as exc:
        raise BadRequest(f"failed to read request body: {exc}") from exc

    reply = planner.plan(parse_request(body))
    if isinstance(reply, MessageReply):
        return web.json_response(reply.to_payload())

    stream = ChunkStream(
        reply.id,
        reply.created,
        reply.fragments,
        model=config.model,
        delay=config.stream_delay,
    )
    response = web.StreamResponse(status=200)
    response.content_type = config.stream_content_type
    await response.prepare(request)

    try:
        async for data in stream:
            await _write(response, data)
    except StreamIOError as exc:
        logger.warning("stream %s aborted after %d frames: %s", stream.id, stream.frames_sent, exc)
        return response
    except EncodingError:
        logger.exception("stream %s aborted after %d frames", stream.id, stream.frames_sent)
        return response
    finally:
        stream.close()

    await response.write_eof()
    logger.debug("stream %s finished with %d frames", stream.id, stream.frames_sent)
    return response


async def _write(response: web.StreamResponse, data: bytes):
    try:
        await response.write(data)
    except ConnectionError as exc:
        raise StreamIOError(f"client disconnected: {exc}") from exc


def create_app(
    config: ServerConfig,
    words: Optional[WordSource] = None,
    clock: Callable[[], float] = time.time,
) -> web.Application:
    if words is None:
        words = RandomWordSource(config.seed)

    app = web.Application(middlewares=[error_middleware, body_dump_middleware])
    app[CONFIG_KEY] = config
    app[PLANNER_KEY] = ResponsePlanner(config.reply_words, config.reply_mode, words, clock)
    app.router.add_post("/v1/chat/completions", chat_completions)
    return app
