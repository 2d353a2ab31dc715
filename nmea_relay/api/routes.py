"""Relay API routes."""

import json

from aiohttp import web

from .middleware import create_error_response, result_to_response


_FIX_NOT_FOUND = ("FIX_NOT_AVAILABLE", "No position fix has been received yet")


def setup_relay_routes(app: web.Application) -> None:
    """Register relay routes."""
    app.router.add_post("/api/nmea/decode", decode_handler)
    app.router.add_post("/api/v1/nmea/decode", decode_handler)
    app.router.add_get("/api/v1/health", health_handler)
    app.router.add_get("/api/v1/time", time_handler)
    app.router.add_get("/api/v1/fix", fix_handler)


async def _read_sentence(request: web.Request) -> str:
    """Accept a JSON string, a ``{"sentence": ...}`` object or plain text."""
    text = await request.text()
    if request.content_type != "application/json":
        return text

    body = json.loads(text)
    if isinstance(body, str):
        return body
    if isinstance(body, dict):
        sentence = body["sentence"]
        if not isinstance(sentence, str):
            raise ValueError("'sentence' must be a string")
        return sentence
    raise ValueError("Request body must be a JSON string or an object with 'sentence'")


async def decode_handler(request: web.Request) -> web.Response:
    """POST /api/v1/nmea/decode - Decode one raw NMEA sentence."""
    controller = request.app["controller"]
    try:
        sentence = await _read_sentence(request)
    except json.JSONDecodeError:
        return create_error_response("INVALID_BODY", "Request body must be valid JSON", status=400)
    return result_to_response(controller.decode_sentence(sentence))


async def health_handler(request: web.Request) -> web.Response:
    """GET /api/v1/health - Per-subsystem relay health."""
    controller = request.app["controller"]
    result = await controller.health_check()
    status = 503 if result.get("status") == "unhealthy" else 200
    return web.json_response(result, status=status)


async def time_handler(request: web.Request) -> web.Response:
    """GET /api/v1/time - Current satellite-derived UTC time."""
    controller = request.app["controller"]
    return web.json_response(await controller.get_time())


async def fix_handler(request: web.Request) -> web.Response:
    """GET /api/v1/fix - Last decoded position fix."""
    controller = request.app["controller"]
    return result_to_response(await controller.get_fix(), *_FIX_NOT_FOUND)


__all__ = ["setup_relay_routes"]
