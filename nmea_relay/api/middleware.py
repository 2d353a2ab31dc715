"""
API Middleware - Security and error handling for the relay REST API.

Provides:
- Localhost-only access enforcement
- Unified error response formatting
"""

import traceback
from typing import Callable, Optional

from aiohttp import web

from nmea_relay.core.logging_utils import get_module_logger
from nmea_relay.relay.errors import RelayError


logger = get_module_logger("APIMiddleware")

LOCALHOST_IPS = frozenset({"127.0.0.1", "::1", "::ffff:127.0.0.1"})


@web.middleware
async def localhost_only_middleware(request: web.Request, handler: Callable) -> web.Response:
    """
    Middleware to restrict API access to localhost only.

    Rejects requests from any IP other than 127.0.0.1 or ::1.
    """
    peername = request.transport.get_extra_info("peername") if request.transport else None
    if peername:
        remote_ip = peername[0]
        if remote_ip not in LOCALHOST_IPS:
            logger.warning("Rejected request from non-localhost IP: %s", remote_ip)
            return create_error_response(
                "ACCESS_DENIED",
                "API access is restricted to localhost only",
                status=403,
            )

    return await handler(request)


@web.middleware
async def error_handling_middleware(request: web.Request, handler: Callable) -> web.Response:
    """
    Middleware to catch and format all errors as JSON responses.

    Provides unified error response format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable message",
            "details": { ... }  # Optional
        },
        "status": 400
    }
    """
    try:
        return await handler(request)
    except web.HTTPException as e:
        return create_error_response(
            e.reason.upper().replace(" ", "_") if e.reason else "HTTP_ERROR",
            e.text or str(e),
            status=e.status,
        )
    except RelayError as e:
        logger.warning("Relay error: %s", e)
        return create_error_response(e.code, str(e), status=400)
    except ValueError as e:
        logger.warning("Validation error: %s", e)
        return create_error_response("VALIDATION_ERROR", str(e), status=400)
    except KeyError as e:
        logger.warning("Missing field: %s", e)
        return create_error_response("MISSING_FIELD", f"Missing required field: {e}", status=400)
    except Exception as e:
        logger.error("Unexpected error: %s\n%s", e, traceback.format_exc())
        return create_error_response(
            "INTERNAL_ERROR",
            "An unexpected error occurred",
            status=500,
            details={"type": type(e).__name__, "message": str(e)},
        )


def create_error_response(
    code: str, message: str, status: int = 400, details: Optional[dict] = None
) -> web.Response:
    """Create standardized error response."""
    error = {"error": {"code": code, "message": message}, "status": status}
    if details:
        error["error"]["details"] = details
    return web.json_response(error, status=status)


def result_to_response(result, not_found_code: str = "NOT_FOUND", not_found_msg: str = "Resource not found"):
    """Convert controller result dict to response, handling success/error patterns."""
    if result is None:
        return create_error_response(not_found_code, not_found_msg, status=404)
    if isinstance(result, dict) and result.get("error"):
        return create_error_response(result.get("error_code", "ERROR"), result["error"], status=400)
    return web.json_response(result)


__all__ = [
    "create_error_response",
    "error_handling_middleware",
    "localhost_only_middleware",
    "result_to_response",
]
