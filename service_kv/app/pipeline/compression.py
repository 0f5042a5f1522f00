"""
Selective gzip compression for read responses.

Only routes declared with ``route_class=CompressedRoute`` are compressed.
Failures propagate as exceptions before this point, so only successful
bodies are ever encoded.
"""

import gzip
from typing import Callable, Coroutine, Any

from fastapi import Request, Response
from fastapi.routing import APIRoute

DEFAULT_MIN_SIZE = 500


def accepts_gzip(request: Request) -> bool:
    return "gzip" in request.headers.get("accept-encoding", "").lower()


def compress_response(request: Request, response: Response, min_size: int = DEFAULT_MIN_SIZE) -> Response:
    """gzip ``response`` in place when the client accepts it and it is worth it."""
    if not 200 <= response.status_code < 300:
        return response
    if "content-encoding" in response.headers:
        return response

    body = getattr(response, "body", None)
    if not isinstance(body, (bytes, bytearray)):
        return response

    response.headers.append("Vary", "Accept-Encoding")
    if len(body) < min_size or not accepts_gzip(request):
        return response

    compressed = gzip.compress(bytes(body), compresslevel=9)
    response.body = compressed
    response.headers["Content-Encoding"] = "gzip"
    response.headers["Content-Length"] = str(len(compressed))
    return response


class CompressedRoute(APIRoute):
    """APIRoute that gzips successful responses of its endpoint."""

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_route_handler = super().get_route_handler()

        async def compressed_route_handler(request: Request) -> Response:
            response = await original_route_handler(request)
            context = getattr(request.app.state, "context", None)
            min_size = context.settings.compression_min_size if context else DEFAULT_MIN_SIZE
            return compress_response(request, response, min_size)

        return compressed_route_handler
