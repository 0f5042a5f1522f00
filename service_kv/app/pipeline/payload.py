"""
Request body size enforcement for writes.
"""

from fastapi import Depends, Request

from shared.errors import PayloadTooLarge

from ..context import RequestContext, get_context


async def read_limited_body(request: Request, context: RequestContext = Depends(get_context)) -> bytes:
    """Read the request body, failing with ``PayloadTooLarge`` past the limit.

    A declared ``Content-Length`` over the limit is rejected without reading
    anything; otherwise the stream is counted as it arrives so chunked bodies
    are bounded too.
    """
    limit = context.settings.max_payload_bytes

    content_length = request.headers.get("content-length")
    if content_length is not None and content_length.isdigit() and int(content_length) > limit:
        raise PayloadTooLarge(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLarge(limit)

    return bytes(body)
