"""
Request body limits for the upload endpoints.

Starlette spools a whole multipart body to disk before the handler
runs, so the pipeline's own size check only fires after the bytes have
already landed. This middleware caps the body on the way in: a
declared Content-Length over the cap is refused before anything is
read, and a body that keeps coming past the cap is cut off mid-stream.

The cap is the file limit plus a fixed allowance for multipart
boundaries and part headers. The exact per-file limit is still applied
by the pipeline while it stages the part.
"""

import logging

from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

MULTIPART_OVERHEAD_BYTES = 64 * 1024


class BodyTooLargeError(Exception):
    """Raised from receive() once a body runs past its cap."""
    pass


class UploadSizeLimitMiddleware:
    """
    Pure ASGI middleware enforcing per-path body caps on POSTs.

    ``limits`` maps a path prefix to the largest file accepted under
    it. Requests matching no prefix pass through untouched.
    """

    def __init__(self, app, limits: dict[str, int]) -> None:
        self.app = app
        self.limits = limits

    def _limit_for(self, path: str):
        for prefix, limit in self.limits.items():
            if path.startswith(prefix):
                return limit
        return None

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http" or scope.get("method") != "POST":
            await self.app(scope, receive, send)
            return

        limit = self._limit_for(scope["path"])
        if limit is None:
            await self.app(scope, receive, send)
            return

        max_body = limit + MULTIPART_OVERHEAD_BYTES
        rejection = JSONResponse(
            status_code=400,
            content={"error": f"File exceeds the {limit} byte limit"},
        )

        declared = _content_length(scope)
        if declared is not None and (declared < 0 or declared > max_body):
            logger.warning(
                "Rejected upload by Content-Length",
                extra={"path": scope["path"], "content_length": declared, "max_body": max_body}
            )
            await rejection(scope, receive, send)
            return

        received = 0
        exceeded = False
        response_started = False

        async def limited_receive():
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > max_body:
                    exceeded = True
                    raise BodyTooLargeError(f"Request body exceeds {max_body} bytes")
            return message

        async def guarded_send(message):
            nonlocal response_started
            # Whatever the app makes of the aborted body is replaced below
            if exceeded and not response_started:
                return
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except Exception:
            if not exceeded:
                raise

        if exceeded and not response_started:
            logger.warning(
                "Rejected upload mid-stream",
                extra={"path": scope["path"], "received_bytes": received, "max_body": max_body}
            )
            await rejection(scope, receive, send)


def _content_length(scope):
    """Declared Content-Length; -1 when the header is present but unparseable."""
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return -1
    return None
