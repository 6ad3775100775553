"""Request ID middleware.

Echoes the caller's X-Request-Id or assigns a fresh UUID4, so log lines for
a ranking mutation can be correlated with the HTTP exchange that caused it.
"""

from __future__ import annotations

import logging
import uuid

logger = logging.getLogger(__name__)


class RequestIdMiddleware:
    def __init__(self, app, header_name: str = "X-Request-Id") -> None:  # type: ignore[no-untyped-def]
        self.app = app
        self.header_name = header_name
        self._header_key = header_name.lower().encode("latin-1")

    def _incoming(self, scope) -> str:  # type: ignore[no-untyped-def]
        for key, value in scope.get("headers") or []:
            if key.lower() == self._header_key and value:
                return value.decode("latin-1")
        return ""

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = self._incoming(scope) or str(uuid.uuid4())
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_wrapper(message):  # type: ignore[no-untyped-def]
            if message.get("type") == "http.response.start":
                headers = [
                    (k, v) for k, v in (message.get("headers") or []) if k.lower() != self._header_key
                ]
                headers.append((self.header_name.encode("latin-1"), request_id.encode("latin-1")))
                message = {**message, "headers": headers}
                logger.info(
                    "http.request method=%s path=%s status=%s request_id=%s",
                    scope.get("method"),
                    scope.get("path"),
                    message.get("status"),
                    request_id,
                )
            await send(message)

        await self.app(scope, receive, send_wrapper)


__all__ = ["RequestIdMiddleware"]
