"""
ASGI hosting for contract applications.

Converts between the ASGI protocol and the in-process ``Request`` and
``Response`` objects, so a ``ContractApplication`` can run on any
ASGI-compatible server while staying synchronous internally.
"""

import asyncio
import logging
import os
import urllib.parse
from typing import Any, Dict, List, Optional, Union

from .application import ContractApplication
from .contract import media_type
from .models import HTTPMethod, Request, Response

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes", "on")
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def parse_query_string(query_string: str) -> Dict[str, Union[str, List[str]]]:
    """Parse a query string, keeping repeated keys as lists.

    Examples:
        >>> parse_query_string("id=1&tag=a&tag=b")
        {'id': '1', 'tag': ['a', 'b']}
    """
    params: Dict[str, Union[str, List[str]]] = {}
    for name, values in urllib.parse.parse_qs(query_string, keep_blank_values=True).items():
        params[name] = values[0] if len(values) == 1 else values
    return params


class ASGIAdapter:
    """
    ASGI 3.0 adapter for running contract applications on ASGI servers.

    Example:
        ```python
        from restcontract import ContractApplication
        from restcontract.asgi import ASGIAdapter

        app = ContractApplication()
        asgi_app = ASGIAdapter(app)

        # uvicorn module:asgi_app
        ```
    """

    def __init__(self, app: ContractApplication, trust_forwarded_proto: Optional[bool] = None):
        """
        Args:
            app: The application to wrap
            trust_forwarded_proto: Take the request protocol from X-Forwarded-Proto,
                                   for deployments behind a TLS-terminating proxy.
                                   Defaults to RESTCONTRACT_TRUST_FORWARDED_PROTO.
        """
        self.app = app

        # Trust forwarded proto: arg > env > default
        if trust_forwarded_proto is None:
            env_value = os.environ.get("RESTCONTRACT_TRUST_FORWARDED_PROTO", "").lower()
            trust_forwarded_proto = env_value in _TRUE_VALUES
        self.trust_forwarded_proto = trust_forwarded_proto

    async def __call__(self, scope: Dict[str, Any], receive, send):
        """ASGI application entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        if scope["type"] != "http":
            logger.warning(f"Unsupported ASGI scope type: {scope['type']}")
            return

        request = await self._asgi_to_request(scope, receive)

        # Run the synchronous application in a thread pool
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(None, self.app.execute, request)

        await self._response_to_asgi(response, send)

    async def _handle_lifespan(self, receive, send):
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                logger.info("ASGI application started")
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                logger.info("ASGI application shutting down")
                await send({"type": "lifespan.shutdown.complete"})
                return

    def _scheme(self, scope: Dict[str, Any], headers: Dict[str, str]) -> str:
        if self.trust_forwarded_proto and "x-forwarded-proto" in headers:
            # A proxy chain lists the client-facing protocol first
            return headers["x-forwarded-proto"].split(",")[0].strip().lower()
        return scope.get("scheme", "http")

    async def _asgi_to_request(self, scope: Dict[str, Any], receive) -> Request:
        """Convert ASGI scope and body to a Request."""
        # Normalize header names to lowercase for case-insensitive matching
        headers: Dict[str, str] = {}
        for header_name, header_value in scope.get("headers", []):
            headers[header_name.decode("latin-1").lower()] = header_value.decode("latin-1")

        query_string = scope.get("query_string", b"").decode("utf-8")

        body = b""
        more_body = True
        while more_body:
            message = await receive()
            body += message.get("body", b"")
            more_body = message.get("more_body", False)

        form_params = None
        if media_type(headers.get("content-type")) == FORM_CONTENT_TYPE:
            form_params = parse_query_string(body.decode("utf-8", errors="replace"))

        # The body stays raw bytes; payload validation decodes it per format
        return Request(
            method=HTTPMethod(scope["method"].upper()),
            path=scope["path"],
            headers=headers,
            body=body or None,
            query_params=parse_query_string(query_string),
            form_params=form_params,
            scheme=self._scheme(scope, headers),
        )

    async def _response_to_asgi(self, response: Response, send):
        """Convert a Response to ASGI messages."""
        if response.body is None:
            body = b""
        elif isinstance(response.body, bytes):
            body = response.body
        else:
            body = str(response.body).encode("utf-8")

        headers = [
            [name.lower().encode("latin-1"), str(value).encode("latin-1")]
            for name, value in (response.headers or {}).items()
            if name.lower() != "content-length"
        ]
        # Content-Length always matches the body actually sent
        if response.status_code != 204:
            headers.append([b"content-length", str(len(body)).encode("latin-1")])

        await send({
            "type": "http.response.start",
            "status": int(response.status_code),
            "headers": headers,
        })
        await send({
            "type": "http.response.body",
            "body": body,
        })
