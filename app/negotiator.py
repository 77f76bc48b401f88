"""
PJAX-style response negotiation.

Admin views register one callback per named fragment of the UI. A request
carrying an ``X-Pjax`` header (a comma separated list of fragment names) gets
a JSON object mapping each fragment to its HTML; any other request gets the
``default`` callback rendered as a full HTML page.
"""

import inspect
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Union

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from app.exceptions import ErrorCode, ValidationError

logger = logging.getLogger(__name__)

PJAX_HEADER = "X-Pjax"
DEFAULT_FRAGMENT = "default"

FragmentCallback = Callable[[], Union[str, Awaitable[str]]]


def parse_fragments(header: Optional[str]) -> List[str]:
    if not header:
        return []
    return [name.strip() for name in header.split(",") if name.strip()]


class ResponseNegotiator:
    """Maps fragment names to callbacks producing HTML."""

    def __init__(self, callbacks: Optional[Dict[str, FragmentCallback]] = None):
        self.callbacks: Dict[str, FragmentCallback] = dict(callbacks or {})

    def set_callback(self, name: str, callback: FragmentCallback) -> "ResponseNegotiator":
        self.callbacks[name] = callback
        return self

    async def render(self, name: str) -> str:
        result = self.callbacks[name]()
        if inspect.isawaitable(result):
            result = await result
        return str(result)

    async def respond(self, request: Request, status_code: int = 200) -> Response:
        """
        Build the response for a request.

        Raises:
            ValidationError: If the request asks for an unknown fragment.
        """
        fragments = parse_fragments(request.headers.get(PJAX_HEADER))

        if not fragments:
            if DEFAULT_FRAGMENT not in self.callbacks:
                raise ValidationError(
                    "No default response available",
                    error_code=ErrorCode.UNKNOWN_FRAGMENT,
                )
            return HTMLResponse(await self.render(DEFAULT_FRAGMENT), status_code=status_code)

        unknown = [name for name in fragments if name not in self.callbacks]
        if unknown:
            logger.warning(f"Unknown PJAX fragment(s) requested: {', '.join(unknown)}")
            raise ValidationError(
                f"Unknown fragment(s): {', '.join(unknown)}",
                error_code=ErrorCode.UNKNOWN_FRAGMENT,
                details={"fragments": unknown},
            )

        body = {name: await self.render(name) for name in fragments}
        return JSONResponse(body, status_code=status_code)
