"""HTTP responses produced by the collector's handlers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any
from xml.sax.saxutils import escape

_SVG_ERROR_TEMPLATE = """<svg xmlns="http://www.w3.org/2000/svg" width="800" height="400">
    <rect width="800" height="400" fill="#f8f9fa"/>
    <text x="400" y="200" text-anchor="middle" font-family="sans-serif" font-size="16" fill="#dc3545">
        Error: {message}
    </text>
</svg>"""


@dataclass(frozen=True)
class Response:
    """A status code and a text body."""

    status: int
    body: str

    def encoded(self) -> bytes:
        """The body as UTF-8 bytes."""
        return self.body.encode("utf-8")


def json_response(status: int, body: Any) -> Response:
    """Serialise body as JSON; objects with a to_json method use it.

    A body that cannot be serialised becomes "{}".
    """
    to_json = getattr(body, "to_json", None)
    try:
        if callable(to_json):
            text = to_json()
        else:
            text = json.dumps(body, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        text = "{}"
    return Response(int(status), text)


def json_error(status: int, message: str) -> Response:
    """A JSON body of the form {"error": message}."""
    return json_response(status, {"error": message})


def html(content: str) -> Response:
    """An HTML page with status 200."""
    return Response(int(HTTPStatus.OK), content)


def html_error(status: int, content: str) -> Response:
    """An HTML page with the given status."""
    return Response(int(status), content)


def svg(content: str) -> Response:
    """An SVG image with status 200."""
    return Response(int(HTTPStatus.OK), content)


def svg_error(message: str) -> Response:
    """An SVG image showing the error message, with status 500."""
    body = _SVG_ERROR_TEMPLATE.format(message=escape(message))
    return Response(int(HTTPStatus.INTERNAL_SERVER_ERROR), body)