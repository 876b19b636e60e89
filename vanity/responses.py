import logging
from html import escape
from http import HTTPStatus
from urllib.parse import quote

from asgiref.typing import ASGISendCallable as Send

logger = logging.getLogger(__name__)

# RFC 3986 reserved characters plus "%"
LOCATION_SAFE_CHARS = ":/?#[]@!$&'()*+,;=%"


class ResponseBuilder:
    """Accumulates a response and sends it over ASGI exactly once.

    Handlers set the status, headers and body; the application calls
    :meth:`send_response` after the middleware stack has unwound.

    Examples:
        ```python
        @injectable
        async def healthz(response: Inject[ResponseBuilder]):
            response.content_type("text/plain")
            response.body("ok")
        ```
    """

    def __init__(self, send: Send):
        self._send = send
        self._status = 200
        self._headers: list[tuple[str, str]] = []
        self._body_components: list[bytes] = []
        self._headers_sent = False
        self._has_content_type = False

    @property
    def status(self) -> int:
        return self._status

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    def set_status(self, status_code: int):
        self._status = status_code

    def add_header(self, name: str, value: str):
        if name.lower() == "content-type":
            self._has_content_type = True
        self._headers.append((name, value))

    def set_header(self, name: str, value: str):
        self._headers = [(n, v) for n, v in self._headers if n.lower() != name.lower()]
        self.add_header(name, value)

    def content_type(self, content_type: str, charset: str | None = "utf-8"):
        value = f"{content_type}; charset={charset}" if charset else content_type
        self.set_header("Content-Type", value)

    def body(self, component: str | bytes):
        if isinstance(component, str):
            component = component.encode("utf-8")
        self._body_components.append(component)

    def redirect(self, url: str, status_code: int = 307, *, include_body: bool = True):
        """Redirect the client to ``url``.

        The Location header is always set; a short HTML link is written for
        clients that do not follow it. Characters that are not allowed in a
        URL are percent-encoded, existing escapes are kept.
        """
        url = quote(url, safe=LOCATION_SAFE_CHARS)
        self.set_status(status_code)
        self.set_header("Location", url)
        if include_body:
            self.content_type("text/html")
            self.body(f'<a href="{escape(url)}">{HTTPStatus(status_code).phrase}</a>.\n\n')

    def clear(self):
        if self._headers_sent:
            raise RuntimeError("Cannot clear a response whose headers were already sent")

        self._status = 200
        self._headers = []
        self._body_components = []
        self._has_content_type = False

    async def send_response(self):
        if self._headers_sent:
            logger.debug("Response already sent, skipping")
            return

        body = b"".join(self._body_components)
        headers = list(self._headers)
        if body and not self._has_content_type:
            headers.append(("Content-Type", "text/plain; charset=utf-8"))
        headers.append(("Content-Length", str(len(body))))
        raw_headers = [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in headers
        ]

        self._headers_sent = True
        await self._send(
            {
                "type": "http.response.start",
                "status": self._status,
                "headers": raw_headers,
            }
        )
        await self._send({"type": "http.response.body", "body": body, "more_body": False})
