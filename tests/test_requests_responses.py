import pytest

from vanity.requests import Request
from vanity.responses import ResponseBuilder


def make_request(**scope):
    return Request({"type": "http", "method": "GET", "path": "/", **scope}, None)


def test_host_from_header():
    request = make_request(headers=[(b"host", b"go.example.org")], server=("10.0.0.1", 8000))
    assert request.host == "go.example.org"


@pytest.mark.parametrize(
    "scheme, server, expected",
    [
        ("http", ("example.com", 80), "example.com"),
        ("https", ("example.com", 443), "example.com"),
        ("http", ("example.com", 8080), "example.com:8080"),
    ],
)
def test_host_falls_back_to_server(scheme, server, expected):
    assert make_request(scheme=scheme, server=server).host == expected


def test_query_value():
    request = make_request(query_string=b"go-get=1&go-get=0&flag")
    assert request.query_value("go-get") == "1"
    assert request.query_value("missing") == ""


class SendRecorder:
    def __init__(self):
        self.messages = []

    async def __call__(self, message):
        self.messages.append(message)


@pytest.mark.asyncio
async def test_send_response_adds_defaults():
    send = SendRecorder()
    response = ResponseBuilder(send)
    response.body("hello")

    await response.send_response()

    start, body = send.messages
    assert start["status"] == 200
    assert (b"content-type", b"text/plain; charset=utf-8") in start["headers"]
    assert (b"content-length", b"5") in start["headers"]
    assert body["body"] == b"hello"


@pytest.mark.asyncio
async def test_send_response_only_once():
    send = SendRecorder()
    response = ResponseBuilder(send)

    await response.send_response()
    await response.send_response()

    assert len(send.messages) == 2
    with pytest.raises(RuntimeError):
        response.clear()


def test_redirect_escapes_location_in_body():
    response = ResponseBuilder(SendRecorder())
    response.redirect("https://example.org/?a=1&b=2")

    assert response.status == 307
    assert response._body_components == [
        b'<a href="https://example.org/?a=1&amp;b=2">Temporary Redirect</a>.\n\n'
    ]


def test_set_header_replaces_existing():
    response = ResponseBuilder(SendRecorder())
    response.add_header("Location", "/a")
    response.set_header("location", "/b")
    assert response._headers == [("location", "/b")]


def test_query_with_invalid_utf8_is_decoded_leniently():
    request = make_request(query_string=b"go-get=1&q=\xff\xfe")
    assert request.query_value("go-get") == "1"
    assert request.query_value("q") == "\ufffd\ufffd"


def test_redirect_percent_encodes_location():
    response = ResponseBuilder(SendRecorder())
    response.redirect("https://github.com/日本/yyy")

    assert response._headers[0] == ("Location", "https://github.com/%E6%97%A5%E6%9C%AC/yyy")
    assert b'href="https://github.com/%E6%97%A5%E6%9C%AC/yyy"' in response._body_components[0]


def test_redirect_keeps_existing_escapes():
    response = ResponseBuilder(SendRecorder())
    response.redirect("https://example.org/a%20b?x=1#frag", include_body=False)

    assert response._headers == [("Location", "https://example.org/a%20b?x=1#frag")]
    assert response._body_components == []


@pytest.mark.asyncio
async def test_unencodable_header_leaves_response_unsent():
    send = SendRecorder()
    response = ResponseBuilder(send)
    response.add_header("X-Name", "日本")

    with pytest.raises(UnicodeEncodeError):
        await response.send_response()

    assert not response.headers_sent
    assert send.messages == []
    response.clear()
