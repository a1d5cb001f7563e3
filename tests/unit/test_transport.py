import httpx
import pytest

from httpstages.constants import RequestKind
from httpstages.exceptions import TransportError
from httpstages.transport import HttpRequest, HttpResponse, HttpxTransport


def transport_for(handler):
    return HttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestHttpxTransport:
    @pytest.mark.asyncio
    async def test_sends_json_body_and_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"ok": True}, headers={"X-Id": "5"})

        request = HttpRequest(method="POST", url="http://api/items", headers={"X-Trace": "t"}, params={"q": "a b"}, body={"n": 1}, has_body=True, kind=RequestKind.SETUP)

        async with transport_for(handler) as transport:
            response = await transport.send(request)

        assert response.status == 201
        assert response.header("x-id") == "5"
        assert response.json() == {"ok": True}
        assert seen[0].url.params["q"] == "a b"
        assert seen[0].headers["X-Trace"] == "t"
        assert seen[0].content == b'{"n":1}' or seen[0].content == b'{"n": 1}'

    @pytest.mark.asyncio
    async def test_no_body_sent_without_body(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        async with transport_for(handler) as transport:
            await transport.send(HttpRequest(method="GET", url="http://api/items"))

        assert seen[0].content == b""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, message",
        [
            (httpx.ConnectError, "HTTP connection error"),
            (httpx.ReadTimeout, "HTTP request timed out"),
            (httpx.RemoteProtocolError, "HTTP request failed"),
        ],
    )
    async def test_errors_become_transport_errors(self, error, message):
        def handler(request):
            raise error("failure", request=request)

        async with transport_for(handler) as transport:
            with pytest.raises(TransportError, match=message):
                await transport.send(HttpRequest(method="GET", url="http://api/items"))


class TestHttpResponse:
    def test_empty_body_is_none(self):
        assert HttpResponse(status=204).json() is None

    def test_header_lookup_is_case_insensitive(self):
        assert HttpResponse(status=200, headers={"Content-Type": "text/plain"}).header("content-type") == "text/plain"
        assert HttpResponse(status=200).header("missing") is None

    def test_text(self):
        assert HttpResponse(status=200, content="héllo".encode()).text == "héllo"
