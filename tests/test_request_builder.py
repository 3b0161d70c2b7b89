"""
Tests for the fluent request builder.

Wire output is checked by sending through a MockNetworkBackend and
inspecting the bytes written to the mock connection.
"""

import asyncio
import base64

import pytest

from silq import HttpClient, RequestSpec
from silq.http_primitives import FormBody, JsonBody, RawBody, decode_safe_cookies
from silq.network.mock import MockNetworkBackend

from conftest import HangingStream, build_response


@pytest.fixture
def backend():
    backend = MockNetworkBackend()
    backend.add_response("example.com", 80, build_response(body=b"ok"))
    return backend


@pytest.fixture
def client(backend):
    return HttpClient.builder().with_backend(backend).build()


def head_lines(written: bytes):
    head, _, _ = written.partition(b"\r\n\r\n")
    return head.decode("latin-1").split("\r\n")


class TestRequestBuilder:
    """Test builder state."""
    
    def test_verbs(self, client) -> None:
        assert client.get("http://example.com/").method == "GET"
        assert client.post("http://example.com/").method == "POST"
        assert client.put("http://example.com/").method == "PUT"
        assert client.patch("http://example.com/").method == "PATCH"
        assert client.delete("http://example.com/").method == "DELETE"
    
    def test_invalid_url_raises_immediately(self, client) -> None:
        with pytest.raises(ValueError):
            client.get("example.com/test")
    
    def test_build_returns_request_spec(self, client) -> None:
        spec = client.get("http://example.com/a").with_header("X-A", "1").build()
        assert isinstance(spec, RequestSpec)
        assert spec.url.path == "/a"
        assert spec.headers.get_first("x-a") == "1"
        assert spec.body is None
    
    def test_build_snapshot_is_independent(self, client) -> None:
        builder = client.get("http://example.com/").with_header("X-A", "1")
        spec = builder.build()
        builder.with_header("X-A", "2")
        assert spec.headers.get_all("X-A") == ["1"]
    
    def test_with_headers_replaces(self, client) -> None:
        spec = (
            client.get("http://example.com/")
            .with_headers({"X-Token": "old", "Accept": "text/plain"})
            .with_headers({"x-token": "new"})
            .build()
        )
        assert spec.headers.get_all("X-Token") == ["new"]
        assert spec.headers.get_first("Accept") == "text/plain"
    
    def test_with_header_appends(self, client) -> None:
        spec = (
            client.get("http://example.com/")
            .with_header("Accept", "text/plain")
            .with_header("Accept", "application/json")
            .build()
        )
        assert spec.headers.get_all("accept") == ["text/plain", "application/json"]
    
    def test_invalid_header_rejected(self, client) -> None:
        with pytest.raises(ValueError):
            client.get("http://example.com/").with_headers({"X-Bad": "a\r\nInjected: 1"})
    
    def test_non_string_header_value_rejected(self, client) -> None:
        with pytest.raises(ValueError, match="X-N"):
            client.get("http://example.com/").with_headers({"X-N": 5})
    
    def test_with_body_string(self, client) -> None:
        spec = client.post("http://example.com/").with_body("héllo").build()
        assert isinstance(spec.body, RawBody)
        assert spec.content == "héllo".encode("utf-8")
        assert "Content-Type" not in spec.headers
    
    def test_with_json(self, client) -> None:
        spec = client.post("http://example.com/").with_json({"a": [1, None]}).build()
        assert isinstance(spec.body, JsonBody)
        assert spec.content == b'{"a":[1,null]}'
        assert spec.headers.get_first("Content-Type") == "application/json"
    
    def test_with_form(self, client) -> None:
        spec = client.post("http://example.com/").with_form({"q": "a b", "n": 1}).build()
        assert isinstance(spec.body, FormBody)
        assert spec.content == b"q=a+b&n=1"
        assert spec.headers.get_first("Content-Type") == "application/x-www-form-urlencoded"
    
    def test_later_body_wins(self, client) -> None:
        spec = (
            client.post("http://example.com/")
            .with_json({"a": 1})
            .with_form({"b": "2"})
            .build()
        )
        assert spec.content == b"b=2"
        assert spec.headers.get_all("Content-Type") == ["application/x-www-form-urlencoded"]
    
    def test_raw_body_drops_implied_content_type(self, client) -> None:
        spec = client.post("http://example.com/").with_json([1]).with_body(b"raw").build()
        assert "Content-Type" not in spec.headers
    
    def test_explicit_content_type_is_kept(self, client) -> None:
        spec = (
            client.post("http://example.com/")
            .with_headers({"Content-Type": "text/csv"})
            .with_body("a,b\n1,2")
            .build()
        )
        assert spec.headers.get_first("Content-Type") == "text/csv"
    
    def test_with_basic_auth(self, client) -> None:
        spec = client.get("http://example.com/").with_basic_auth("user", "pa:ss").build()
        expected = base64.b64encode(b"user:pa:ss").decode("ascii")
        assert spec.headers.get_first("Authorization") == f"Basic {expected}"
    
    def test_with_basic_auth_without_password(self, client) -> None:
        spec = client.get("http://example.com/").with_basic_auth("user").build()
        assert spec.headers.get_first("Authorization") == "Basic dXNlcjo="
    
    def test_with_safe_cookies(self, client) -> None:
        cookies = {"session": "a b;c", "theme": "dark"}
        spec = client.get("http://example.com/").with_safe_cookies(cookies).build()
        header = spec.headers.get_first("Cookie")
        assert header == "session=a%20b%3Bc; theme=dark"
        assert decode_safe_cookies(header) == cookies
    
    def test_with_empty_safe_cookies_removes_header(self, client) -> None:
        spec = (
            client.get("http://example.com/")
            .with_safe_cookies({"a": "1"})
            .with_safe_cookies({})
            .build()
        )
        assert "Cookie" not in spec.headers
    
    def test_with_query(self, client) -> None:
        builder = client.get("http://example.com/search?x=1").with_query({"q": "a b"})
        assert builder.url.query == "x=1&q=a+b"
    
    def test_with_timeout(self, client) -> None:
        assert client.get("http://example.com/").with_timeout(2.5).build().timeout == 2.5
        with pytest.raises(ValueError):
            client.get("http://example.com/").with_timeout(0)
    
    def test_repr(self, client) -> None:
        assert repr(client.get("http://example.com/x")) == "<RequestBuilder GET http://example.com/x>"


class TestRequestOnTheWire:
    """Test the bytes produced when a built request is sent."""
    
    @pytest.mark.asyncio
    async def test_get_request_line_and_host(self, client, backend):
        response = await client.get("http://example.com/").send()
        
        assert response.get_status_code() == 200
        lines = head_lines(backend.get_connection("example.com", 80).written_data)
        assert lines[0] == "GET / HTTP/1.1"
        assert lines[1] == "Host: example.com"
        await response.aclose()
    
    @pytest.mark.asyncio
    async def test_non_default_port_in_host(self, client, backend):
        backend.add_response("example.com", 8080, build_response())
        await client.get("http://example.com:8080/").send()
        lines = head_lines(backend.get_connection("example.com", 8080).written_data)
        assert lines[1] == "Host: example.com:8080"
    
    @pytest.mark.asyncio
    async def test_user_headers_in_order(self, client, backend):
        await (
            client.get("http://example.com/")
            .with_header("X-First", "1")
            .with_header("X-Second", "2")
            .with_header("X-First", "3")
            .send()
        )
        lines = head_lines(backend.get_connection("example.com", 80).written_data)
        assert lines[2:] == ["X-First: 1", "X-Second: 2", "X-First: 3"]
    
    @pytest.mark.asyncio
    async def test_json_body_framing(self, client, backend):
        await client.post("http://example.com/items").with_json({"name": "x"}).send()
        written = backend.get_connection("example.com", 80).written_data
        lines = head_lines(written)
        assert lines[0] == "POST /items HTTP/1.1"
        assert "Content-Type: application/json" in lines
        assert "Content-Length: 12" in lines
        assert written.endswith(b'{"name":"x"}')
    
    @pytest.mark.asyncio
    async def test_request_without_body_has_no_content_length(self, client, backend):
        await client.delete("http://example.com/items/1").send()
        lines = head_lines(backend.get_connection("example.com", 80).written_data)
        assert not any(line.lower().startswith("content-length") for line in lines)
    
    @pytest.mark.asyncio
    async def test_each_send_opens_a_connection(self, client, backend):
        first = await client.get("http://example.com/").send()
        second = await client.get("http://example.com/").send()
        assert backend.connection_count == 2
        assert await first.get_text() == "ok"
        assert await second.get_text() == "ok"
    
    @pytest.mark.asyncio
    async def test_http_does_not_handshake(self, client, backend):
        await client.get("http://example.com/").send()
        assert backend.tls_contexts == []
    
    @pytest.mark.asyncio
    async def test_https_uses_client_ssl_context(self, client, backend):
        backend.add_response("example.com", 443, build_response(body=b"secure"))
        response = await client.get("https://example.com/").send()
        assert [host for host, _ in backend.tls_contexts] == ["example.com"]
        assert await response.get_text() == "secure"
    
    @pytest.mark.asyncio
    async def test_cancelled_send_closes_connection(self):
        class HangingBackend(MockNetworkBackend):
            async def connect_tcp(self, host, port, timeout=None):
                self.stream = HangingStream()
                return self.stream
        
        backend = HangingBackend()
        client = HttpClient.builder().with_backend(backend).build()
        
        task = asyncio.ensure_future(client.get("http://example.com/").send())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        
        assert backend.stream.is_closed
        assert backend.stream.aborted
    
    @pytest.mark.asyncio
    async def test_non_ascii_query_and_host_are_encoded(self, client, backend):
        backend.add_response("xn--bcher-kva.example", 80, build_response())
        await client.get("http://bücher.example/find?q=café").send()
        
        lines = head_lines(backend.get_connection("xn--bcher-kva.example", 80).written_data)
        assert lines[0] == "GET /find?q=caf%C3%A9 HTTP/1.1"
        assert lines[1] == "Host: xn--bcher-kva.example"
