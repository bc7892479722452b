from __future__ import annotations

import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import httpx
import pytest

from downdetector_alerts.provider import (
    DowndetectorClient,
    ProviderError,
    parse_status_page,
    site_for_country,
    status_page_url,
)


STATUS_PAGE = """
<html><head><title>X down? Current problems and outages</title></head>
<body>
<script type="text/javascript">
  window.DD.chartTranslations = {};
  var reports = {
    data: [
      { x: '2024-05-01T10:00:00+00:00', y: 3 },
      { x: '2024-05-01T10:15:00+00:00', y: 150 },
    ],
  };
  var baseline = {
    data: [
      { x: '2024-05-01T10:00:00+00:00', y: 10 },
      { x: '2024-05-01T10:15:00+00:00', y: 50 },
    ],
  };
</script>
</body></html>
"""


class _Handler(BaseHTTPRequestHandler):
    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def do_GET(self) -> None:  # noqa: N802
        routes = {
            "/status/x/": (200, STATUS_PAGE),
            "/status/empty/": (200, "<html><body>No chart here</body></html>"),
            "/status/down/": (503, "Service Unavailable"),
        }
        status, body = routes.get(self.path, (404, "Not Found"))
        body_bytes = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body_bytes)))
        self.end_headers()
        self.wfile.write(body_bytes)


@pytest.fixture(scope="module")
def local_server_base_url() -> str:
    httpd = HTTPServer(("127.0.0.1", 0), _Handler)
    host, port = httpd.server_address
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()

    try:
        yield f"http://{host}:{port}"
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


def test_site_for_country() -> None:
    assert site_for_country("it") == "https://downdetector.it"
    assert site_for_country("US") == "https://downdetector.com"
    assert site_for_country("gb") == "https://downdetector.co.uk"
    assert site_for_country("nl") == "https://allestoringen.nl"
    with pytest.raises(ProviderError):
        site_for_country("zz")


def test_status_page_url() -> None:
    assert status_page_url("whatsapp", "it") == "https://downdetector.it/status/whatsapp/"
    assert status_page_url("whatsapp", "zz", base_url="http://local/") == "http://local/status/whatsapp/"


def test_parse_status_page_splits_series() -> None:
    data = parse_status_page(STATUS_PAGE)
    assert [p.value for p in data.reports] == [3, 150]
    assert [p.value for p in data.baseline] == [10, 50]
    assert data.reports[-1].timestamp == "2024-05-01T10:15:00+00:00"


def test_parse_status_page_without_points_raises() -> None:
    with pytest.raises(ProviderError):
        parse_status_page("<html></html>")


@pytest.mark.asyncio
async def test_fetch_ok(local_server_base_url: str) -> None:
    async with httpx.AsyncClient() as client:
        provider = DowndetectorClient(client, base_url=local_server_base_url, timeout_seconds=5.0)
        data = await provider.fetch("x", "it")
    assert data.reports[-1].value == 150
    assert data.baseline[-1].value == 50


@pytest.mark.asyncio
@pytest.mark.parametrize("slug", ["down", "empty", "missing"])
async def test_fetch_errors_raise_provider_error(local_server_base_url: str, slug: str) -> None:
    async with httpx.AsyncClient() as client:
        provider = DowndetectorClient(client, base_url=local_server_base_url, timeout_seconds=5.0)
        with pytest.raises(ProviderError):
            await provider.fetch(slug, "it")


@pytest.mark.asyncio
async def test_fetch_connection_error_raises_provider_error() -> None:
    async with httpx.AsyncClient() as client:
        provider = DowndetectorClient(client, base_url="http://127.0.0.1:9", timeout_seconds=2.0)
        with pytest.raises(ProviderError, match="http_error"):
            await provider.fetch("x", "it")
