# Ensure tests import the package from this checkout first.
import os
import sys

import httpx
import pytest
from fastapi.testclient import TestClient

from translation_proxy.config import ProxyConfiguration

SERVICE_ROOT = os.path.dirname(__file__)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

PUBLIC_URL = "https://proxy.example.com"
TRANSLATOR_URL = "https://translate.example.com/"
PUBLIC_ADDRESS = "93.184.216.34"


@pytest.fixture
def proxy_config():
    return ProxyConfiguration(
        public_url=PUBLIC_URL,
        proxy_prefix="/proxy/",
        proxy_static_assets=True,
        allowed_referrers=(TRANSLATOR_URL,),
    )


@pytest.fixture
def resolver():
    """Resolver stub: every host is public unless listed in ``resolver.addresses``."""
    lookups = []
    addresses = {}

    async def resolve(host):
        lookups.append(host)
        result = addresses.get(host, [PUBLIC_ADDRESS])
        if isinstance(result, Exception):
            raise result
        return result

    resolve.lookups = lookups
    resolve.addresses = addresses
    return resolve


@pytest.fixture
def upstream():
    """Mock origin: register responses per URL, inspect received requests."""

    class Upstream:
        def __init__(self):
            self.routes = {}
            self.requests = []
            # origin URL of each request; the connection itself goes to the pinned IP
            self.urls = []

        def add(self, url, **response_kwargs):
            self.routes[url] = response_kwargs

        def fail(self, url, exc):
            self.routes[url] = exc

        async def handler(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            url = f"{request.url.scheme}://{request.headers['host']}{request.url.raw_path.decode('ascii')}"
            self.urls.append(url)
            route = self.routes.get(url)
            if route is None:
                return httpx.Response(404, text="not found")
            if isinstance(route, Exception):
                raise route
            return httpx.Response(**route)

        @property
        def transport(self):
            return httpx.MockTransport(self.handler)

    return Upstream()


@pytest.fixture
def make_client(proxy_config, resolver, upstream):
    """Build a TestClient for a proxy app wired to the mock origin."""
    from translation_proxy.server import create_app

    def _make(config=None):
        app = create_app(
            config or proxy_config, resolver=resolver, transport=upstream.transport
        )
        return TestClient(app, base_url=PUBLIC_URL)

    return _make
